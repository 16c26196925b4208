import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from betty.db import Base, get_db
from betty.main import app
from betty.models import Curriculum, CurriculumAssignment, Quest, QuestConnection, User
from betty.routers.auth import hash_password

PASSWORD = "s3cret-pass"


@pytest.fixture
def engine():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	yield engine
	engine.dispose()


@pytest.fixture
def db(engine):
	TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	session = TestingSession()
	yield session
	session.close()


@pytest.fixture
def client(engine):
	TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

	def override_get_db():
		session = TestingSession()
		try:
			yield session
		finally:
			session.close()

	app.dependency_overrides[get_db] = override_get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


def make_user(db, *, role="student", email=None, name="Ada"):
	user = User(
		id=uuid.uuid4().hex,
		name=name,
		email=email or f"{uuid.uuid4().hex[:8]}@example.com",
		password_hash=hash_password(PASSWORD),
		role=role,
		status="active",
	)
	db.add(user)
	db.commit()
	return user


def login(client, user):
	r = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
	assert r.status_code == 200, r.text
	# Use explicit headers so several users can share one client
	client.cookies.clear()
	return {"Authorization": f"Bearer {r.json()['access_token']}"}


def make_curriculum(db, owner, *, name="Python Basics"):
	row = Curriculum(id=uuid.uuid4().hex, name=name, subtitle="Start here", goal="Learn Python", created_by=owner.id)
	db.add(row)
	db.commit()
	return row


def make_quest(db, curriculum, quest_id, *, xp=100, orbs=0, status="published", category="Core"):
	row = Quest(
		id=quest_id,
		title=quest_id.upper(),
		category=category,
		xp=xp,
		orbs=orbs,
		status=status,
		curriculum_id=curriculum.id,
	)
	db.add(row)
	db.commit()
	return row


def connect(db, from_id, to_id):
	db.add(QuestConnection(from_id=from_id, to_id=to_id))
	db.commit()


def assign(db, curriculum, user):
	db.add(CurriculumAssignment(curriculum_id=curriculum.id, user_id=user.id))
	db.commit()
