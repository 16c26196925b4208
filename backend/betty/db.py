from __future__ import annotations
import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./betty.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> None:
	try:
		inspector = inspect(engine)
		tables = set(inspector.get_table_names())
	except Exception:
		logger.warning("Schema inspection failed; skipping migrations", exc_info=True)
		return
	if "quests" in tables:
		cols = {c["name"] for c in inspector.get_columns("quests")}
		with engine.begin() as conn:
			if "orbs" not in cols:
				conn.exec_driver_sql("ALTER TABLE quests ADD COLUMN orbs INTEGER DEFAULT 0 NOT NULL")
			if "description" not in cols:
				conn.exec_driver_sql("ALTER TABLE quests ADD COLUMN description TEXT")
	if "users" in tables:
		cols = {c["name"] for c in inspector.get_columns("users")}
		with engine.begin() as conn:
			if "flowup_uuid" not in cols:
				conn.exec_driver_sql("ALTER TABLE users ADD COLUMN flowup_uuid VARCHAR(64)")
			if "title" not in cols:
				conn.exec_driver_sql("ALTER TABLE users ADD COLUMN title VARCHAR(128) DEFAULT 'Novice Coder'")
