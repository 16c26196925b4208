from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Integer, Text
from .db import Base


class User(Base):
	__tablename__ = "users"
	id = Column(String(64), primary_key=True, index=True)
	name = Column(String(128), nullable=False)
	email = Column(String(256), nullable=False, unique=True, index=True)
	password_hash = Column(String(256), nullable=False)
	# student | professor | admin
	role = Column(String(16), default="student", nullable=False)
	# active | invited
	status = Column(String(16), default="active", nullable=False)
	level = Column(Integer, default=1, nullable=False)
	xp = Column(Integer, default=0, nullable=False)
	orbs = Column(Integer, default=0, nullable=False)
	title = Column(String(128), default="Novice Coder", nullable=True)
	flowup_uuid = Column(String(64), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# JWT "jti"; deleting the row revokes the token
	session_id = Column(String(64), primary_key=True)
	user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Curriculum(Base):
	__tablename__ = "curriculums"
	id = Column(String(64), primary_key=True)
	name = Column(String(256), nullable=False)
	subtitle = Column(String(512), nullable=False, default="")
	goal = Column(Text, nullable=False, default="")
	created_by = Column(String(64), ForeignKey("users.id"), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CurriculumAssignment(Base):
	__tablename__ = "curriculum_assignments"
	curriculum_id = Column(String(64), ForeignKey("curriculums.id"), primary_key=True)
	user_id = Column(String(64), ForeignKey("users.id"), primary_key=True)
	# not-started | in-progress | completed
	status = Column(String(16), default="not-started", nullable=False)
	progress = Column(Integer, default=0, nullable=False)
	completed_at = Column(DateTime, nullable=True)


class Quest(Base):
	__tablename__ = "quests"
	id = Column(String(64), primary_key=True)
	title = Column(String(256), nullable=False)
	description = Column(Text, nullable=True)
	category = Column(String(32), nullable=False)
	xp = Column(Integer, nullable=False)
	orbs = Column(Integer, default=0, nullable=False)
	# published | draft
	status = Column(String(16), default="draft", nullable=False)
	position_top = Column(String(16), nullable=False, default="10%")
	position_left = Column(String(16), nullable=False, default="50%")
	curriculum_id = Column(String(64), ForeignKey("curriculums.id"), nullable=False, index=True)


class QuestCompletion(Base):
	__tablename__ = "quest_completions"
	user_id = Column(String(64), ForeignKey("users.id"), primary_key=True)
	quest_id = Column(String(64), ForeignKey("quests.id"), primary_key=True)
	completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class QuestConnection(Base):
	__tablename__ = "quest_connections"
	# to_id requires from_id to be completed first
	from_id = Column(String(64), primary_key=True)
	to_id = Column(String(64), primary_key=True, index=True)


class Project(Base):
	__tablename__ = "projects"
	# Primary key is the FlowUp project uuid
	id = Column(String(64), primary_key=True)
	title = Column(String(256), nullable=False)
	# Active | In Progress | Submitted | Completed
	status = Column(String(16), default="Active", nullable=False)
	is_quest_project = Column(Boolean, default=False, nullable=False)
	quest_id = Column(String(64), ForeignKey("quests.id"), nullable=True)
	curriculum_id = Column(String(64), ForeignKey("curriculums.id"), nullable=True)
	owner_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=True)
