from __future__ import annotations
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional, Set, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import and_, delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import get_db
from ..levels import apply_xp, title_for_level
from ..models import Curriculum, CurriculumAssignment, Project, Quest, QuestCompletion, QuestConnection, User as UserRow
from ..resolver import COMPLETED, LOCKED, resolve
from .auth import get_current_user, require_staff

router = APIRouter(prefix="/quests", tags=["quests"])

logger = logging.getLogger(__name__)

QUEST_CATEGORIES = ("Core", "Frontend", "Backend", "Tools", "Library", "Weekly")
# Columns a PATCH may reset to null
NULLABLE_QUEST_FIELDS = ("description",)


class QuestIn(BaseModel):
	title: str
	description: Optional[str] = None
	category: str
	xp: int = Field(ge=0)
	orbs: int = Field(default=0, ge=0)
	status: Literal["published", "draft"] = "draft"
	position_top: str = "10%"
	position_left: str = "50%"
	curriculum_id: str


class QuestPatch(BaseModel):
	title: Optional[str] = None
	description: Optional[str] = None
	category: Optional[str] = None
	xp: Optional[int] = Field(default=None, ge=0)
	orbs: Optional[int] = Field(default=None, ge=0)
	status: Optional[Literal["published", "draft"]] = None


class PositionIn(BaseModel):
	top: str
	left: str


class QuestOut(BaseModel):
	id: str
	title: str
	description: Optional[str] = None
	category: str
	xp: int
	orbs: int
	status: str
	position_top: str
	position_left: str
	curriculum_id: str

	model_config = {"from_attributes": True}


class ConnectionIn(BaseModel):
	from_id: str
	to_id: str


class ConnectionOut(BaseModel):
	from_id: str
	to_id: str

	model_config = {"from_attributes": True}


class QuestNode(BaseModel):
	id: str
	title: str
	category: str
	xp: int
	status: Literal["completed", "available", "locked"]
	position: Dict[str, str]


class QuestTree(BaseModel):
	curriculum_id: str
	curriculum_name: str
	curriculum_subtitle: str
	quests: List[QuestNode]
	connections: List[ConnectionOut]


def _get_quest_or_404(db: Session, quest_id: str) -> Quest:
	row = db.get(Quest, quest_id)
	if row is None:
		raise HTTPException(status_code=404, detail="quest not found")
	return row


def _published_quests(db: Session, curriculum_id: str) -> List[Quest]:
	return (
		db.query(Quest)
		.filter(Quest.curriculum_id == curriculum_id, Quest.status == "published")
		.order_by(Quest.position_top, Quest.id)
		.all()
	)


def _edges_into(db: Session, quest_ids: List[str]) -> List[Tuple[str, str]]:
	# Only the target side is filtered: a prerequisite outside the set stays unsatisfiable
	if not quest_ids:
		return []
	rows = db.query(QuestConnection).filter(QuestConnection.to_id.in_(quest_ids)).all()
	return [(c.from_id, c.to_id) for c in rows]


def completed_quest_ids(db: Session, user_id: str) -> Set[str]:
	return {qid for (qid,) in db.query(QuestCompletion.quest_id).filter(QuestCompletion.user_id == user_id).all()}


def curriculum_statuses(db: Session, curriculum_id: str, user_id: str) -> Tuple[List[Quest], List[Tuple[str, str]], Dict[str, str]]:
	quests = _published_quests(db, curriculum_id)
	edges = _edges_into(db, [q.id for q in quests])
	statuses = resolve(quests, edges, completed_quest_ids(db, user_id))
	return quests, edges, statuses


def _validate_category(category: Optional[str]) -> None:
	if category is not None and category not in QUEST_CATEGORIES:
		raise HTTPException(status_code=400, detail=f"category must be one of {list(QUEST_CATEGORIES)}")


@router.get("/connections", response_model=List[ConnectionOut])
def list_connections(curriculum_id: str, user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
	quest_ids = [qid for (qid,) in db.query(Quest.id).filter(Quest.curriculum_id == curriculum_id).all()]
	if not quest_ids:
		return []
	return (
		db.query(QuestConnection)
		.filter(QuestConnection.from_id.in_(quest_ids), QuestConnection.to_id.in_(quest_ids))
		.all()
	)


@router.post("/connections")
def create_connection(req: ConnectionIn, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	if req.from_id == req.to_id:
		return {"created": False}
	if db.get(QuestConnection, (req.from_id, req.to_id)) is not None:
		return {"created": False}
	db.add(QuestConnection(from_id=req.from_id, to_id=req.to_id))
	db.commit()
	return {"created": True}


@router.delete("/connections")
def delete_connection(req: ConnectionIn, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	db.execute(delete(QuestConnection).where(and_(
		QuestConnection.from_id == req.from_id,
		QuestConnection.to_id == req.to_id,
	)))
	db.commit()
	return {"deleted": True}


@router.get("/tree/{curriculum_id}", response_model=QuestTree)
def quest_tree(curriculum_id: str, user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
	curriculum = db.get(Curriculum, curriculum_id)
	if curriculum is None:
		raise HTTPException(status_code=404, detail="curriculum not found")
	quests, edges, statuses = curriculum_statuses(db, curriculum_id, user.id)
	nodes = [
		QuestNode(
			id=q.id,
			title=q.title,
			category=q.category,
			xp=q.xp,
			status=statuses[q.id],
			position={"top": q.position_top, "left": q.position_left},
		)
		for q in quests
	]
	return QuestTree(
		curriculum_id=curriculum.id,
		curriculum_name=curriculum.name,
		curriculum_subtitle=curriculum.subtitle or "",
		quests=nodes,
		connections=[ConnectionOut(from_id=f, to_id=t) for f, t in edges],
	)


@router.post("", status_code=201, response_model=QuestOut)
def create_quest(req: QuestIn, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	_validate_category(req.category)
	if db.get(Curriculum, req.curriculum_id) is None:
		raise HTTPException(status_code=404, detail="curriculum not found")
	row = Quest(id=str(uuid.uuid4()), **req.model_dump())
	db.add(row)
	db.commit()
	return row


@router.get("/{quest_id}", response_model=QuestOut)
def get_quest(quest_id: str, user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
	return _get_quest_or_404(db, quest_id)


@router.patch("/{quest_id}", response_model=QuestOut)
def update_quest(quest_id: str, req: QuestPatch, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	row = _get_quest_or_404(db, quest_id)
	_validate_category(req.category)
	for field, value in req.model_dump(exclude_unset=True).items():
		if value is not None or field in NULLABLE_QUEST_FIELDS:
			setattr(row, field, value)
	db.commit()
	return row


@router.put("/{quest_id}/position", response_model=QuestOut)
def update_position(quest_id: str, req: PositionIn, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	row = _get_quest_or_404(db, quest_id)
	row.position_top = req.top
	row.position_left = req.left
	db.commit()
	return row


@router.delete("/{quest_id}")
def delete_quest(quest_id: str, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	_get_quest_or_404(db, quest_id)
	try:
		db.execute(delete(QuestConnection).where(or_(
			QuestConnection.from_id == quest_id,
			QuestConnection.to_id == quest_id,
		)))
		db.execute(delete(QuestCompletion).where(QuestCompletion.quest_id == quest_id))
		db.execute(update(Project).where(Project.quest_id == quest_id).values(quest_id=None))
		db.execute(delete(Quest).where(Quest.id == quest_id))
		db.commit()
	except Exception:
		db.rollback()
		logger.exception("Error deleting quest %s", quest_id)
		raise HTTPException(status_code=500, detail="Une erreur interne est survenue.")
	return {"success": True, "message": "Quête supprimée avec succès."}


def _refresh_assignment(db: Session, curriculum_id: str, user_id: str, statuses: Dict[str, str]) -> None:
	assignment = db.get(CurriculumAssignment, (curriculum_id, user_id))
	if assignment is None or not statuses:
		return
	done = sum(1 for s in statuses.values() if s == COMPLETED)
	assignment.progress = round(100 * done / len(statuses))
	if done == len(statuses):
		assignment.status = "completed"
		assignment.completed_at = assignment.completed_at or datetime.utcnow()
	elif done:
		assignment.status = "in-progress"


def _completion_response(user: UserRow, *, already_completed: bool) -> Dict[str, object]:
	return {"success": True, "already_completed": already_completed, "level": user.level, "xp": user.xp, "orbs": user.orbs}


@router.post("/{quest_id}/complete")
def complete_quest(quest_id: str, user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
	quest = _get_quest_or_404(db, quest_id)
	if quest.status != "published":
		raise HTTPException(status_code=404, detail="quest not found")
	_, _, statuses = curriculum_statuses(db, quest.curriculum_id, user.id)
	status = statuses.get(quest.id)
	if status == COMPLETED:
		return _completion_response(user, already_completed=True)
	if status == LOCKED:
		raise HTTPException(status_code=409, detail="quest is locked")
	try:
		db.add(QuestCompletion(user_id=user.id, quest_id=quest.id, completed_at=datetime.utcnow()))
		level, xp = apply_xp(user.level, user.xp, quest.xp)
		if level != user.level:
			logger.info("User %s reached level %d", user.id, level)
		user.level = level
		user.xp = xp
		user.orbs = (user.orbs or 0) + (quest.orbs or 0)
		user.title = title_for_level(level)
		statuses[quest.id] = COMPLETED
		_refresh_assignment(db, quest.curriculum_id, user.id, statuses)
		db.commit()
	except IntegrityError:
		# A concurrent request recorded the completion first and already paid out
		db.rollback()
		logger.info("Quest %s already completed by %s", quest_id, user.id)
		return _completion_response(user, already_completed=True)
	except Exception:
		db.rollback()
		logger.exception("Error completing quest %s for %s", quest_id, user.id)
		raise HTTPException(status_code=500, detail="Une erreur interne est survenue.")
	return _completion_response(user, already_completed=False)
