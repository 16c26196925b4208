from __future__ import annotations
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Curriculum, CurriculumAssignment, Project, Quest, QuestCompletion, QuestConnection, User as UserRow
from .auth import get_current_user, require_staff

router = APIRouter(prefix="/curriculums", tags=["curriculums"])

logger = logging.getLogger(__name__)


class CurriculumIn(BaseModel):
	name: str
	subtitle: str = ""
	goal: str = ""


class CurriculumPatch(BaseModel):
	name: Optional[str] = None
	subtitle: Optional[str] = None
	goal: Optional[str] = None


class CurriculumOut(BaseModel):
	id: str
	name: str
	subtitle: str
	goal: str
	created_by: str
	created_at: datetime

	model_config = {"from_attributes": True}


class AssignmentRequest(BaseModel):
	assigned: bool


def _get_or_404(db: Session, curriculum_id: str) -> Curriculum:
	row = db.get(Curriculum, curriculum_id)
	if row is None:
		raise HTTPException(status_code=404, detail="curriculum not found")
	return row


@router.get("", response_model=List[CurriculumOut])
def list_curriculums(user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	return db.query(Curriculum).order_by(Curriculum.created_at).all()


@router.get("/mine", response_model=List[CurriculumOut])
def my_curriculums(user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
	return (
		db.query(Curriculum)
		.join(CurriculumAssignment, CurriculumAssignment.curriculum_id == Curriculum.id)
		.filter(CurriculumAssignment.user_id == user.id)
		.order_by(Curriculum.created_at)
		.all()
	)


@router.post("", status_code=201, response_model=CurriculumOut)
def create_curriculum(req: CurriculumIn, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	name = req.name.strip()
	if not name:
		raise HTTPException(status_code=400, detail="name is required")
	row = Curriculum(id=str(uuid.uuid4()), name=name, subtitle=req.subtitle, goal=req.goal, created_by=user.id)
	db.add(row)
	db.commit()
	return row


@router.patch("/{curriculum_id}", response_model=CurriculumOut)
def update_curriculum(curriculum_id: str, req: CurriculumPatch, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	row = _get_or_404(db, curriculum_id)
	for field, value in req.model_dump(exclude_unset=True).items():
		if value is not None:
			setattr(row, field, value)
	db.commit()
	return row


@router.delete("/{curriculum_id}")
def delete_curriculum(curriculum_id: str, user: UserRow = Depends(require_staff), db: Session = Depends(get_db)):
	_get_or_404(db, curriculum_id)
	quest_ids = [qid for (qid,) in db.query(Quest.id).filter(Quest.curriculum_id == curriculum_id).all()]
	try:
		if quest_ids:
			db.execute(delete(QuestConnection).where(or_(
				QuestConnection.from_id.in_(quest_ids),
				QuestConnection.to_id.in_(quest_ids),
			)))
			db.execute(delete(QuestCompletion).where(QuestCompletion.quest_id.in_(quest_ids)))
			db.execute(update(Project).where(Project.quest_id.in_(quest_ids)).values(quest_id=None))
			db.execute(delete(Quest).where(Quest.id.in_(quest_ids)))
		# The FlowUp project outlives the curriculum; only detach it
		db.execute(update(Project).where(Project.curriculum_id == curriculum_id).values(curriculum_id=None))
		db.execute(delete(CurriculumAssignment).where(CurriculumAssignment.curriculum_id == curriculum_id))
		db.execute(delete(Curriculum).where(Curriculum.id == curriculum_id))
		db.commit()
	except Exception:
		db.rollback()
		logger.exception("Error deleting curriculum %s", curriculum_id)
		raise HTTPException(status_code=500, detail="Une erreur interne est survenue.")
	return {"success": True, "message": "Cursus supprimé avec succès."}


@router.put("/{curriculum_id}/assignments/{user_id}")
def set_assignment(
	curriculum_id: str,
	user_id: str,
	req: AssignmentRequest,
	user: UserRow = Depends(require_staff),
	db: Session = Depends(get_db),
):
	_get_or_404(db, curriculum_id)
	if db.get(UserRow, user_id) is None:
		raise HTTPException(status_code=404, detail="user not found")
	existing = db.get(CurriculumAssignment, (curriculum_id, user_id))
	if req.assigned and existing is None:
		db.add(CurriculumAssignment(curriculum_id=curriculum_id, user_id=user_id))
	elif not req.assigned and existing is not None:
		db.delete(existing)
	db.commit()
	return {"success": True, "assigned": req.assigned}
