from __future__ import annotations
import logging
from datetime import datetime
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..flowup import FlowUpClient, FlowUpConsentRequired, FlowUpError
from ..models import Curriculum, Project, User as UserRow
from .auth import get_current_user

router = APIRouter(prefix="/projects", tags=["projects"])

logger = logging.getLogger(__name__)


class ProjectOut(BaseModel):
	id: str
	title: str
	status: str
	is_quest_project: bool
	quest_id: Optional[str] = None
	curriculum_id: Optional[str] = None
	owner_id: str
	created_at: datetime

	model_config = {"from_attributes": True}


class PersonalProjectRequest(BaseModel):
	title: str
	description: str = ""


class QuestProjectRequest(BaseModel):
	curriculum_id: str


class InviteRequest(BaseModel):
	email: str


async def get_flowup_client() -> AsyncIterator[FlowUpClient]:
	try:
		client = FlowUpClient()
	except FlowUpError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		yield client
	finally:
		await client.aclose()


def _flowup_http_error(err: FlowUpError) -> HTTPException:
	if isinstance(err, FlowUpConsentRequired):
		return HTTPException(status_code=403, detail=str(err))
	return HTTPException(status_code=502, detail=str(err))


@router.get("", response_model=List[ProjectOut])
def my_projects(user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
	return db.query(Project).filter(Project.owner_id == user.id).order_by(Project.created_at).all()


@router.post("", status_code=201, response_model=ProjectOut)
async def create_personal_project(
	req: PersonalProjectRequest,
	user: UserRow = Depends(get_current_user),
	db: Session = Depends(get_db),
	flowup: FlowUpClient = Depends(get_flowup_client),
):
	title = req.title.strip()
	if not title:
		raise HTTPException(status_code=400, detail="title is required")
	try:
		remote = await flowup.create_project(title, req.description)
	except FlowUpError as e:
		raise _flowup_http_error(e)
	row = Project(
		id=remote["uuid"],
		title=remote.get("name") or title,
		status="Active",
		is_quest_project=False,
		owner_id=user.id,
	)
	db.add(row)
	db.commit()
	return row


@router.post("/quest", response_model=ProjectOut)
async def get_or_create_quest_project(
	req: QuestProjectRequest,
	user: UserRow = Depends(get_current_user),
	db: Session = Depends(get_db),
	flowup: FlowUpClient = Depends(get_flowup_client),
):
	curriculum = db.get(Curriculum, req.curriculum_id)
	if curriculum is None:
		raise HTTPException(status_code=404, detail="curriculum not found")
	# One project per user and curriculum, shared by all of its quests
	existing = (
		db.query(Project)
		.filter(Project.curriculum_id == curriculum.id, Project.owner_id == user.id)
		.first()
	)
	if existing is not None:
		return existing
	try:
		remote = await flowup.create_project(
			f"{user.name} - {curriculum.name}",
			f"Projet pour le cursus {curriculum.name} de l'utilisateur {user.name}.",
		)
	except FlowUpError as e:
		raise _flowup_http_error(e)
	row = Project(
		id=remote["uuid"],
		title=remote.get("name") or curriculum.name,
		status="In Progress",
		is_quest_project=True,
		curriculum_id=curriculum.id,
		owner_id=user.id,
	)
	db.add(row)
	db.commit()
	logger.info("Created FlowUp project %s for %s", row.id, user.id)
	return row


@router.post("/{project_id}/members")
async def invite_member(
	project_id: str,
	req: InviteRequest,
	user: UserRow = Depends(get_current_user),
	db: Session = Depends(get_db),
	flowup: FlowUpClient = Depends(get_flowup_client),
):
	project = db.get(Project, project_id)
	if project is None or project.owner_id != user.id:
		raise HTTPException(status_code=404, detail="Unauthorized or project not found")
	email = req.email.strip().lower()
	if db.query(UserRow).filter(UserRow.email == email).first() is None:
		raise HTTPException(status_code=404, detail="User to invite not found in the platform.")
	try:
		await flowup.add_member(project_id, email)
	except FlowUpError as e:
		raise _flowup_http_error(e)
	return {"success": True, "message": "Member invited to FlowUp project."}


@router.get("/{project_id}/members")
async def list_members(
	project_id: str,
	user: UserRow = Depends(get_current_user),
	db: Session = Depends(get_db),
	flowup: FlowUpClient = Depends(get_flowup_client),
):
	project = db.get(Project, project_id)
	if project is None or project.owner_id != user.id:
		raise HTTPException(status_code=404, detail="Unauthorized or project not found")
	try:
		members = await flowup.list_members(project_id)
	except FlowUpError as e:
		raise _flowup_http_error(e)
	return {"members": members}
