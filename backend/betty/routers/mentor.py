from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Literal, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from ..gemini_client import GeminiClient
from ..models import User as UserRow
from .auth import get_current_user, require_staff

router = APIRouter(prefix="/mentor", tags=["mentor"])

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class ExplainRequest(BaseModel):
	concept: str


class ExplainResponse(BaseModel):
	explanation: str


class QuestlineRequest(BaseModel):
	curriculum_goal: str


class GeneratedQuest(BaseModel):
	title: str
	description: str
	category: Literal["Core", "Frontend", "Backend", "Tools", "Library", "Weekly"]
	xp: int = Field(ge=1)
	position_top: str
	position_left: str


class QuestlineResponse(BaseModel):
	quests: List[GeneratedQuest] = Field(min_length=5, max_length=10)


class ProjectDocument(BaseModel):
	title: str
	content: str


class GradeRequest(BaseModel):
	quest_title: str
	quest_description: str
	project_title: str
	documents: List[ProjectDocument] = []


class GradeResponse(BaseModel):
	suggested_grade: int = Field(ge=0, le=100)
	strengths: List[str]
	improvements: List[str]
	feedback: str


def extract_json_object(text: str) -> Dict[str, Any]:
	try:
		return json.loads(text)
	except Exception:
		pass
	code_block = re.search(r"```json\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except Exception:
			pass
	first = text.find("{")
	last = text.rfind("}")
	if first != -1 and last != -1 and last > first:
		try:
			return json.loads(text[first : last + 1])
		except Exception:
			pass
	raise HTTPException(status_code=502, detail="LLM did not return valid JSON.")


def _explain_prompt(concept: str) -> str:
	return (
		"Tu es un mentor IA pour les étudiants d'une académie de code. Explique le concept de programmation suivant "
		"de la manière la plus simple et la plus claire possible, en français.\n"
		"Utilise des analogies et des exemples de code simples (en anglais). Le concept doit être accessible à un débutant complet.\n\n"
		f"Concept : \"{concept}\"\n\n"
		"Return ONLY a JSON object with exactly one key: explanation (string, markdown allowed)."
	)


def _questline_prompt(goal: str) -> str:
	return (
		"Tu es un concepteur de cursus pour une académie de code gamifiée. Génère entre 5 et 10 quêtes en français "
		"qui forment un parcours d'apprentissage cohérent, des concepts simples vers les plus complexes.\n"
		"Place chaque quête sur une carte 2D avec position_top et position_left, des pourcentages en chaîne (ex: \"15%\"), "
		"entre 10% et 90%. Les quêtes descendent du haut (position_top faible) vers le bas ; position_left peut créer des branches.\n\n"
		f"Objectif du cursus : \"{goal}\"\n\n"
		"Return ONLY a JSON object with key quests: an array of objects with keys title, description, "
		"category (one of Core, Frontend, Backend, Tools, Library, Weekly), xp (integer 50-500), position_top, position_left."
	)


def _grade_prompt(req: GradeRequest) -> str:
	docs = "\n\n".join(f"### {d.title}\n{d.content}" for d in req.documents) or "(aucun document)"
	return (
		"Tu es un professeur assistant IA. Aide le professeur à évaluer le projet d'un étudiant. "
		"Sois juste, constructif et encourageant, et réponds exclusivement en français.\n\n"
		f"Quête : {req.quest_title}\n"
		f"Consignes : {req.quest_description}\n"
		f"Projet : {req.project_title}\n"
		f"Documents du projet :\n{docs}\n\n"
		"Return ONLY a JSON object with keys: suggested_grade (integer 0-100), strengths (array of strings), "
		"improvements (array of strings), feedback (string)."
	)


async def _run_flow(prompt: str, schema: Type[T]) -> T:
	try:
		client = GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		raw = await client.generate(prompt, json_output=True)
	except Exception as e:
		logger.error("Mentor flow %s failed: %s", schema.__name__, e)
		raise HTTPException(status_code=502, detail="AI provider call failed")
	finally:
		await client.aclose()
	data = extract_json_object(raw)
	try:
		return schema.model_validate(data)
	except ValidationError as e:
		logger.warning("Mentor flow %s returned an invalid shape: %s", schema.__name__, e)
		raise HTTPException(status_code=502, detail=f"Invalid {schema.__name__} format from LLM")


@router.post("/explain", response_model=ExplainResponse)
async def explain_concept(req: ExplainRequest, user: UserRow = Depends(get_current_user)):
	concept = (req.concept or "").strip()
	if not concept:
		raise HTTPException(status_code=400, detail="concept is required")
	return await _run_flow(_explain_prompt(concept[:2000]), ExplainResponse)


@router.post("/questline", response_model=QuestlineResponse)
async def generate_questline(req: QuestlineRequest, user: UserRow = Depends(require_staff)):
	goal = (req.curriculum_goal or "").strip()
	if not goal:
		raise HTTPException(status_code=400, detail="curriculum_goal is required")
	return await _run_flow(_questline_prompt(goal), QuestlineResponse)


@router.post("/grade", response_model=GradeResponse)
async def grade_project(req: GradeRequest, user: UserRow = Depends(require_staff)):
	return await _run_flow(_grade_prompt(req), GradeResponse)
