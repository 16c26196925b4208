from __future__ import annotations

import json

import pytest

from betty.routers import mentor
from conftest import login, make_user


class FakeGemini:
	replies: list = []
	prompts: list = []
	closed = 0

	def __init__(self, *args, **kwargs) -> None:
		pass

	async def generate(self, prompt: str, *, json_output: bool = False) -> str:
		FakeGemini.prompts.append(prompt)
		reply = FakeGemini.replies.pop(0)
		if isinstance(reply, Exception):
			raise reply
		return reply

	async def aclose(self) -> None:
		FakeGemini.closed += 1


@pytest.fixture
def gemini(monkeypatch):
	FakeGemini.replies = []
	FakeGemini.prompts = []
	FakeGemini.closed = 0
	monkeypatch.setattr(mentor, "GeminiClient", FakeGemini)
	return FakeGemini


def _quest(i: int) -> dict:
	return {
		"title": f"Quest {i}",
		"description": "Do the thing",
		"category": "Core",
		"xp": 100,
		"position_top": f"{10 + i * 10}%",
		"position_left": "50%",
	}


def test_extract_json_object_variants() -> None:
	assert mentor.extract_json_object('{"a": 1}') == {"a": 1}
	assert mentor.extract_json_object('Here:\n```json\n{"a": 2}\n```') == {"a": 2}
	assert mentor.extract_json_object('Sure! {"a": 3} hope it helps') == {"a": 3}


def test_extract_json_object_failure() -> None:
	with pytest.raises(Exception) as exc:
		mentor.extract_json_object("no json here")
	assert exc.value.status_code == 502


def test_explain_concept(client, db, gemini) -> None:
	headers = login(client, make_user(db))
	gemini.replies = ['```json\n{"explanation": "Une boucle répète du code."}\n```']

	r = client.post("/mentor/explain", json={"concept": "for loops"}, headers=headers)
	assert r.status_code == 200
	assert r.json() == {"explanation": "Une boucle répète du code."}
	assert "for loops" in gemini.prompts[0]
	assert gemini.closed == 1


def test_explain_requires_concept(client, db, gemini) -> None:
	headers = login(client, make_user(db))
	assert client.post("/mentor/explain", json={"concept": "  "}, headers=headers).status_code == 400


def test_questline_validates_shape(client, db, gemini) -> None:
	headers = login(client, make_user(db, role="professor"))
	gemini.replies = [json.dumps({"quests": [_quest(i) for i in range(6)]})]

	r = client.post("/mentor/questline", json={"curriculum_goal": "Learn Flask"}, headers=headers)
	assert r.status_code == 200
	assert len(r.json()["quests"]) == 6

	gemini.replies = [json.dumps({"quests": [_quest(i) for i in range(2)]})]
	r = client.post("/mentor/questline", json={"curriculum_goal": "Learn Flask"}, headers=headers)
	assert r.status_code == 502


def test_questline_is_staff_only(client, db, gemini) -> None:
	headers = login(client, make_user(db))
	r = client.post("/mentor/questline", json={"curriculum_goal": "x"}, headers=headers)
	assert r.status_code == 403


def test_grade_project(client, db, gemini) -> None:
	headers = login(client, make_user(db, role="admin"))
	gemini.replies = [json.dumps({
		"suggested_grade": 85,
		"strengths": ["Clean code"],
		"improvements": ["Add tests"],
		"feedback": "Bon travail !",
	})]
	r = client.post("/mentor/grade", json={
		"quest_title": "API",
		"quest_description": "Build a REST API",
		"project_title": "My API",
		"documents": [{"title": "README", "content": "Hello"}],
	}, headers=headers)
	assert r.status_code == 200
	assert r.json()["suggested_grade"] == 85
	assert "README" in gemini.prompts[0]


def test_provider_failure_maps_to_502(client, db, gemini) -> None:
	headers = login(client, make_user(db))
	gemini.replies = [RuntimeError("boom")]
	r = client.post("/mentor/explain", json={"concept": "recursion"}, headers=headers)
	assert r.status_code == 502
	assert gemini.closed == 1
