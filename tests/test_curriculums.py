from __future__ import annotations

from betty.models import Curriculum, CurriculumAssignment, Project, Quest, QuestCompletion, QuestConnection
from conftest import connect, login, make_curriculum, make_quest, make_user


def test_create_update_and_list(client, db) -> None:
	prof = make_user(db, role="professor")
	headers = login(client, prof)

	r = client.post("/curriculums", json={"name": "Web", "subtitle": "HTML & CSS", "goal": "Build a site"}, headers=headers)
	assert r.status_code == 201
	cid = r.json()["id"]
	assert r.json()["created_by"] == prof.id

	r = client.patch(f"/curriculums/{cid}", json={"subtitle": "HTML, CSS, JS"}, headers=headers)
	assert r.status_code == 200
	assert r.json()["subtitle"] == "HTML, CSS, JS"
	assert r.json()["name"] == "Web"

	listed = client.get("/curriculums", headers=headers).json()
	assert [c["id"] for c in listed] == [cid]


def test_assignment_controls_mine(client, db) -> None:
	admin = make_user(db, role="admin")
	student = make_user(db)
	curriculum = make_curriculum(db, admin)
	admin_headers = login(client, admin)
	student_headers = login(client, student)

	assert client.get("/curriculums/mine", headers=student_headers).json() == []

	url = f"/curriculums/{curriculum.id}/assignments/{student.id}"
	assert client.put(url, json={"assigned": True}, headers=admin_headers).status_code == 200
	# Assigning twice is harmless
	assert client.put(url, json={"assigned": True}, headers=admin_headers).status_code == 200
	mine = client.get("/curriculums/mine", headers=student_headers).json()
	assert [c["id"] for c in mine] == [curriculum.id]

	assert client.put(url, json={"assigned": False}, headers=admin_headers).status_code == 200
	assert client.get("/curriculums/mine", headers=student_headers).json() == []


def test_delete_cascades_to_quests_and_connections(client, db, engine) -> None:
	# Enforce foreign keys so a missed dependent row fails the delete
	with engine.connect() as conn:
		conn.exec_driver_sql("PRAGMA foreign_keys=ON")
	admin = make_user(db, role="admin")
	curriculum = make_curriculum(db, admin)
	make_quest(db, curriculum, "a")
	make_quest(db, curriculum, "b")
	connect(db, "a", "b")
	db.add(CurriculumAssignment(curriculum_id=curriculum.id, user_id=admin.id))
	db.add(QuestCompletion(user_id=admin.id, quest_id="a"))
	db.add(Project(id="flow-1", title="Ada - Python Basics", is_quest_project=True, quest_id="a", curriculum_id=curriculum.id, owner_id=admin.id))
	db.commit()
	headers = login(client, admin)

	r = client.delete(f"/curriculums/{curriculum.id}", headers=headers)
	assert r.status_code == 200
	assert r.json()["success"] is True

	db.expire_all()
	assert db.get(Curriculum, curriculum.id) is None
	assert db.query(Quest).count() == 0
	assert db.query(QuestConnection).count() == 0
	assert db.query(CurriculumAssignment).count() == 0
	assert db.query(QuestCompletion).count() == 0
	# The hosted project survives, detached from the deleted curriculum
	project = db.get(Project, "flow-1")
	assert project is not None
	assert (project.curriculum_id, project.quest_id) == (None, None)


def test_unknown_curriculum_is_404(client, db) -> None:
	admin = make_user(db, role="admin")
	headers = login(client, admin)
	assert client.patch("/curriculums/missing", json={"name": "x"}, headers=headers).status_code == 404
	assert client.delete("/curriculums/missing", headers=headers).status_code == 404
