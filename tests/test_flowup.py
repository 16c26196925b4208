from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from betty.flowup import FlowUpClient, FlowUpConsentRequired, FlowUpError


def _client(handler) -> FlowUpClient:
	return FlowUpClient(
		"https://flowup.test/api",
		"token-123",
		"admin-uuid",
		transport=httpx.MockTransport(handler),
	)


def test_create_project_posts_action_envelope() -> None:
	seen = {}

	def handler(request: httpx.Request) -> httpx.Response:
		seen["auth"] = request.headers["Authorization"]
		seen["body"] = json.loads(request.content)
		return httpx.Response(200, json={"uuid": "p-1", "name": "Demo"})

	client = _client(handler)
	project = asyncio.run(client.create_project("Demo", "desc"))
	assert project == {"uuid": "p-1", "name": "Demo"}
	assert seen["auth"] == "Bearer token-123"
	assert seen["body"] == {
		"action": "createProject",
		"payload": {"userUuid": "admin-uuid", "name": "Demo", "description": "desc"},
	}


def test_consent_error() -> None:
	client = _client(lambda request: httpx.Response(403, json={"message": "user consent required"}))
	with pytest.raises(FlowUpConsentRequired):
		asyncio.run(client.add_member("p-1", "a@example.com"))


def test_api_error_message_is_surfaced() -> None:
	client = _client(lambda request: httpx.Response(500, json={"message": "database down"}))
	with pytest.raises(FlowUpError, match="database down"):
		asyncio.run(client.call("listMembers", {}))


def test_create_project_without_uuid_fails() -> None:
	client = _client(lambda request: httpx.Response(200, json={"name": "x"}))
	with pytest.raises(FlowUpError):
		asyncio.run(client.create_project("x", ""))


def test_list_members() -> None:
	members = [{"uuid": "u", "name": "N", "email": "e", "role": "editor", "avatar": ""}]
	client = _client(lambda request: httpx.Response(200, json={"members": members}))
	assert asyncio.run(client.list_members("p-1")) == members


def test_missing_configuration() -> None:
	with pytest.raises(FlowUpError):
		FlowUpClient(api_url=None, api_token=None)
