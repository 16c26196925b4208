"""Thin client for the FlowUp project-hosting API.

FlowUp exposes a single endpoint taking ``{"action": ..., "payload": ...}``.
Every action is performed on behalf of the configured admin account.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import httpx

from .settings import settings

logger = logging.getLogger(__name__)


class FlowUpError(RuntimeError):
	pass


class FlowUpConsentRequired(FlowUpError):
	"""The FlowUp account has not granted access to this application."""


class FlowUpClient:
	def __init__(
		self,
		api_url: Optional[str] = None,
		api_token: Optional[str] = None,
		admin_uuid: Optional[str] = None,
		*,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_url = api_url or settings.flowup_api_url
		self.api_token = api_token or settings.flowup_api_token
		self.admin_uuid = admin_uuid or settings.flowup_admin_uuid
		if not self.api_url or not self.api_token:
			raise FlowUpError("FlowUp API environment variables are not configured.")
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	def _require_admin(self) -> str:
		if not self.admin_uuid:
			raise FlowUpError("FlowUp Admin UUID is not configured in environment variables.")
		return self.admin_uuid

	async def call(self, action: str, payload: Dict[str, Any]) -> Any:
		headers = {"Authorization": f"Bearer {self.api_token}"}
		try:
			r = await self._client.post(self.api_url, headers=headers, json={"action": action, "payload": payload})
		except httpx.RequestError as err:
			logger.error("FlowUp action %r failed: %s", action, err)
			raise FlowUpError(f"FlowUp unreachable: {err}") from err
		try:
			data = r.json()
		except ValueError:
			data = {}
		if r.is_success:
			return data
		message = str(data.get("message") or "") if isinstance(data, dict) else ""
		if r.status_code == 403 and "consent" in message:
			logger.warning("FlowUp consent required for user %s", payload.get("userUuid"))
			raise FlowUpConsentRequired(
				"Consentement requis dans FlowUp pour l'utilisateur. Veuillez autoriser l'accès dans vos paramètres FlowUp."
			)
		logger.error("FlowUp action %r returned %s: %s", action, r.status_code, message)
		raise FlowUpError(message or f"FlowUp API Error: {r.reason_phrase}")

	async def create_project(self, name: str, description: str) -> Dict[str, Any]:
		payload = {"userUuid": self._require_admin(), "name": name, "description": description}
		result = await self.call("createProject", payload)
		if not isinstance(result, dict) or not result.get("uuid"):
			raise FlowUpError("Failed to create project in FlowUp or API response is invalid.")
		return result

	async def add_member(self, project_uuid: str, email: str, role: str = "editor") -> Any:
		payload = {
			"userUuid": self._require_admin(),
			"projectUuid": project_uuid,
			"emailToInvite": email,
			"role": role,
		}
		return await self.call("addMember", payload)

	async def list_members(self, project_uuid: str) -> List[Dict[str, Any]]:
		payload = {"userUuid": self._require_admin(), "projectUuid": project_uuid}
		result = await self.call("listMembers", payload)
		return list(result.get("members") or []) if isinstance(result, dict) else []

	async def aclose(self) -> None:
		await self._client.aclose()
