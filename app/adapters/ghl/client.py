"""
GoHighLevel (LeadConnector) API client.

Contacts, opportunities, notes and tags against
https://services.leadconnectorhq.com using a location-scoped private
integration token. Every call opens a short-lived httpx client with a
bounded timeout; any non-2xx or transport failure raises GhlApiError.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

BASE_URL = "https://services.leadconnectorhq.com"
API_VERSION = "2021-07-28"

_NON_DIGIT = re.compile(r"\D")


class GhlApiError(RuntimeError):
    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__(f"GHL API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body


@dataclass(frozen=True)
class ContactResult:
    contact: dict[str, Any]
    created: bool

    @property
    def id(self) -> str:
        return str(self.contact.get("id") or "")


class GhlClient:
    def __init__(
        self,
        api_key: str,
        location_id: str,
        *,
        base_url: str = BASE_URL,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.location_id = location_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Version": API_VERSION,
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        body: Optional[dict[str, Any]] = None,
        trace_id: Optional[str] = None,
    ) -> dict[str, Any]:
        if not self.api_key:
            raise GhlApiError(500, "GHL API key not configured")

        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(method, url, params=params, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning(json.dumps({
                "event": "ghl_request_transport_error",
                "trace_id": trace_id,
                "method": method,
                "path": path,
                "error": f"{type(e).__name__}: {e}",
            }))
            raise GhlApiError(502, f"Network error: {type(e).__name__}") from e

        try:
            data = resp.json() if resp.content else {}
        except ValueError:
            data = {"raw": resp.text[:500]}

        if not resp.is_success:
            message = data.get("message") if isinstance(data, dict) else None
            if isinstance(message, list):
                message = "; ".join(str(m) for m in message)
            logger.warning(json.dumps({
                "event": "ghl_request_failed",
                "trace_id": trace_id,
                "method": method,
                "path": path,
                "status": resp.status_code,
                "body": resp.text[:500],
            }))
            raise GhlApiError(resp.status_code, str(message or "GHL API error"), data)

        return data if isinstance(data, dict) else {"data": data}

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def search_contacts(self, query: str, limit: int = 5, *, trace_id: Optional[str] = None) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            "/contacts/",
            params={"locationId": self.location_id, "query": query, "limit": limit},
            trace_id=trace_id,
        )
        contacts = data.get("contacts")
        return contacts if isinstance(contacts, list) else []

    async def search_contact_by_email(self, email: str, *, trace_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        # query is a fuzzy search, so confirm the exact address
        target = email.strip().lower()
        for c in await self.search_contacts(email, limit=1, trace_id=trace_id):
            if str(c.get("email") or "").lower() == target:
                return c
        return None

    async def search_contact_by_phone(self, phone: str, *, trace_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        clean = _NON_DIGIT.sub("", phone)
        if not clean:
            return None
        for c in await self.search_contacts(phone, limit=5, trace_id=trace_id):
            c_phone = _NON_DIGIT.sub("", str(c.get("phone") or ""))
            if not c_phone:
                continue
            if c_phone == clean or c_phone.endswith(clean) or clean.endswith(c_phone):
                return c
        return None

    async def create_contact(self, fields: dict[str, Any], *, trace_id: Optional[str] = None) -> dict[str, Any]:
        data = await self._request(
            "POST", "/contacts/", body={"locationId": self.location_id, **fields}, trace_id=trace_id
        )
        return data.get("contact") or {}

    async def update_contact(
        self, contact_id: str, fields: dict[str, Any], *, trace_id: Optional[str] = None
    ) -> dict[str, Any]:
        data = await self._request("PUT", f"/contacts/{contact_id}", body=fields, trace_id=trace_id)
        return data.get("contact") or {}

    async def add_contact_tags(self, contact_id: str, tags: list[str], *, trace_id: Optional[str] = None) -> list[str]:
        data = await self._request("POST", f"/contacts/{contact_id}/tags", body={"tags": tags}, trace_id=trace_id)
        applied = data.get("tags")
        return applied if isinstance(applied, list) else list(tags)

    async def find_or_create_contact(self, fields: dict[str, Any], *, trace_id: Optional[str] = None) -> ContactResult:
        """
        Search by email, then by phone, before creating.

        An existing contact is updated with the new fields; that keeps a
        double-submitted form from producing a second contact.
        """
        existing: Optional[dict[str, Any]] = None
        if fields.get("email"):
            existing = await self.search_contact_by_email(fields["email"], trace_id=trace_id)
        if existing is None and fields.get("phone"):
            existing = await self.search_contact_by_phone(fields["phone"], trace_id=trace_id)

        if existing is not None:
            updated = await self.update_contact(existing["id"], fields, trace_id=trace_id)
            return ContactResult(contact=updated or existing, created=False)

        created = await self.create_contact(fields, trace_id=trace_id)
        if not created.get("id"):
            raise GhlApiError(502, "GHL create contact returned no id", created)
        return ContactResult(contact=created, created=True)

    # ------------------------------------------------------------------
    # Opportunities
    # ------------------------------------------------------------------

    async def create_opportunity(
        self,
        *,
        name: str,
        pipeline_id: str,
        pipeline_stage_id: str,
        contact_id: str,
        monetary_value: Optional[float] = None,
        status: str = "open",
        trace_id: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "locationId": self.location_id,
            "name": name,
            "pipelineId": pipeline_id,
            "pipelineStageId": pipeline_stage_id,
            "contactId": contact_id,
            "status": status,
        }
        if monetary_value is not None:
            body["monetaryValue"] = monetary_value
        data = await self._request("POST", "/opportunities/", body=body, trace_id=trace_id)
        return data.get("opportunity") or {}

    async def update_opportunity(
        self, opportunity_id: str, fields: dict[str, Any], *, trace_id: Optional[str] = None
    ) -> dict[str, Any]:
        data = await self._request("PUT", f"/opportunities/{opportunity_id}", body=fields, trace_id=trace_id)
        return data.get("opportunity") or {}

    async def move_opportunity_stage(
        self, opportunity_id: str, stage_id: str, *, trace_id: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.update_opportunity(opportunity_id, {"pipelineStageId": stage_id}, trace_id=trace_id)

    async def get_contact_opportunities(
        self,
        contact_id: str,
        pipeline_id: Optional[str] = None,
        *,
        trace_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"location_id": self.location_id, "contact_id": contact_id}
        if pipeline_id:
            params["pipeline_id"] = pipeline_id
        data = await self._request("GET", "/opportunities/search", params=params, trace_id=trace_id)
        opps = data.get("opportunities")
        return opps if isinstance(opps, list) else []

    async def list_pipelines(self, *, trace_id: Optional[str] = None) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/opportunities/pipelines", params={"locationId": self.location_id}, trace_id=trace_id
        )
        pipelines = data.get("pipelines")
        return pipelines if isinstance(pipelines, list) else []

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def add_note(self, contact_id: str, body: str, *, trace_id: Optional[str] = None) -> dict[str, Any]:
        data = await self._request("POST", f"/contacts/{contact_id}/notes", body={"body": body}, trace_id=trace_id)
        return data.get("note") or {}
