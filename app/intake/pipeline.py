"""
Lead intake: inquiry form -> normalized lead -> GHL contact, opportunity, note.

Order within one submission is fixed: normalize, then compute the dedup
key, then talk to the CRM. The CRM side is best-effort. If GHL is down,
slow, or not configured the caller still gets ok=True with a warning, so
the user sees a confirmation and can be offered another way to reach us.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Union

from app.adapters.ghl.client import GhlApiError, GhlClient
from app.engine.stages import NEW_INQUIRY, canonical_for_stage_id
from app.intake.models import InquiryPayload, IntakeResult, NormalizedLead
from app.intake.normalize import (
    budget_bucket,
    extract_budget_amount,
    normalize_date,
    normalize_email,
    normalize_name,
    normalize_phone,
    parse_guests,
    split_name,
)
from app.intake.notes import DEFAULT_SOURCE, build_lead_context_note, opportunity_name
from app.utils.trace import create_dedup_key, generate_trace_id
from app.utils.trace_logger import log_intake_run

logger = logging.getLogger(__name__)

WARN_CRM_UNCONFIGURED = "Lead logged but CRM not configured"
WARN_CRM_FAILED = "Inquiry received; CRM sync failed and will need follow-up"
WARN_CRM_TIMEOUT = "Inquiry received; CRM did not respond in time"
WARN_OPPORTUNITY_FAILED = "Contact saved but opportunity could not be created"

ERR_CONTACT_REQUIRED = "Email or phone required"
ERR_PROPERTY_REQUIRED = "Property name and ID required"


def build_tags(payload: InquiryPayload, bucket: Optional[str]) -> list[str]:
    tags = ["source:site2"]
    if payload.category:
        tags.append(f"inquiry:{payload.category}")
    if bucket:
        tags.append(bucket)
    if payload.utm_source:
        tags.append(f"utm:{payload.utm_source}")
    if payload.creator_id:
        tags.append(f"creator:{payload.creator_id}")
    if payload.prefer_whatsapp:
        tags.append("prefers:whatsapp")
    return tags


def normalize_inquiry(
    payload: InquiryPayload,
    *,
    trace_id: str,
    default_country_code: str = "1",
) -> NormalizedLead:
    first = normalize_name(payload.first_name)
    last = normalize_name(payload.last_name)
    if not first and payload.name:
        first, last = split_name(payload.name)

    email = normalize_email(payload.email)
    phone = normalize_phone(payload.phone, default_country_code)

    raw_start = payload.raw_start_date
    check_in = normalize_date(raw_start)
    check_out = normalize_date(payload.check_out)

    property_id: Optional[str] = None
    if payload.property_id not in (None, ""):
        property_id = str(payload.property_id).strip()
    elif payload.property_slug:
        property_id = payload.property_slug.strip()

    bucket = budget_bucket(payload.budget_text)
    dedup_key = create_dedup_key(
        email or phone or "",
        property_id or "",
        check_in or (raw_start.strip() if raw_start else None),
    )

    return NormalizedLead(
        email=email,
        phone=phone,
        first_name=first,
        last_name=last,
        check_in=check_in,
        check_out=check_out,
        guests=parse_guests(payload.guests),
        budget_bucket=bucket,
        dedup_key=dedup_key,
        trace_id=trace_id,
        property_id=property_id,
        property_name=normalize_name(payload.property_name) or None,
        property_slug=payload.property_slug,
        category=payload.category,
        tags=tuple(build_tags(payload, bucket)),
    )


class LeadIntakePipeline:
    def __init__(
        self,
        crm: Optional[GhlClient],
        *,
        pipeline_id: str = "",
        stage_ids: Optional[dict[str, str]] = None,
        crm_budget_seconds: float = 25.0,
        default_country_code: str = "1",
        custom_fields: Optional[dict[str, str]] = None,
    ):
        self.crm = crm
        self.pipeline_id = pipeline_id
        self.stage_ids = dict(stage_ids or {})
        self.crm_budget_seconds = crm_budget_seconds
        self.default_country_code = default_country_code
        self.custom_fields = custom_fields

    @property
    def pipeline_configured(self) -> bool:
        return bool(self.pipeline_id and self.stage_ids.get(NEW_INQUIRY))

    async def submit(self, raw: Union[InquiryPayload, dict[str, Any]]) -> IntakeResult:
        trace_id = generate_trace_id()
        payload = raw if isinstance(raw, InquiryPayload) else InquiryPayload.model_validate(raw)

        logger.info(json.dumps({
            "event": "inquiry_received",
            "trace_id": trace_id,
            "property_name": payload.property_name,
            "category": payload.category,
        }))

        lead = normalize_inquiry(payload, trace_id=trace_id, default_country_code=self.default_country_code)
        result = IntakeResult(ok=True, trace_id=trace_id, dedup_key=lead.dedup_key)

        if not lead.email and not lead.phone:
            return self._reject(result, lead, ERR_CONTACT_REQUIRED)
        if not lead.property_name or not lead.property_id:
            return self._reject(result, lead, ERR_PROPERTY_REQUIRED)

        if self.crm is None:
            logger.warning(json.dumps({"event": "inquiry_crm_unconfigured", "trace_id": trace_id}))
            result.warning = WARN_CRM_UNCONFIGURED
            self._log_run(lead, result, "crm_unconfigured")
            return result

        try:
            await asyncio.wait_for(self._sync_crm(payload, lead, result), timeout=self.crm_budget_seconds)
        except asyncio.TimeoutError:
            logger.warning(json.dumps({
                "event": "inquiry_crm_timeout",
                "trace_id": trace_id,
                "budget_seconds": self.crm_budget_seconds,
            }))
            result.warning = WARN_CRM_TIMEOUT
            self._log_run(lead, result, "crm_unavailable")
            return result
        except Exception as e:
            logger.error(json.dumps({
                "event": "inquiry_crm_failed",
                "trace_id": trace_id,
                "error": f"{type(e).__name__}: {e}",
            }))
            result.warning = WARN_CRM_FAILED
            self._log_run(lead, result, "crm_unavailable")
            return result

        self._log_run(lead, result, "partial" if result.warning else "synced")
        return result

    def _reject(self, result: IntakeResult, lead: NormalizedLead, error: str) -> IntakeResult:
        logger.warning(json.dumps({"event": "inquiry_rejected", "trace_id": result.trace_id, "error": error}))
        result.ok = False
        result.error = error
        self._log_run(lead, result, "rejected")
        return result

    def _log_run(self, lead: NormalizedLead, result: IntakeResult, outcome: str) -> None:
        log_intake_run(
            trace_id=result.trace_id,
            dedup_key=lead.dedup_key,
            property_id=lead.property_id or "",
            category=lead.category or None,
            outcome=outcome,
            contact_id=result.contact_id,
            contact_created=result.contact_created,
            opportunity_id=result.opportunity_id,
            opportunity_reused=result.opportunity_reused,
            warning=result.warning,
            tags=list(lead.tags),
        )

    def _contact_fields(self, payload: InquiryPayload, lead: NormalizedLead) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "firstName": lead.first_name,
            "lastName": lead.last_name,
            "source": payload.source or DEFAULT_SOURCE,
        }
        if lead.email:
            fields["email"] = lead.email
        if lead.phone:
            fields["phone"] = lead.phone
        if self.custom_fields:
            fields["customFields"] = self._custom_field_values(payload, lead)
        return fields

    def _custom_field_values(self, payload: InquiryPayload, lead: NormalizedLead) -> list[dict[str, str]]:
        keys = self.custom_fields or {}
        values: dict[str, Optional[str]] = {
            "property_name": payload.property_name,
            "asset_slug": payload.property_slug,
            "asset_category": lead.category,
            "source": payload.source or DEFAULT_SOURCE,
            "check_in": lead.check_in or payload.raw_start_date,
            "check_out": lead.check_out,
            "guests": str(lead.guests) if lead.guests else None,
            "budget": payload.budget_text,
            "creator_id": payload.creator_id,
            "charter_duration": payload.charter_duration,
            "charter_time": payload.charter_time or payload.pickup_time,
            "occasion": payload.occasion,
            "pickup_location": payload.pickup_location,
            "dropoff_location": payload.dropoff_location,
        }
        return [
            {"key": keys[name], "field_value": value}
            for name, value in values.items()
            if value and name in keys
        ]

    async def _sync_crm(self, payload: InquiryPayload, lead: NormalizedLead, result: IntakeResult) -> None:
        assert self.crm is not None
        trace_id = lead.trace_id

        contact = await self.crm.find_or_create_contact(self._contact_fields(payload, lead), trace_id=trace_id)
        result.contact_id = contact.id
        result.contact_created = contact.created
        logger.info(json.dumps({
            "event": "inquiry_contact_resolved",
            "trace_id": trace_id,
            "contact_id": contact.id,
            "created": contact.created,
        }))

        try:
            await self.crm.add_contact_tags(contact.id, list(lead.tags), trace_id=trace_id)
        except GhlApiError as e:
            logger.warning(json.dumps({"event": "inquiry_tags_failed", "trace_id": trace_id, "error": str(e)}))

        if self.pipeline_configured:
            try:
                await self._ensure_opportunity(payload, lead, result)
            except GhlApiError as e:
                logger.warning(json.dumps({
                    "event": "inquiry_opportunity_failed",
                    "trace_id": trace_id,
                    "error": str(e),
                }))
                result.warning = WARN_OPPORTUNITY_FAILED

        try:
            await self.crm.add_note(contact.id, build_lead_context_note(payload, lead), trace_id=trace_id)
        except GhlApiError as e:
            logger.warning(json.dumps({"event": "inquiry_note_failed", "trace_id": trace_id, "error": str(e)}))

    async def _ensure_opportunity(self, payload: InquiryPayload, lead: NormalizedLead, result: IntakeResult) -> None:
        """
        Reuse this contact's open opportunity for the same stay, else open
        one at NEW_INQUIRY. A reused opportunity keeps its current stage.
        """
        assert self.crm is not None and result.contact_id
        name = opportunity_name(payload, lead)

        try:
            existing = await self.crm.get_contact_opportunities(
                result.contact_id, self.pipeline_id, trace_id=lead.trace_id
            )
        except GhlApiError as e:
            # Lookup failure must not cost us the lead; fall through to create.
            logger.warning(json.dumps({
                "event": "inquiry_opportunity_lookup_failed",
                "trace_id": lead.trace_id,
                "error": str(e),
            }))
            existing = []

        for opp in existing:
            if (
                str(opp.get("status") or "open").lower() == "open"
                and opp.get("pipelineId", self.pipeline_id) == self.pipeline_id
                and opp.get("name") == name
            ):
                result.opportunity_id = opp.get("id")
                result.opportunity_reused = True
                logger.info(json.dumps({
                    "event": "inquiry_opportunity_reused",
                    "trace_id": lead.trace_id,
                    "opportunity_id": result.opportunity_id,
                    "stage": canonical_for_stage_id(self.stage_ids, opp.get("pipelineStageId")),
                }))
                return

        amount = extract_budget_amount(payload.budget_text)
        opp = await self.crm.create_opportunity(
            name=name,
            pipeline_id=self.pipeline_id,
            pipeline_stage_id=self.stage_ids[NEW_INQUIRY],
            contact_id=result.contact_id,
            monetary_value=float(amount) if amount else None,
            trace_id=lead.trace_id,
        )
        result.opportunity_id = opp.get("id")
        result.opportunity_reused = False
        logger.info(json.dumps({
            "event": "inquiry_opportunity_created",
            "trace_id": lead.trace_id,
            "opportunity_id": result.opportunity_id,
            "stage": NEW_INQUIRY,
        }))
