from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

STAGE_CHANGED = "stage_changed"
INBOUND_MESSAGE = "inbound_message"
TAG_ADDED = "tag_added"
CONTACT_UPDATED = "contact_updated"
OTHER = "other"


@dataclass(frozen=True)
class GhlEvent:
    event_type: str
    kind: str
    location_id: Optional[str]
    contact_id: Optional[str]
    opportunity_id: Optional[str]
    raw_stage: Optional[str]
    previous_stage: Optional[str]
    occurred_at: datetime
    source_event_id: str
    monetary_value: Optional[float]
    raw_payload: dict[str, Any]


def _deep_get(data: Any, *path: str) -> Any:
    cur = data
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _first_str(*values: Any) -> Optional[str]:
    for val in values:
        if isinstance(val, str) and val.strip():
            return val.strip()
    return None


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, (int, float)):
        # GHL sends epoch millis in some payloads
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        txt = value.strip()
        if txt.endswith("Z"):
            txt = txt[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(txt)
        except ValueError:
            return datetime.now(tz=timezone.utc)
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return datetime.now(tz=timezone.utc)


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _payload_hash(payload: dict[str, Any]) -> str:
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def classify_event_type(event_type: str) -> str:
    """
    'OpportunityStageUpdate', 'opportunity.stageChange' -> stage_changed
    'InboundMessage', 'message.inbound'                 -> inbound_message
    'ContactTagUpdate', 'contact.tagAdded'              -> tag_added
    """
    t = event_type.lower()
    if "stage" in t or "status" in t:
        return STAGE_CHANGED
    if "inbound" in t or "message" in t or "reply" in t:
        return INBOUND_MESSAGE
    if "tag" in t:
        return TAG_ADDED
    if "contact" in t:
        return CONTACT_UPDATED
    return OTHER


def parse_ghl_event(payload: dict[str, Any]) -> GhlEvent:
    """Flatten the several GHL webhook shapes (top-level ids, nested data/opportunity) into one event."""
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    opportunity = payload.get("opportunity") if isinstance(payload.get("opportunity"), dict) else {}

    event_type = _first_str(payload.get("type"), payload.get("event"), payload.get("eventType")) or "unknown"

    opportunity_id = _first_str(
        payload.get("opportunityId"),
        payload.get("opportunity_id"),
        opportunity.get("id"),
        data.get("opportunityId"),
    )
    contact_id = _first_str(
        payload.get("contactId"),
        payload.get("contact_id"),
        _deep_get(payload, "contact", "id"),
        opportunity.get("contactId"),
        data.get("contactId"),
    )
    raw_stage = _first_str(
        payload.get("pipelineStageId"),
        payload.get("stageId"),
        opportunity.get("pipelineStageId"),
        data.get("pipelineStageId"),
        data.get("stageId"),
    )
    previous_stage = _first_str(
        payload.get("previousPipelineStageId"),
        payload.get("previousStageId"),
        data.get("previousPipelineStageId"),
        data.get("previousStageId"),
    )
    location_id = _first_str(
        payload.get("locationId"),
        payload.get("location_id"),
        _deep_get(payload, "location", "id"),
        opportunity.get("locationId"),
    )

    return GhlEvent(
        event_type=event_type,
        kind=classify_event_type(event_type),
        location_id=location_id,
        contact_id=contact_id,
        opportunity_id=opportunity_id,
        raw_stage=raw_stage,
        previous_stage=previous_stage,
        occurred_at=_parse_dt(payload.get("timestamp") or payload.get("dateAdded") or data.get("timestamp")),
        source_event_id=_first_str(payload.get("webhookId"), payload.get("eventId"), payload.get("id"))
        or _payload_hash(payload),
        monetary_value=_to_float(
            payload.get("monetaryValue")
            if payload.get("monetaryValue") is not None
            else opportunity.get("monetaryValue")
        ),
        raw_payload=payload,
    )
