from __future__ import annotations

import json
import logging
import secrets
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from app.config import Settings
from app.dependencies import get_settings
from app.engine.providers.ghl_webhook_parser import GhlEvent, parse_ghl_event
from app.engine.stages import LOST, canonical_for_stage_id, is_forward
from app.utils.trace import generate_trace_id, is_within_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ghl", tags=["ghl"])

# events older than this are logged as delayed (GHL retries)
DELAYED_EVENT_MINUTES = 60


def _authenticate(event: GhlEvent, cfg: Settings, provided_secret: Optional[str], trace_id: str) -> None:
    if cfg.ghl_webhook_secret:
        if not provided_secret or not secrets.compare_digest(
            provided_secret.encode("utf-8"), cfg.ghl_webhook_secret.encode("utf-8")
        ):
            logger.warning(json.dumps({"event": "ghl_webhook_bad_secret", "trace_id": trace_id}))
            raise HTTPException(status_code=401, detail="Webhook authentication failed")

    if cfg.ghl_location_id:
        if not event.location_id:
            raise HTTPException(status_code=401, detail="Missing locationId")
        if event.location_id != cfg.ghl_location_id:
            logger.warning(json.dumps({
                "event": "ghl_webhook_location_mismatch",
                "trace_id": trace_id,
                "location_id": event.location_id,
            }))
            raise HTTPException(status_code=401, detail="Webhook authentication failed")


@router.post("/events")
async def receive_ghl_event(
    request: Request,
    x_ghl_secret: Optional[str] = Header(default=None),
    cfg: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Inbound GHL webhook (stage changes, inbound messages, tag updates).

    Events are verified, normalized and logged; nothing is persisted.
    """
    trace_id = generate_trace_id()
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook payload must be valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook payload must be a JSON object")

    event = parse_ghl_event(payload)
    _authenticate(event, cfg, x_ghl_secret, trace_id)

    canonical_stage = None
    if event.raw_stage:
        canonical_stage = canonical_for_stage_id(cfg.stage_ids, event.raw_stage)
        if not canonical_stage:
            logger.warning(json.dumps({
                "event": "ghl_webhook_unmapped_stage",
                "trace_id": trace_id,
                "raw_stage": event.raw_stage,
                "source_event_id": event.source_event_id,
            }))

    previous_stage = canonical_for_stage_id(cfg.stage_ids, event.previous_stage)
    regressed = bool(
        canonical_stage
        and previous_stage
        and canonical_stage not in (LOST, previous_stage)
        and not is_forward(previous_stage, canonical_stage)
    )
    if regressed:
        logger.warning(json.dumps({
            "event": "ghl_webhook_stage_regressed",
            "trace_id": trace_id,
            "opportunity_id": event.opportunity_id,
            "from_stage": previous_stage,
            "to_stage": canonical_stage,
        }))

    if not is_within_window(event.occurred_at, DELAYED_EVENT_MINUTES):
        logger.info(json.dumps({
            "event": "ghl_webhook_delayed",
            "trace_id": trace_id,
            "source_event_id": event.source_event_id,
            "occurred_at": event.occurred_at.isoformat(),
        }))

    logger.info(json.dumps({
        "event": "ghl_webhook_received",
        "trace_id": trace_id,
        "type": event.event_type,
        "kind": event.kind,
        "contact_id": event.contact_id,
        "opportunity_id": event.opportunity_id,
        "canonical_stage": canonical_stage,
        "source_event_id": event.source_event_id,
        "occurred_at": event.occurred_at.isoformat(),
    }))

    return {
        "ok": True,
        "trace_id": trace_id,
        "message": "Event received",
        "event_type": event.kind,
        "canonical_stage": canonical_stage,
        "previous_stage": previous_stage,
        "regressed": regressed,
    }
