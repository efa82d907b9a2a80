"""
Operator endpoints: manual CRM actions and integration setup helpers.

Guarded by the x-ops-key header when OPS_SECRET is set. Without a secret
the guard is off (open mode); main.py warns about that at startup.
"""
from __future__ import annotations

import json
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.adapters.ghl.client import GhlApiError, GhlClient
from app.availability.registry import PropertyRegistry
from app.config import Settings
from app.dependencies import get_crm_client, get_registry, get_settings
from app.engine.stages import PIPELINE_ORDER, STAGE_ENV_KEYS, resolve_stage_id, suggest_stage_ids
from app.utils.trace import generate_trace_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ops", tags=["ops"])

NOT_SET = "(not set)"
GHL_UNCONFIGURED = "GHL not configured. Set GHL_API_KEY and GHL_LOCATION_ID environment variables."


class OpsUnauthorized(Exception):
    def __init__(self, trace_id: str):
        super().__init__("Unauthorized")
        self.trace_id = trace_id


class AddNoteRequest(BaseModel):
    contact_id: str = ""
    note: str = ""


class AddTagRequest(BaseModel):
    contact_id: str = ""
    tags: list[str] = []


class MoveStageRequest(BaseModel):
    opportunity_id: str = ""
    stage_id: Optional[str] = None
    stage: Optional[str] = None


def require_ops_key(
    x_ops_key: Optional[str] = Header(default=None),
    cfg: Settings = Depends(get_settings),
) -> str:
    """Returns the request trace id once the caller is let through."""
    trace_id = generate_trace_id()
    if not cfg.ops_secured:
        return trace_id
    if not x_ops_key or not secrets.compare_digest(x_ops_key.encode("utf-8"), cfg.ops_secret.encode("utf-8")):
        logger.warning(json.dumps({"event": "ops_unauthorized", "trace_id": trace_id}))
        raise OpsUnauthorized(trace_id)
    return trace_id


def _fail(status_code: int, error: str, trace_id: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": error, "trace_id": trace_id})


def _crm_error(e: GhlApiError, trace_id: str, action: str) -> JSONResponse:
    logger.error(json.dumps({
        "event": "ops_crm_error",
        "action": action,
        "trace_id": trace_id,
        "status": e.status_code,
        "error": e.message,
    }))
    status = e.status_code if 400 <= e.status_code <= 599 else 500
    return _fail(status, e.message, trace_id)


@router.post("/add-note")
async def add_note(
    body: AddNoteRequest,
    trace_id: str = Depends(require_ops_key),
    crm: Optional[GhlClient] = Depends(get_crm_client),
):
    if not body.contact_id or not body.note.strip():
        return _fail(400, "Missing required fields: contact_id, note", trace_id)
    if crm is None:
        return _fail(500, GHL_UNCONFIGURED, trace_id)
    try:
        note = await crm.add_note(body.contact_id, body.note, trace_id=trace_id)
    except GhlApiError as e:
        return _crm_error(e, trace_id, "add_note")

    logger.info(json.dumps({"event": "ops_note_added", "trace_id": trace_id, "contact_id": body.contact_id}))
    return {"ok": True, "trace_id": trace_id, "note_id": note.get("id")}


@router.post("/add-tag")
async def add_tag(
    body: AddTagRequest,
    trace_id: str = Depends(require_ops_key),
    crm: Optional[GhlClient] = Depends(get_crm_client),
):
    tags = [t.strip() for t in body.tags if t and t.strip()]
    if not body.contact_id or not tags:
        return _fail(400, "Missing required fields: contact_id, tags (non-empty list)", trace_id)
    if crm is None:
        return _fail(500, GHL_UNCONFIGURED, trace_id)
    try:
        applied = await crm.add_contact_tags(body.contact_id, tags, trace_id=trace_id)
    except GhlApiError as e:
        return _crm_error(e, trace_id, "add_tag")

    logger.info(json.dumps({
        "event": "ops_tags_added",
        "trace_id": trace_id,
        "contact_id": body.contact_id,
        "tags": tags,
    }))
    return {"ok": True, "trace_id": trace_id, "tags": applied}


@router.post("/move-stage")
async def move_stage(
    body: MoveStageRequest,
    trace_id: str = Depends(require_ops_key),
    crm: Optional[GhlClient] = Depends(get_crm_client),
    cfg: Settings = Depends(get_settings),
):
    if not body.opportunity_id or not (body.stage_id or body.stage):
        return _fail(400, "Missing required fields: opportunity_id, stage_id or stage", trace_id)

    stage_id = body.stage_id or resolve_stage_id(cfg.stage_ids, body.stage or "")
    if not stage_id:
        return _fail(400, f"Stage not configured: {body.stage}", trace_id)
    if crm is None:
        return _fail(500, GHL_UNCONFIGURED, trace_id)

    try:
        opp = await crm.move_opportunity_stage(body.opportunity_id, stage_id, trace_id=trace_id)
    except GhlApiError as e:
        return _crm_error(e, trace_id, "move_stage")

    logger.info(json.dumps({
        "event": "ops_stage_moved",
        "trace_id": trace_id,
        "opportunity_id": body.opportunity_id,
        "stage_id": stage_id,
    }))
    return {
        "ok": True,
        "trace_id": trace_id,
        "opportunity_id": body.opportunity_id,
        "stage_id": opp.get("pipelineStageId") or stage_id,
    }


@router.get("/ghl-bootstrap")
async def ghl_bootstrap(
    trace_id: str = Depends(require_ops_key),
    crm: Optional[GhlClient] = Depends(get_crm_client),
):
    """
    List pipelines and stages, and suggest GHL_PIPELINE_ID / GHL_STAGE_*
    values for the first pipeline based on stage names.
    """
    if crm is None:
        return _fail(500, GHL_UNCONFIGURED, trace_id)
    try:
        raw = await crm.list_pipelines(trace_id=trace_id)
    except GhlApiError as e:
        return _crm_error(e, trace_id, "ghl_bootstrap")

    pipelines = [
        {
            "id": p.get("id"),
            "name": p.get("name"),
            "stages": [
                {"id": s.get("id"), "name": s.get("name"), "position": s.get("position")}
                for s in (p.get("stages") or [])
            ],
        }
        for p in raw
    ]

    env_suggestions: list[str] = []
    if pipelines:
        first = pipelines[0]
        env_suggestions.append(f"GHL_PIPELINE_ID={first['id']}")
        suggested = suggest_stage_ids(first["stages"])
        for stage in PIPELINE_ORDER:
            if stage in suggested:
                s = suggested[stage]
                env_suggestions.append(f"{STAGE_ENV_KEYS[stage]}={s['id']}  # {s['name']}")

    logger.info(json.dumps({"event": "ops_bootstrap", "trace_id": trace_id, "pipelines": len(pipelines)}))
    return {
        "ok": True,
        "trace_id": trace_id,
        "location_id": crm.location_id,
        "pipelines": pipelines,
        "env_suggestions": env_suggestions,
    }


@router.get("/config")
async def config_status(
    trace_id: str = Depends(require_ops_key),
    cfg: Settings = Depends(get_settings),
    registry: PropertyRegistry = Depends(get_registry),
):
    stage_ids = cfg.stage_ids
    return {
        "ok": True,
        "trace_id": trace_id,
        "env": cfg.env,
        "ghl_configured": cfg.ghl_configured,
        "pipeline_configured": cfg.pipeline_configured,
        "ops_secured": cfg.ops_secured,
        "pipeline_id": cfg.ghl_pipeline_id or NOT_SET,
        "stages": {stage: stage_ids.get(stage, NOT_SET) for stage in PIPELINE_ORDER},
        "custom_fields_enabled": cfg.ghl_send_custom_fields,
        "webhook_secured": bool(cfg.ghl_webhook_secret),
        "availability_properties": registry.keys(),
    }
