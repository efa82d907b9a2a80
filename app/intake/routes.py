from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.dependencies import get_intake_pipeline, get_lead_forwarder
from app.intake.forwarder import LeadForwarder
from app.intake.models import InquiryPayload
from app.intake.normalize import normalize_email
from app.intake.pipeline import LeadIntakePipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["intake"])

LEGACY_REQUIRED = ["firstName", "lastName", "email", "phone"]
LEGACY_SOURCE = "ERentals Exclusive App"


class LegacyLeadPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    property_name: Optional[str] = Field(default=None, alias="propertyName")
    source: Optional[str] = None
    submitted_at: Optional[str] = Field(default=None, alias="submittedAt")


@router.post("/inquiry")
async def submit_inquiry(
    payload: InquiryPayload,
    pipeline: LeadIntakePipeline = Depends(get_intake_pipeline),
):
    result = await pipeline.submit(payload)
    return JSONResponse(status_code=200 if result.ok else 400, content=result.to_dict())


@router.post("/lead")
async def submit_legacy_lead(
    payload: LegacyLeadPayload,
    forwarder: LeadForwarder = Depends(get_lead_forwarder),
):
    """
    Older form endpoint: validate, then hand the lead to the GHL inbound
    webhook as-is. Delivery problems never fail the request.
    """
    if not all((payload.first_name, payload.last_name, payload.email, payload.phone)):
        return JSONResponse(
            status_code=400,
            content={"error": "Missing required fields", "required": LEGACY_REQUIRED},
        )
    if normalize_email(payload.email) is None:
        return JSONResponse(status_code=400, content={"error": "Invalid email format"})

    body = payload.model_dump(by_alias=True, exclude_none=True)
    body["source"] = payload.source or LEGACY_SOURCE
    body["submittedAt"] = payload.submitted_at or datetime.now(timezone.utc).isoformat()

    logger.info(json.dumps({
        "event": "legacy_lead_received",
        "email": payload.email,
        "property_name": payload.property_name,
    }))

    try:
        delivered = await forwarder.deliver(body)
    except httpx.HTTPError as e:
        logger.error(json.dumps({"event": "legacy_lead_forward_failed", "error": f"{type(e).__name__}: {e}"}))
        return {
            "success": True,
            "message": "Inquiry received (processing delayed)",
            "webhookDelivered": False,
            "error": str(e) or type(e).__name__,
        }

    return {
        "success": True,
        "message": "Inquiry submitted successfully",
        "webhookDelivered": delivered,
        "leadId": f"lead_{int(time.time() * 1000)}",
    }
