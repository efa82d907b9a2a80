from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class LeadForwarder:
    """Posts legacy lead payloads to the GHL inbound-webhook URL."""

    def __init__(self, url: str, *, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def deliver(self, payload: dict[str, Any]) -> bool:
        """True on a 2xx. Transport errors propagate as httpx.HTTPError."""
        if not self.url:
            return False
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.url, json=payload)
        logger.info(json.dumps({
            "event": "legacy_lead_forwarded",
            "status": resp.status_code,
            "body": resp.text[:200],
        }))
        return resp.is_success
