"""
Structured JSON logging for lead intake.

One flat, queryable record per inquiry submission, keyed by trace_id.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

# Dedicated logger for trace events (separate from operational logs)
_trace_logger: Optional[logging.Logger] = None

TRACE_LOGGER_NAME = "erentals.trace"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # record.msg is already a dict for our trace logs
        if isinstance(record.msg, dict):
            return json.dumps(record.msg, default=str, ensure_ascii=False)
        return super().format(record)


def _get_trace_logger() -> logging.Logger:
    """Get or create the trace logger with JSON formatting."""
    global _trace_logger
    if _trace_logger is not None:
        return _trace_logger

    _trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
    _trace_logger.setLevel(logging.INFO)
    _trace_logger.propagate = False  # Don't bubble to root logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(JsonFormatter())
    _trace_logger.addHandler(handler)

    return _trace_logger


def log_intake_run(
    *,
    trace_id: str,
    dedup_key: str,
    property_id: str,
    category: Optional[str],
    outcome: str,
    contact_id: Optional[str] = None,
    contact_created: Optional[bool] = None,
    opportunity_id: Optional[str] = None,
    opportunity_reused: Optional[bool] = None,
    warning: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> None:
    """
    Log a single structured record for an inquiry submission.

    Args:
        trace_id: Per-submission trace id returned to the caller
        dedup_key: contact|property|check-in key
        property_id: Property identifier from the form
        category: villa / yacht / transport
        outcome: "synced", "partial", "crm_unavailable", "crm_unconfigured", "rejected"
        contact_id: GHL contact id, if resolved
        contact_created: True if the contact was created by this run
        opportunity_id: GHL opportunity id, if any
        opportunity_reused: True if an existing open opportunity was reused
        warning: Degradation warning returned to the caller
        tags: Tags applied to the contact
    """
    logger = _get_trace_logger()

    record: dict[str, Any] = {
        "type": "intake_run",
        "ts": datetime.now(timezone.utc).isoformat(),
        "trace_id": trace_id,
        "dedup_key": dedup_key,
        "property_id": property_id,
        "category": category,
        "outcome": outcome,
    }

    # Optional fields (only include if present)
    if contact_id is not None:
        record["contact_id"] = contact_id
        record["contact_created"] = contact_created

    if opportunity_id is not None:
        record["opportunity_id"] = opportunity_id
        record["opportunity_reused"] = opportunity_reused

    if warning is not None:
        record["warning"] = warning

    if tags is not None:
        record["tags"] = tags

    logger.info(record)
