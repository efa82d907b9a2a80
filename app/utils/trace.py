"""
Trace ids, dedup keys and a recency window check.

Trace ids are opaque: unique, and roughly sortable by creation time.
"""
from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from typing import Optional, Union

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

DEDUP_DELIMITER = "|"
NO_DATE_SENTINEL = "no-date"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding expects a non-negative integer")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_short_id(length: int = 8) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_trace_id(now_ms: Optional[int] = None) -> str:
    """Format: trace_{base36 epoch millis}_{8 random base36 chars}"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"trace_{to_base36(now_ms)}_{generate_short_id()}"


def create_dedup_key(
    contact: str,
    property_id: Union[int, str],
    check_in: Optional[str] = None,
) -> str:
    """email (or phone) | property id | check-in date, or a sentinel when undated."""
    parts = [
        contact.strip().lower(),
        str(property_id).strip(),
        check_in or NO_DATE_SENTINEL,
    ]
    return DEDUP_DELIMITER.join(parts)


def is_within_window(
    timestamp: Union[datetime, str],
    window_minutes: float,
    now: Optional[datetime] = None,
) -> bool:
    """True if timestamp is less than window_minutes before now. Naive values are read as UTC."""
    if isinstance(timestamp, str):
        txt = timestamp.strip()
        if txt.endswith("Z"):
            txt = txt[:-1] + "+00:00"
        timestamp = datetime.fromisoformat(txt)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return (now - timestamp).total_seconds() < window_minutes * 60
