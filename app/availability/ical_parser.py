"""
iCalendar feed -> blocked date ranges.

Feeds come from several booking providers and are not trusted to be
well-formed. Parsing walks content lines once; a VEVENT that lacks a
usable DTSTART or DTEND is dropped, and nothing here ever raises.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterator, Optional

from app.availability.models import BlockedRange

logger = logging.getLogger(__name__)

_DATE_TOKEN = re.compile(r"^(\d{4})(\d{2})(\d{2})")


@dataclass
class _EventBlock:
    props: dict[str, str] = field(default_factory=dict)
    nested_depth: int = 0


def _unfold(text: str) -> Iterator[str]:
    """Yield logical content lines (RFC 5545 folding: continuation lines start with space/tab)."""
    current: Optional[str] = None
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if raw[:1] in (" ", "\t") and current is not None:
            current += raw[1:]
            continue
        if current is not None:
            yield current
        current = raw
    if current is not None:
        yield current


def _split_content_line(line: str) -> Optional[tuple[str, str]]:
    """'DTSTART;VALUE=DATE:20260215' -> ('DTSTART', '20260215')"""
    if ":" not in line:
        return None
    head, value = line.split(":", 1)
    name = head.split(";", 1)[0].strip().upper()
    if not name:
        return None
    return name, value.strip()


def parse_ical_date(value: Optional[str]) -> Optional[date]:
    """First 8 digits as YYYYMMDD; time-of-day is ignored."""
    if not value:
        return None
    m = _DATE_TOKEN.match(value)
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def _unescape_text(value: str) -> str:
    return (
        value.replace("\\n", " ")
        .replace("\\N", " ")
        .replace("\\,", ",")
        .replace("\\;", ";")
        .replace("\\\\", "\\")
    )


def _block_to_range(block: _EventBlock) -> Optional[BlockedRange]:
    start = parse_ical_date(block.props.get("DTSTART"))
    end = parse_ical_date(block.props.get("DTEND"))
    if start is None or end is None:
        return None
    if end < start:
        start, end = end, start
    summary = block.props.get("SUMMARY")
    label = _unescape_text(summary).strip() if summary else None
    return BlockedRange(start=start, end=end, label=label or None)


def parse_ical(feed_text: Any) -> list[BlockedRange]:
    """
    Parse feed text into BlockedRange records.

    Output order follows the feed; ranges may overlap.
    """
    if not isinstance(feed_text, str) or not feed_text:
        return []

    ranges: list[BlockedRange] = []
    block: Optional[_EventBlock] = None
    dropped = 0

    for line in _unfold(feed_text):
        parsed = _split_content_line(line)
        if parsed is None:
            continue
        name, value = parsed
        upper_value = value.upper()

        if name == "BEGIN":
            if upper_value == "VEVENT":
                if block is not None:
                    dropped += 1  # previous VEVENT never closed
                block = _EventBlock()
            elif block is not None:
                block.nested_depth += 1  # VALARM etc.
            continue

        if name == "END":
            if block is None:
                continue
            if block.nested_depth:
                block.nested_depth -= 1
                continue
            if upper_value == "VEVENT":
                rng = _block_to_range(block)
                if rng is None:
                    dropped += 1
                else:
                    ranges.append(rng)
                block = None
            continue

        if block is None or block.nested_depth:
            continue
        # First occurrence wins for repeated properties
        block.props.setdefault(name, value)

    if block is not None:
        dropped += 1

    if dropped:
        logger.debug("ical_parse dropped=%d kept=%d", dropped, len(ranges))
    return ranges
