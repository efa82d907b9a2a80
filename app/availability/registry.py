"""
Property registry: maps canonical property slugs to iCal feed URLs.

The presentation layer passes decorated slugs ("villa-x-preview-3") or
shortened ones ("niku-house" for "niku-house-mexico"), so lookup
normalizes first, then tries an exact key, then the first key that
extends the slug with a "-qualifier". Prefix candidates are scanned in
lexicographic order so the winner never depends on load order.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger(__name__)

_PREVIEW_SUFFIX = re.compile(r"-preview(?:-\d+)?$")


@dataclass(frozen=True)
class FeedConfigured:
    property_key: str
    feed_url: str


@dataclass(frozen=True)
class FeedUnconfigured:
    normalized_id: str
    property_key: Optional[str] = None  # set when the property is known but has no feed


FeedLookup = Union[FeedConfigured, FeedUnconfigured]


def normalize_identifier(raw_id: str) -> str:
    slug = (raw_id or "").strip().lower()
    return _PREVIEW_SUFFIX.sub("", slug)


def _entry_url(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        for key in ("ical_url", "icalUrl", "feed_url", "url"):
            val = value.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return None


class PropertyRegistry:
    def __init__(self, entries: Mapping[str, Any]):
        self._feeds: dict[str, Optional[str]] = {
            str(k).strip().lower(): _entry_url(v) for k, v in entries.items() if str(k).strip()
        }
        self._sorted_keys: list[str] = sorted(self._feeds)

    def __len__(self) -> int:
        return len(self._feeds)

    def keys(self) -> list[str]:
        return list(self._sorted_keys)

    def match_key(self, raw_id: str) -> Optional[str]:
        """Registry key for raw_id: exact match first, then first '<slug>-' prefix match."""
        slug = normalize_identifier(raw_id)
        if not slug:
            return None
        if slug in self._feeds:
            return slug
        prefix = slug + "-"
        for key in self._sorted_keys:
            if key.startswith(prefix):
                return key
        return None

    def lookup(self, raw_id: str) -> FeedLookup:
        slug = normalize_identifier(raw_id)
        key = self.match_key(raw_id)
        if key is None:
            return FeedUnconfigured(normalized_id=slug)
        url = self._feeds.get(key)
        if not url:
            return FeedUnconfigured(normalized_id=slug, property_key=key)
        return FeedConfigured(property_key=key, feed_url=url)

    def resolve(self, raw_id: str) -> Optional[str]:
        """Feed URL for raw_id, or None when no calendar is configured."""
        found = self.lookup(raw_id)
        if isinstance(found, FeedConfigured):
            return found.feed_url
        return None


def _as_mapping(data: Any, source: str) -> dict[str, Any]:
    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        # [{"slug": "...", "ical_url": "..."}]
        out: dict[str, Any] = {}
        for item in data:
            if isinstance(item, dict) and isinstance(item.get("slug"), str):
                out[item["slug"]] = item
        return out
    logger.warning("property registry %s is not an object or list, ignoring", source)
    return {}


def load_registry(path: str = "", inline_json: str = "") -> PropertyRegistry:
    """
    Build the registry from a JSON file and/or inline JSON.

    Inline entries override file entries with the same slug. A missing or
    unreadable source leaves the registry empty, which means every property
    reads as "no calendar configured".
    """
    entries: dict[str, Any] = {}

    if path:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            entries.update(_as_mapping(data, path))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("property registry file %s unreadable: %s", path, e)

    if inline_json.strip():
        try:
            entries.update(_as_mapping(json.loads(inline_json), "PROPERTY_FEEDS"))
        except json.JSONDecodeError as e:
            logger.warning("PROPERTY_FEEDS is not valid JSON: %s", e)

    registry = PropertyRegistry(entries)
    logger.info("property registry loaded: %d properties", len(registry))
    return registry
