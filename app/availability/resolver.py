"""
Availability resolution: slug -> blocked ranges.

Composes the property registry, the availability cache and the iCal
parser. This is the only place that talks to calendar feed providers.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from app.availability.cache import AvailabilityCache
from app.availability.ical_parser import parse_ical
from app.availability.models import AvailabilitySnapshot, BlockedRange
from app.availability.registry import FeedConfigured, PropertyRegistry

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "ERentals-Availability-Checker/1.0"

MSG_UNCONFIGURED = "No availability calendar configured for this property"
MSG_FETCH_FAILED = "Failed to fetch availability"


class FeedFetchError(RuntimeError):
    pass


@dataclass(frozen=True)
class AvailabilityResult:
    property_key: str
    ranges: tuple[BlockedRange, ...] = ()
    configured: bool = True
    cached: bool = False
    stale: bool = False
    failed: bool = False
    fetched_at: Optional[datetime] = None
    message: Optional[str] = None


class AvailabilityResolver:
    def __init__(
        self,
        registry: PropertyRegistry,
        cache: AvailabilityCache,
        *,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def fetch_feed(self, url: str) -> str:
        """GET the feed body. Any transport error, timeout or non-2xx is a FeedFetchError."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url, headers={"User-Agent": self.user_agent})
        except httpx.HTTPError as e:
            raise FeedFetchError(f"feed request failed: {type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise FeedFetchError(f"Failed to fetch iCal: {resp.status_code}")
        return resp.text

    def _from_snapshot(self, snap: AvailabilitySnapshot, *, cached: bool) -> AvailabilityResult:
        return AvailabilityResult(
            property_key=snap.property_key,
            ranges=snap.ranges,
            configured=True,
            cached=cached,
            stale=snap.is_stale,
            fetched_at=snap.fetched_at,
        )

    async def get_blocked_ranges(self, raw_id: str) -> AvailabilityResult:
        found = self.registry.lookup(raw_id)
        if not isinstance(found, FeedConfigured):
            return AvailabilityResult(
                property_key=found.property_key or found.normalized_id,
                configured=False,
                message=MSG_UNCONFIGURED,
            )

        key = found.property_key
        fresh = self.cache.get(key)
        if fresh is not None:
            return self._from_snapshot(fresh, cached=True)

        try:
            text = await self.fetch_feed(found.feed_url)
        except FeedFetchError as e:
            previous = self.cache.get_stale(key)
            logger.warning(json.dumps({
                "event": "availability_fetch_failed",
                "property_key": key,
                "error": str(e),
                "stale_fallback": previous is not None,
            }))
            if previous is not None:
                return self._from_snapshot(previous, cached=True)
            return AvailabilityResult(
                property_key=key,
                configured=True,
                failed=True,
                message=MSG_FETCH_FAILED,
            )

        ranges = parse_ical(text)
        snap = self.cache.put(key, ranges)
        logger.info(json.dumps({
            "event": "availability_refreshed",
            "property_key": key,
            "ranges": len(ranges),
        }))
        return self._from_snapshot(snap, cached=False)
