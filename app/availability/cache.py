"""
Per-property availability cache with stale fallback.

Entries are immutable snapshots replaced wholesale on put, so concurrent
handlers sharing one cache get last-write-wins without locking. Nothing
is evicted except by TTL expiry; the property catalog is small.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from app.availability.models import AvailabilitySnapshot, BlockedRange

DEFAULT_TTL = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityCache:
    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, AvailabilitySnapshot] = {}

    def _is_fresh(self, snap: AvailabilitySnapshot) -> bool:
        return self._clock() < snap.fetched_at + self.ttl

    def get(self, key: str) -> Optional[AvailabilitySnapshot]:
        """Fresh snapshot for key, or None on miss/expiry."""
        snap = self._entries.get(key)
        if snap is None or not self._is_fresh(snap):
            return None
        return snap

    def get_stale(self, key: str) -> Optional[AvailabilitySnapshot]:
        """Previous snapshot regardless of age, marked stale. Used only after a failed refresh."""
        snap = self._entries.get(key)
        if snap is None:
            return None
        return replace(snap, is_stale=True)

    def put(self, key: str, ranges: Iterable[BlockedRange]) -> AvailabilitySnapshot:
        snap = AvailabilitySnapshot(
            property_key=key,
            ranges=tuple(ranges),
            fetched_at=self._clock(),
            is_stale=False,
        )
        self._entries[key] = snap
        return snap

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
