import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from app.availability.cache import AvailabilityCache
from app.availability.models import BlockedCalendar, BlockedRange
from app.availability.registry import (
    FeedConfigured,
    FeedUnconfigured,
    PropertyRegistry,
    load_registry,
    normalize_identifier,
)
from app.availability.resolver import MSG_FETCH_FAILED, MSG_UNCONFIGURED, AvailabilityResolver

FEED = "BEGIN:VCALENDAR\nBEGIN:VEVENT\nDTSTART:20260215\nDTEND:20260222\nEND:VEVENT\nEND:VCALENDAR\n"


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _registry():
    return PropertyRegistry({
        "niku-house-mexico": "https://cal.example/niku.ics",
        "niku-house-bali": "https://cal.example/niku-bali.ics",
        "casa-azul": {"ical_url": "https://cal.example/azul.ics"},
        "villa-no-cal": None,
    })


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_normalize_identifier_strips_preview_suffix():
    assert normalize_identifier("  Casa-Azul-Preview ") == "casa-azul"
    assert normalize_identifier("casa-azul-preview-3") == "casa-azul"
    assert normalize_identifier("preview-house") == "preview-house"


def test_exact_match_wins_over_prefix():
    reg = PropertyRegistry({"casa": "https://a", "casa-azul": "https://b"})
    assert reg.match_key("casa") == "casa"


def test_prefix_match_is_lexicographic():
    reg = _registry()
    assert reg.match_key("niku-house") == "niku-house-bali"
    assert reg.lookup("niku-house-mexico-preview") == FeedConfigured(
        property_key="niku-house-mexico", feed_url="https://cal.example/niku.ics"
    )


def test_known_property_without_feed():
    found = _registry().lookup("villa-no-cal")
    assert found == FeedUnconfigured(normalized_id="villa-no-cal", property_key="villa-no-cal")
    assert _registry().resolve("villa-no-cal") is None


def test_unknown_property():
    assert _registry().lookup("unknown-villa") == FeedUnconfigured(normalized_id="unknown-villa")


def test_load_registry_file_and_inline(tmp_path):
    path = tmp_path / "feeds.json"
    path.write_text(json.dumps([{"slug": "casa-azul", "ical_url": "https://file/azul.ics"},
                                {"slug": "villa-sol", "ical_url": "https://file/sol.ics"}]))
    reg = load_registry(str(path), json.dumps({"casa-azul": "https://inline/azul.ics"}))
    assert len(reg) == 2
    assert reg.resolve("casa-azul") == "https://inline/azul.ics"
    assert reg.resolve("villa-sol") == "https://file/sol.ics"


def test_load_registry_bad_sources_are_empty(tmp_path):
    reg = load_registry(str(tmp_path / "missing.json"), "{not json")
    assert len(reg) == 0


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

def test_cache_fresh_then_expired_then_stale():
    clock = FakeClock()
    cache = AvailabilityCache(ttl=timedelta(minutes=15), clock=clock)
    rng = BlockedRange(date(2026, 2, 15), date(2026, 2, 22))
    cache.put("casa-azul", [rng])

    assert cache.get("casa-azul").ranges == (rng,)
    clock.advance(minutes=15)
    assert cache.get("casa-azul") is None

    stale = cache.get_stale("casa-azul")
    assert stale.is_stale is True
    assert stale.ranges == (rng,)
    assert cache.get_stale("other") is None


def test_blocked_calendar_overlap_is_inclusive():
    cal = BlockedCalendar([BlockedRange(date(2026, 2, 15), date(2026, 2, 22))])
    assert cal.is_blocked(date(2026, 2, 15))
    assert cal.is_blocked(date(2026, 2, 22))
    assert not cal.is_blocked(date(2026, 2, 23))
    assert cal.has_blocked_between(date(2026, 2, 10), date(2026, 2, 15))
    assert not cal.has_blocked_between(date(2026, 2, 23), date(2026, 2, 28))
    assert len(cal.blocked_dates()) == 8


def test_blocked_range_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        BlockedRange(date(2026, 2, 22), date(2026, 2, 15))


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class FeedServer:
    def __init__(self, status=200, body=FEED, fail=False):
        self.status = status
        self.body = body
        self.fail = fail
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(self.status, text=self.body)


def _resolver(server, clock=None):
    cache = AvailabilityCache(clock=clock or FakeClock())
    return AvailabilityResolver(_registry(), cache, transport=httpx.MockTransport(server))


@pytest.mark.asyncio
async def test_fetch_then_cache_hit():
    server = FeedServer()
    resolver = _resolver(server)

    first = await resolver.get_blocked_ranges("casa-azul")
    assert first.cached is False
    assert first.ranges[0].start == date(2026, 2, 15)
    assert server.requests[0].headers["User-Agent"] == "ERentals-Availability-Checker/1.0"

    second = await resolver.get_blocked_ranges("Casa-Azul-preview")
    assert second.cached is True
    assert second.ranges == first.ranges
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_unconfigured_property_is_empty_with_message():
    server = FeedServer()
    result = await _resolver(server).get_blocked_ranges("unknown-villa")
    assert result.configured is False
    assert result.ranges == ()
    assert result.message == MSG_UNCONFIGURED
    assert server.requests == []


@pytest.mark.asyncio
async def test_failure_after_expiry_serves_stale():
    clock = FakeClock()
    server = FeedServer()
    resolver = _resolver(server, clock)
    await resolver.get_blocked_ranges("casa-azul")

    clock.advance(minutes=20)
    server.status = 503
    result = await resolver.get_blocked_ranges("casa-azul")
    assert result.stale is True
    assert result.cached is True
    assert result.failed is False
    assert result.ranges[0].end == date(2026, 2, 22)


@pytest.mark.asyncio
async def test_failure_without_cache_is_reported():
    result = await _resolver(FeedServer(fail=True)).get_blocked_ranges("casa-azul")
    assert result.failed is True
    assert result.ranges == ()
    assert result.message == MSG_FETCH_FAILED
