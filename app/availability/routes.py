from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.availability.resolver import AvailabilityResolver
from app.booking.date_range import DateRangeSelector
from app.dependencies import get_availability_resolver

router = APIRouter(prefix="/api", tags=["availability"])


def _iso(dt: Optional[datetime]) -> str:
    dt = dt or datetime.now(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


@router.get("/availability")
async def get_availability(
    slug: Optional[str] = None,
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
) -> dict[str, Any]:
    """
    Blocked date ranges for a property.

    Unknown or calendar-less properties get 200 with an empty list. A failed
    fetch with nothing cached also answers 200 but carries "error", so the
    client can tell "open" apart from "unknown".
    """
    if not slug or not slug.strip():
        raise HTTPException(status_code=400, detail="Property slug is required")

    result = await resolver.get_blocked_ranges(slug)

    body: dict[str, Any] = {
        "propertySlug": slug,
        "blockedRanges": [r.to_dict() for r in result.ranges],
        "lastUpdated": _iso(result.fetched_at),
        "cached": result.cached,
    }
    if result.stale:
        body["stale"] = True
    if not result.configured:
        body["message"] = result.message
    if result.failed:
        body["error"] = result.message
    return body


@router.get("/availability/calendar")
async def get_availability_calendar(
    slug: Optional[str] = None,
    min_nights: int = Query(..., ge=0),
    year: Optional[int] = Query(default=None, ge=1970, le=9999),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
) -> dict[str, Any]:
    """Month grid (42 cells) for the booking widget, with blocked days applied."""
    if not slug or not slug.strip():
        raise HTTPException(status_code=400, detail="Property slug is required")
    if (year is None) != (month is None):
        raise HTTPException(status_code=400, detail="year and month must be given together")

    result = await resolver.get_blocked_ranges(slug)
    today = date.today()
    selector = DateRangeSelector(min_nights=min_nights, blocked=result.ranges, min_date=today, today=today)
    if year is not None and month is not None:
        selector.year, selector.month = year, month

    return {
        "propertySlug": slug,
        "title": selector.title,
        "weekdays": selector.weekday_labels(),
        "minNights": min_nights,
        "cells": [
            {
                "date": c.date.isoformat(),
                "currentMonth": c.is_current_month,
                "today": c.is_today,
                "disabled": c.is_disabled,
                "blocked": c.is_blocked,
            }
            for c in selector.grid()
        ],
        "cached": result.cached,
        "stale": result.stale,
    }
