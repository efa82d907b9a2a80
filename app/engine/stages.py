"""
Canonical CRM pipeline stages and ordering.

Stages are string constants; the GHL stage ids they map to come from
configuration. Automation only ever moves an opportunity forward in
PIPELINE_ORDER. Operators may move it anywhere via move-stage.
"""
from __future__ import annotations

from typing import Any, Optional

# Canonical stages in pipeline order
NEW_INQUIRY = "new_inquiry"
QUOTE_SENT = "quote_sent"
REPLIED = "replied"
BOOKED = "booked"

# Terminal (from any stage, never automated)
LOST = "lost"

# Ordered pipeline (excludes lost, it's a terminal from any stage)
PIPELINE_ORDER: list[str] = [
    NEW_INQUIRY,
    QUOTE_SENT,
    REPLIED,
    BOOKED,
]

# stage -> position (1-indexed)
STAGE_INDEX: dict[str, int] = {s: i + 1 for i, s in enumerate(PIPELINE_ORDER)}
STAGE_INDEX[LOST] = 99

ALL_STAGES: frozenset[str] = frozenset(PIPELINE_ORDER) | {LOST}

# Name fragments used to suggest stage ids from a GHL pipeline definition
STAGE_NAME_HINTS: dict[str, tuple[str, ...]] = {
    NEW_INQUIRY: ("new", "inquiry", "lead"),
    QUOTE_SENT: ("quote", "sent"),
    REPLIED: ("replied", "contact"),
    BOOKED: ("booked", "won", "closed"),
}

STAGE_ENV_KEYS: dict[str, str] = {
    NEW_INQUIRY: "GHL_STAGE_NEW_INQUIRY",
    QUOTE_SENT: "GHL_STAGE_QUOTE_SENT",
    REPLIED: "GHL_STAGE_REPLIED",
    BOOKED: "GHL_STAGE_BOOKED",
}


def is_forward(from_stage: Optional[str], to_stage: str) -> bool:
    """True if moving from_stage -> to_stage is an automatic (non-demoting) move."""
    if to_stage == LOST or to_stage not in STAGE_INDEX:
        return False
    if from_stage is None:
        return True
    if from_stage == LOST:
        return False
    return STAGE_INDEX[to_stage] > STAGE_INDEX.get(from_stage, 0)


def canonical_for_stage_id(stage_ids: dict[str, str], stage_id: Optional[str]) -> Optional[str]:
    """Reverse-map a GHL pipelineStageId to its canonical stage."""
    if not stage_id:
        return None
    for stage, sid in stage_ids.items():
        if sid == stage_id:
            return stage
    return None


def resolve_stage_id(stage_ids: dict[str, str], stage: str) -> Optional[str]:
    """
    Accept either a canonical stage name or a raw GHL stage id.

    Canonical names are matched case-insensitively; anything else is
    passed through as a raw id.
    """
    key = stage.strip().lower()
    if key in ALL_STAGES:
        return stage_ids.get(key)
    return stage.strip() or None


def suggest_stage_ids(pipeline_stages: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """
    Guess which GHL stage plays each canonical role, by stage name.

    The new-inquiry role falls back to the first stage in the pipeline.
    """
    suggestions: dict[str, dict[str, Any]] = {}
    for stage, hints in STAGE_NAME_HINTS.items():
        for candidate in pipeline_stages:
            name = str(candidate.get("name") or "").lower()
            if any(h in name for h in hints):
                suggestions[stage] = candidate
                break
    if NEW_INQUIRY not in suggestions and pipeline_stages:
        suggestions[NEW_INQUIRY] = pipeline_stages[0]
    return suggestions
