from datetime import datetime, timezone

from app.engine.providers.ghl_webhook_parser import (
    CONTACT_UPDATED,
    INBOUND_MESSAGE,
    OTHER,
    STAGE_CHANGED,
    TAG_ADDED,
    classify_event_type,
    parse_ghl_event,
)


def test_classify_event_type():
    assert classify_event_type("OpportunityStageUpdate") == STAGE_CHANGED
    assert classify_event_type("opportunity.stageChange") == STAGE_CHANGED
    assert classify_event_type("InboundMessage") == INBOUND_MESSAGE
    assert classify_event_type("contact.tagAdded") == TAG_ADDED
    assert classify_event_type("ContactUpdate") == CONTACT_UPDATED
    assert classify_event_type("AppointmentCreate") == OTHER


def test_nested_opportunity_payload():
    event = parse_ghl_event({
        "type": "OpportunityStatusUpdate",
        "opportunity": {
            "id": "o-1",
            "contactId": "c-1",
            "pipelineStageId": "stg-booked",
            "locationId": "loc-1",
            "monetaryValue": "4500",
        },
        "timestamp": 1771113600000,
    })
    assert event.kind == STAGE_CHANGED
    assert event.opportunity_id == "o-1"
    assert event.contact_id == "c-1"
    assert event.raw_stage == "stg-booked"
    assert event.location_id == "loc-1"
    assert event.monetary_value == 4500.0
    assert event.occurred_at == datetime(2026, 2, 15, tzinfo=timezone.utc)


def test_event_id_is_stable_without_provider_id():
    payload = {"type": "InboundMessage", "locationId": "loc-1", "contactId": "c-1"}
    first = parse_ghl_event(payload)
    second = parse_ghl_event(dict(payload))
    assert first.source_event_id == second.source_event_id
    assert len(first.source_event_id) == 64
    assert first.opportunity_id is None
    assert first.raw_stage is None


def test_missing_type_is_unknown():
    event = parse_ghl_event({"locationId": "loc-1", "webhookId": "wh-9"})
    assert event.event_type == "unknown"
    assert event.kind == OTHER
    assert event.source_event_id == "wh-9"


def test_previous_stage_is_read_when_sent():
    event = parse_ghl_event({
        "type": "OpportunityStageUpdate",
        "data": {"pipelineStageId": "stg-new", "previousStageId": "stg-quote"},
    })
    assert event.raw_stage == "stg-new"
    assert event.previous_stage == "stg-quote"
