from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from app.adapters.ghl.client import GhlClient
from app.availability.cache import AvailabilityCache
from app.availability.registry import PropertyRegistry, load_registry
from app.availability.resolver import AvailabilityResolver
from app.config import Settings, settings
from app.intake.forwarder import LeadForwarder
from app.intake.pipeline import LeadIntakePipeline


def get_settings() -> Settings:
    return settings


@lru_cache()
def get_registry() -> PropertyRegistry:
    return load_registry(settings.property_feeds_path, settings.property_feeds_json)


@lru_cache()
def get_availability_cache() -> AvailabilityCache:
    return AvailabilityCache(ttl=timedelta(seconds=settings.availability_cache_ttl_seconds))


@lru_cache()
def get_availability_resolver() -> AvailabilityResolver:
    return AvailabilityResolver(
        get_registry(),
        get_availability_cache(),
        timeout=settings.feed_timeout_seconds,
        user_agent=settings.feed_user_agent,
    )


@lru_cache()
def get_crm_client() -> Optional[GhlClient]:
    """None when GHL credentials are missing; callers degrade instead of failing."""
    if not settings.ghl_configured:
        return None
    return GhlClient(
        settings.ghl_api_key,
        settings.ghl_location_id,
        base_url=settings.ghl_base_url,
        timeout=settings.ghl_timeout_seconds,
    )


@lru_cache()
def get_intake_pipeline() -> LeadIntakePipeline:
    return LeadIntakePipeline(
        get_crm_client(),
        pipeline_id=settings.ghl_pipeline_id,
        stage_ids=settings.stage_ids,
        crm_budget_seconds=settings.crm_budget_seconds,
        default_country_code=settings.default_country_code,
        custom_fields=settings.custom_fields if settings.ghl_send_custom_fields else None,
    )


@lru_cache()
def get_lead_forwarder() -> LeadForwarder:
    return LeadForwarder(settings.ghl_inbound_webhook_url, timeout=settings.ghl_timeout_seconds)
