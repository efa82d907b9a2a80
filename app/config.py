import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()  # loads .env for local dev


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    env: str = os.getenv("ENV", "local")
    service_name: str = os.getenv("SERVICE_NAME", "erentals-intake")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # GoHighLevel CRM
    ghl_api_key: str = os.getenv("GHL_API_KEY", "")
    ghl_location_id: str = os.getenv("GHL_LOCATION_ID", "")
    ghl_base_url: str = os.getenv("GHL_BASE_URL", "https://services.leadconnectorhq.com")
    ghl_pipeline_id: str = os.getenv("GHL_PIPELINE_ID", "")
    ghl_stage_new_inquiry: str = os.getenv("GHL_STAGE_NEW_INQUIRY", "")
    ghl_stage_quote_sent: str = os.getenv("GHL_STAGE_QUOTE_SENT", "")
    ghl_stage_replied: str = os.getenv("GHL_STAGE_REPLIED", "")
    ghl_stage_booked: str = os.getenv("GHL_STAGE_BOOKED", "")
    ghl_timeout_seconds: float = _env_float("GHL_TIMEOUT_SECONDS", 15.0)
    crm_budget_seconds: float = _env_float("CRM_BUDGET_SECONDS", 25.0)
    ghl_inbound_webhook_url: str = os.getenv(
        "GHL_INBOUND_WEBHOOK_URL",
        "https://services.leadconnectorhq.com/hooks/erentals-inquiry",
    )
    ghl_webhook_secret: str = os.getenv("GHL_WEBHOOK_SECRET", "")
    ghl_send_custom_fields: bool = _env_bool("GHL_SEND_CUSTOM_FIELDS")

    # GHL custom field keys
    custom_fields: dict[str, str] = field(default_factory=lambda: {
        "property_name": os.getenv("GHL_FIELD_PROPERTY_NAME", "property_name"),
        "check_in": os.getenv("GHL_FIELD_CHECK_IN", "check_in"),
        "check_out": os.getenv("GHL_FIELD_CHECK_OUT", "check_out"),
        "guests": os.getenv("GHL_FIELD_GUESTS", "guest_count"),
        "budget": os.getenv("GHL_FIELD_BUDGET", "budget"),
        "asset_slug": os.getenv("GHL_FIELD_ASSET_SLUG", "asset_slug"),
        "asset_category": os.getenv("GHL_FIELD_ASSET_CATEGORY", "asset_category"),
        "source": os.getenv("GHL_FIELD_SOURCE", "lead_source"),
        "creator_id": os.getenv("GHL_FIELD_CREATOR_ID", "creator_id"),
        "charter_duration": "charter_duration",
        "charter_time": "charter_time",
        "occasion": "occasion",
        "pickup_location": "pickup_location",
        "dropoff_location": "dropoff_location",
    })

    # Operator endpoints (empty = open mode)
    ops_secret: str = os.getenv("OPS_SECRET", "")

    # Availability
    property_feeds_path: str = os.getenv("PROPERTY_FEEDS_PATH", "")
    property_feeds_json: str = os.getenv("PROPERTY_FEEDS", "")
    availability_cache_ttl_seconds: float = _env_float("AVAILABILITY_CACHE_TTL_SECONDS", 15 * 60)
    feed_timeout_seconds: float = _env_float("FEED_TIMEOUT_SECONDS", 10.0)
    feed_user_agent: str = os.getenv("FEED_USER_AGENT", "ERentals-Availability-Checker/1.0")

    # Lead normalization
    default_country_code: str = os.getenv("DEFAULT_COUNTRY_CODE", "1")

    @property
    def ghl_configured(self) -> bool:
        return bool(self.ghl_api_key and self.ghl_location_id)

    @property
    def pipeline_configured(self) -> bool:
        return bool(self.ghl_pipeline_id and self.ghl_stage_new_inquiry)

    @property
    def ops_secured(self) -> bool:
        return bool(self.ops_secret)

    @property
    def stage_ids(self) -> dict[str, str]:
        """Canonical stage -> configured GHL stage id (unset stages omitted)."""
        from app.engine.stages import NEW_INQUIRY, QUOTE_SENT, REPLIED, BOOKED

        pairs = {
            NEW_INQUIRY: self.ghl_stage_new_inquiry,
            QUOTE_SENT: self.ghl_stage_quote_sent,
            REPLIED: self.ghl_stage_replied,
            BOOKED: self.ghl_stage_booked,
        }
        return {stage: sid for stage, sid in pairs.items() if sid}


settings = Settings()
