from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

VILLA = "villa"
YACHT = "yacht"
TRANSPORT = "transport"


class InquiryPayload(BaseModel):
    """Inquiry form body. Field names follow the web/mobile client (camelCase)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Contact (email or phone required)
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    prefer_whatsapp: Optional[bool] = Field(default=False, alias="preferWhatsApp")

    # Property
    property_name: Optional[str] = Field(default=None, alias="propertyName")
    property_id: Optional[Union[int, str]] = Field(default=None, alias="propertyId")
    property_slug: Optional[str] = Field(default=None, alias="propertySlug")
    property_category: Optional[str] = Field(default=None, alias="propertyCategory")

    # Villa
    check_in: Optional[str] = Field(default=None, alias="checkIn")
    check_out: Optional[str] = Field(default=None, alias="checkOut")
    guests: Optional[Union[int, str]] = None

    # Yacht
    charter_date: Optional[str] = Field(default=None, alias="charterDate")
    charter_time: Optional[str] = Field(default=None, alias="charterTime")
    charter_duration: Optional[str] = Field(default=None, alias="charterDuration")
    occasion: Optional[str] = None

    # Transport
    pickup_location: Optional[str] = Field(default=None, alias="pickupLocation")
    dropoff_location: Optional[str] = Field(default=None, alias="dropoffLocation")
    pickup_date: Optional[str] = Field(default=None, alias="pickupDate")
    pickup_time: Optional[str] = Field(default=None, alias="pickupTime")

    # Shared
    message: Optional[str] = None
    budget: Optional[str] = None
    price: Optional[str] = None

    # Attribution
    source: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    er_id: Optional[str] = None
    creator_id: Optional[str] = None

    @property
    def category(self) -> str:
        return (self.property_category or "").strip().lower()

    @property
    def budget_text(self) -> Optional[str]:
        return self.budget or self.price

    @property
    def raw_start_date(self) -> Optional[str]:
        """Category-appropriate first date: check-in, charter date or pickup date."""
        return self.check_in or self.charter_date or self.pickup_date


@dataclass(frozen=True)
class NormalizedLead:
    email: Optional[str]
    phone: Optional[str]
    first_name: str
    last_name: str
    check_in: Optional[str]
    check_out: Optional[str]
    guests: Optional[int]
    budget_bucket: Optional[str]
    dedup_key: str
    trace_id: str
    property_id: Optional[str] = None
    property_name: Optional[str] = None
    property_slug: Optional[str] = None
    category: str = ""
    tags: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class IntakeResult:
    ok: bool
    trace_id: str
    dedup_key: Optional[str] = None
    contact_id: Optional[str] = None
    opportunity_id: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    contact_created: Optional[bool] = None
    opportunity_reused: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": self.ok, "trace_id": self.trace_id}
        for key in ("dedup_key", "contact_id", "opportunity_id", "warning", "error"):
            val = getattr(self, key)
            if val is not None:
                out[key] = val
        return out
