"""
Shared data shapes exchanged between platform adapters, the orchestrator and
the webhook handlers.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .shared.validators import parse_date


class ApiCredentials(BaseModel):
    """Credentials of one platform integration"""

    model_config = ConfigDict(extra="ignore")

    api_key: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    webhook_url: Optional[str] = None


class PlatformProperty(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    platform: str
    platform_id: str


class PlatformReservation(BaseModel):
    id: str
    property_id: str
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    check_in: date
    check_out: date
    guests: Optional[int] = None
    status: str = "confirmed"
    platform: str
    platform_reservation_id: str


class AvailableCleaner(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    name: str
    rating: float = 0.0
    available_from: str = "08:00"  # HH:MM
    available_until: str = "17:00"  # HH:MM


class SyncResult(BaseModel):
    properties: list[PlatformProperty] = Field(default_factory=list)
    reservations: list[PlatformReservation] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class AssignmentResult(BaseModel):
    task_id: int
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None
    start_time: Optional[str] = None
    reason: str


class WebhookPayload(BaseModel):
    """Envelope every platform posts to /api/webhooks"""

    model_config = ConfigDict(extra="allow")

    platform: Optional[str] = None
    event_type: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None
    signature: Optional[str] = None


class ReservationEventData(BaseModel):
    """Reservation fields carried in a webhook's ``data`` object"""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: Optional[str] = None
    reservation_id: Optional[str] = None
    property_id: Optional[str] = None
    property_name: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    guests: Optional[int] = None
    status: Optional[str] = None

    @field_validator("check_in", "check_out", mode="before")
    @classmethod
    def validate_dates(cls, v):
        return parse_date(v)

    @property
    def reference(self) -> Optional[str]:
        """Platform reservation id, whichever key the platform used"""
        value = self.id or self.reservation_id
        return str(value) if value is not None else None
