"""Reservation domain schemas - Pydantic models for API responses"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PropertyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: Optional[str] = None
    type: str
    platform: str
    platform_id: str
    active: bool


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    platform: str
    platform_reservation_id: str
    property_id: str
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    check_in: date
    check_out: date
    guests: Optional[int] = None
    status: str
    source_updated_at: Optional[datetime] = None
