import logging
from datetime import date
from typing import Optional

from ..exceptions import PlatformAPIError
from ..schemas import PlatformProperty, PlatformReservation
from ..shared.validators import parse_date
from .platform_client import PlatformApiService

logger = logging.getLogger(__name__)

WEBHOOK_EVENT_TYPES = ["reservation_created", "reservation_updated", "reservation_cancelled"]


class AirbnbApiService(PlatformApiService):
    """Service for interacting with the Airbnb API"""

    platform = "airbnb"
    base_url = "https://api.airbnb.com/v2"
    health_path = "/listings"

    async def get_properties(self) -> list[PlatformProperty]:
        """Get the host's listings"""
        try:
            data = await self._get_json("/listings")
            return self._map_items(data.get("listings"), self._to_property)
        except PlatformAPIError as e:
            return self._fallback(e, "properties", self._mock_properties)

    async def get_reservations(self, property_id: Optional[str] = None) -> list[PlatformReservation]:
        """Get reservations, optionally limited to one listing"""
        params = {"listing_id": property_id} if property_id else None
        try:
            data = await self._get_json("/reservations", params=params)
            return self._map_items(data.get("reservations"), self._to_reservation)
        except PlatformAPIError as e:
            return self._fallback(e, "reservations", self._mock_reservations)

    async def setup_webhook(self) -> bool:
        """Register the BSOS webhook URL for reservation events"""
        if not self.credentials.webhook_url:
            logger.error("❌ Airbnb webhook URL not configured")
            return False

        return await self._succeeds(
            "POST",
            "/webhooks",
            "configure Airbnb webhook",
            json={"target_url": self.credentials.webhook_url, "event_types": WEBHOOK_EVENT_TYPES},
        )

    @staticmethod
    def _to_property(listing: dict) -> PlatformProperty:
        return PlatformProperty(
            id=f"airbnb-{listing['id']}",
            name=listing["name"],
            address=listing.get("address"),
            platform="airbnb",
            platform_id=str(listing["id"]),
        )

    @staticmethod
    def _to_reservation(reservation: dict) -> PlatformReservation:
        guest = reservation.get("guest") or {}
        guest_name = " ".join(
            part for part in (guest.get("first_name"), guest.get("last_name")) if part
        )
        return PlatformReservation(
            id=f"airbnb-{reservation['id']}",
            property_id=f"airbnb-{reservation['listing_id']}",
            guest_name=guest_name or None,
            guest_email=guest.get("email"),
            check_in=parse_date(reservation["start_date"]),
            check_out=parse_date(reservation["end_date"]),
            guests=reservation.get("guests"),
            status=reservation.get("status") or "confirmed",
            platform="airbnb",
            platform_reservation_id=str(reservation["id"]),
        )

    @staticmethod
    def _mock_properties() -> list[PlatformProperty]:
        return [
            PlatformProperty(
                id="airbnb-123",
                name="Apartamento Centro",
                address="Rua das Flores, 123 - Centro, Rio de Janeiro",
                platform="airbnb",
                platform_id="123",
            ),
            PlatformProperty(
                id="airbnb-456",
                name="Casa Ipanema",
                address="Rua Visconde de Pirajá, 456 - Ipanema, Rio de Janeiro",
                platform="airbnb",
                platform_id="456",
            ),
        ]

    @staticmethod
    def _mock_reservations() -> list[PlatformReservation]:
        return [
            PlatformReservation(
                id="airbnb-res-001",
                property_id="airbnb-123",
                guest_name="John Smith",
                check_in=date(2024, 1, 22),
                check_out=date(2024, 1, 25),
                status="confirmed",
                platform="airbnb",
                platform_reservation_id="res-001",
            )
        ]
