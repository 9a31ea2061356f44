import logging
from datetime import date

from ..exceptions import PlatformAPIError
from ..schemas import PlatformProperty, PlatformReservation
from ..shared.validators import parse_date
from .platform_client import PlatformApiService

logger = logging.getLogger(__name__)


class HostawayApiService(PlatformApiService):
    """Service for interacting with the Hostaway API"""

    platform = "hostaway"
    base_url = "https://api.hostaway.com/v1"
    health_path = "/listings"

    async def get_properties(self) -> list[PlatformProperty]:
        """Get the account's listings"""
        try:
            data = await self._get_json("/listings")
            return self._map_items(data.get("result"), self._to_property)
        except PlatformAPIError as e:
            return self._fallback(e, "properties", self._mock_properties)

    async def get_reservations(self) -> list[PlatformReservation]:
        """Get the account's reservations"""
        try:
            data = await self._get_json("/reservations")
            return self._map_items(data.get("result"), self._to_reservation)
        except PlatformAPIError as e:
            return self._fallback(e, "reservations", self._mock_reservations)

    @staticmethod
    def _to_property(listing: dict) -> PlatformProperty:
        return PlatformProperty(
            id=f"hostaway-{listing['id']}",
            name=listing["title"],
            address=listing.get("address"),
            platform="hostaway",
            platform_id=str(listing["id"]),
        )

    @staticmethod
    def _to_reservation(reservation: dict) -> PlatformReservation:
        return PlatformReservation(
            id=f"hostaway-{reservation['id']}",
            property_id=f"hostaway-{reservation['listingId']}",
            guest_name=reservation.get("guestName"),
            guest_email=reservation.get("guestEmail"),
            check_in=parse_date(reservation["arrivalDate"]),
            check_out=parse_date(reservation["departureDate"]),
            guests=reservation.get("numberOfGuests"),
            status=reservation.get("status") or "confirmed",
            platform="hostaway",
            platform_reservation_id=str(reservation["id"]),
        )

    @staticmethod
    def _mock_properties() -> list[PlatformProperty]:
        return [
            PlatformProperty(
                id="hostaway-789",
                name="Studio Copacabana",
                address="Av. Atlântica, 789 - Copacabana, Rio de Janeiro",
                platform="hostaway",
                platform_id="789",
            )
        ]

    @staticmethod
    def _mock_reservations() -> list[PlatformReservation]:
        return [
            PlatformReservation(
                id="hostaway-res-002",
                property_id="hostaway-789",
                guest_name="Maria Santos",
                check_in=date(2024, 1, 23),
                check_out=date(2024, 1, 26),
                status="confirmed",
                platform="hostaway",
                platform_reservation_id="res-002",
            )
        ]
