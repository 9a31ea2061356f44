import logging
from datetime import date
from typing import Optional

from ..exceptions import PlatformAPIError
from ..schemas import AvailableCleaner
from .platform_client import PlatformApiService

logger = logging.getLogger(__name__)


class TurnoApiService(PlatformApiService):
    """Service for reading staff availability and booking shifts in Turno"""

    platform = "turno"
    base_url = "https://api.turno.com/v1"
    health_path = "/staff"

    def _auth_token(self) -> Optional[str]:
        return self.credentials.api_key

    async def get_available_cleaners(self, day: date, duration: int) -> list[AvailableCleaner]:
        """Get the staff available on ``day`` for a job of ``duration`` minutes"""
        try:
            data = await self._get_json(
                "/availability", params={"date": day.isoformat(), "duration": duration}
            )
            return self._map_items(data.get("available_staff"), AvailableCleaner.model_validate)
        except PlatformAPIError as e:
            return self._fallback(e, "available cleaners", self._mock_available_cleaners)

    async def schedule_shift(self, cleaner_id: str, day: date, start_time: str, duration: int) -> bool:
        """Book a shift for a cleaner"""
        return await self._succeeds(
            "POST",
            "/shifts",
            f"schedule Turno shift for {cleaner_id}",
            json={
                "staff_id": cleaner_id,
                "date": day.isoformat(),
                "start_time": start_time,
                "duration": duration,
            },
        )

    @staticmethod
    def _mock_available_cleaners() -> list[AvailableCleaner]:
        return [
            AvailableCleaner(
                id="cleaner-001",
                name="Maria Silva",
                rating=4.9,
                available_from="08:00",
                available_until="17:00",
            ),
            AvailableCleaner(
                id="cleaner-002",
                name="Pedro Oliveira",
                rating=4.7,
                available_from="09:00",
                available_until="18:00",
            ),
        ]
