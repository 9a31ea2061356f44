"""
Base HTTP client shared by the booking, task and staffing platform adapters
"""

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

import httpx

from ..config import (
    INTEGRATION_DEMO_FALLBACK,
    INTEGRATION_MAX_RETRIES,
    INTEGRATION_RETRY_BASE_DELAY,
    INTEGRATION_TIMEOUT,
)
from ..exceptions import PlatformAPIError
from ..schemas import ApiCredentials

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status codes worth another attempt
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class PlatformApiService:
    """Common request, retry and fallback handling for one platform REST API"""

    platform = "generic"
    base_url = ""
    health_path = "/"

    def __init__(
        self,
        credentials: ApiCredentials,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = INTEGRATION_MAX_RETRIES,
        retry_base_delay: float = INTEGRATION_RETRY_BASE_DELAY,
        timeout: float = INTEGRATION_TIMEOUT,
        demo_fallback: bool = INTEGRATION_DEMO_FALLBACK,
    ):
        self.credentials = credentials
        self.transport = transport
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout
        self.demo_fallback = demo_fallback

    def _auth_token(self) -> Optional[str]:
        return self.credentials.access_token

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._auth_token()}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send a request with exponential backoff on transport errors and
        retryable status codes.

        Raises:
            PlatformAPIError: On a non-retryable error response or when every
                attempt failed
        """
        last_error = "no attempt made"
        last_status: Optional[int] = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url, transport=self.transport, timeout=self.timeout
                ) as client:
                    response = await client.request(method, path, headers=self._headers(), **kwargs)
            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                last_status = None
            else:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    last_error = response.reason_phrase or f"HTTP {response.status_code}"
                    last_status = response.status_code
                elif response.is_error:
                    raise PlatformAPIError(
                        self.platform,
                        response.reason_phrase or f"HTTP {response.status_code}",
                        response.status_code,
                    )
                else:
                    return response

            if attempt < self.max_retries - 1:
                delay = self.retry_base_delay * (2**attempt)
                logger.warning(
                    f"⚠️ {self.platform} {method} {path} failed ({last_error}), "
                    f"retrying in {delay:.2f}s (attempt {attempt + 1}/{self.max_retries})"
                )
                await asyncio.sleep(delay)

        raise PlatformAPIError(self.platform, last_error, last_status)

    async def _get_json(self, path: str, params: Optional[dict] = None) -> dict[str, Any]:
        response = await self._request("GET", path, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise PlatformAPIError(self.platform, f"invalid JSON response: {e}") from e

    async def _succeeds(self, method: str, path: str, description: str, **kwargs) -> bool:
        """Run a write call whose outcome is reported as a bool"""
        try:
            await self._request(method, path, **kwargs)
            return True
        except PlatformAPIError as e:
            logger.error(f"❌ Failed to {description}: {e}")
            return False

    def _map_items(self, items: Optional[list], mapper: Callable[[dict], T]) -> list[T]:
        """Map raw platform records, turning malformed data into a PlatformAPIError"""
        try:
            return [mapper(item) for item in items or []]
        except (KeyError, TypeError, ValueError) as e:
            raise PlatformAPIError(self.platform, f"unexpected response format: {e}") from e

    async def check_connection(self) -> bool:
        """Whether the platform accepts the configured credentials"""
        return await self._succeeds("GET", self.health_path, f"reach {self.platform}")

    def _fallback(self, error: PlatformAPIError, description: str, demo_data: Callable[[], T]) -> T:
        """Return demonstration data instead of failing, when enabled"""
        logger.error(f"❌ Error fetching {description} from {self.platform}: {error}")
        if not self.demo_fallback:
            raise error
        logger.warning(f"⚠️ Using demonstration {description} for {self.platform}")
        return demo_data()
