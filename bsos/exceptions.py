"""Error taxonomy for the integration core"""

from typing import Optional


class IntegrationError(Exception):
    """Base class for integration failures"""

    pass


class PlatformAPIError(IntegrationError):
    """Raised when a platform API call fails after retries"""

    def __init__(self, platform: str, message: str, status_code: Optional[int] = None):
        self.platform = platform
        self.status_code = status_code
        super().__init__(f"{platform} API error: {message}")


class IntegrationNotConfiguredError(IntegrationError):
    """Raised when an operation needs a platform that has not been configured"""

    pass


class UnsupportedPlatformError(IntegrationError):
    """Raised for platform names the system does not know"""

    def __init__(self, platform: Optional[str]):
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class InvalidTransitionError(Exception):
    """Raised when a task status change is not allowed by the status machine"""

    def __init__(self, current_status: str, new_status: str):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(f"Invalid status transition: {current_status} → {new_status}")


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass
