"""
Webhook Security Module

Signature verification for the booking platform webhooks:
- HMAC-SHA256 (hex) over the raw request body
- Constant-time signature comparison
- Optional timestamp header to reject replayed deliveries
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import Request

from .config import AIRBNB_WEBHOOK_SECRET, BOOKING_WEBHOOK_SECRET, HOSTAWAY_WEBHOOK_SECRET
from .exceptions import WebhookSignatureError
from .shared.validators import parse_timestamp

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

TIMESTAMP_HEADER = "x-webhook-timestamp"
DELIVERY_ID_HEADER = "x-webhook-id"

SIGNATURE_HEADERS = {
    "airbnb": "x-airbnb-signature",
    "hostaway": "x-hostaway-signature",
    "booking": "x-booking-signature",
}

# Platforms whose deliveries must always carry a signature header
SIGNATURE_REQUIRED = {"airbnb", "hostaway"}


def get_webhook_secret(platform: str) -> Optional[str]:
    return {
        "airbnb": AIRBNB_WEBHOOK_SECRET,
        "hostaway": HOSTAWAY_WEBHOOK_SECRET,
        "booking": BOOKING_WEBHOOK_SECRET,
    }.get(platform)


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(secret: str, payload: bytes, signature: Optional[str]) -> bool:
    """Check a hex HMAC-SHA256 signature, with or without a ``sha256=`` prefix"""
    if not signature:
        return False
    provided = signature.strip().removeprefix("sha256=").lower()
    return constant_time_compare(compute_hmac_sha256(secret, payload), provided)


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.
    Prevents replay attacks by rejecting old webhooks.

    Args:
        timestamp: Unix timestamp or ISO 8601 string
        max_age: Maximum age in seconds

    Returns:
        True if timestamp is valid, False otherwise
    """
    if not timestamp:
        return True  # The header is optional

    try:
        if timestamp.strip().isdigit():
            webhook_time = int(timestamp)
        else:
            webhook_time = int(parse_timestamp(timestamp).timestamp())
        age = abs(int(time.time()) - webhook_time)

        if age > max_age:
            logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
            return False

        return True
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False


async def verify_platform_webhook(request: Request, platform: str) -> bytes:
    """
    Verify a booking platform delivery.

    Airbnb and Hostaway deliveries must carry their signature header; the
    signature itself is checked whenever the platform secret is configured.
    Booking.com deliveries are only checked when its secret is set.

    Args:
        request: FastAPI request object
        platform: Platform the delivery claims to come from

    Returns:
        The raw request body

    Raises:
        WebhookSignatureError: If verification fails
    """
    # Get raw body BEFORE any parsing
    raw_body = await request.body()

    header_name = SIGNATURE_HEADERS.get(platform)
    signature = request.headers.get(header_name, "") if header_name else ""
    secret = get_webhook_secret(platform)

    logger.info(f"📥 {platform} webhook received: id={request.headers.get(DELIVERY_ID_HEADER, 'unknown')}")

    if not verify_timestamp(request.headers.get(TIMESTAMP_HEADER)):
        raise WebhookSignatureError("Webhook timestamp outside allowed window")

    if platform in SIGNATURE_REQUIRED and not signature:
        logger.error(f"❌ Missing {header_name} header")
        raise WebhookSignatureError(f"Missing {header_name} header")

    if not secret:
        logger.warning(f"⚠️ {platform.upper()}_WEBHOOK_SECRET not configured - skipping signature verification")
        return raw_body

    if not verify_signature(secret, raw_body, signature):
        logger.error(f"❌ {platform} webhook signature verification failed")
        raise WebhookSignatureError("Signature mismatch")

    logger.info(f"✅ {platform} webhook signature verified")
    return raw_body
