"""
Booking Platform Webhook Routes
Receives reservation events from Airbnb, Hostaway and Booking.com
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import WEBHOOK_RATE_LIMIT, WEBHOOK_RATE_WINDOW_SECONDS
from ..database import get_db
from ..exceptions import WebhookSignatureError
from ..models import WebhookEvent
from ..rate_limiter import create_rate_limiter
from ..schemas import WebhookPayload
from ..services.orchestrator import IntegrationOrchestrator, get_orchestrator
from ..services.webhook_handlers import PLATFORM_EVENTS, dispatch_event
from ..webhook_security import DELIVERY_ID_HEADER, verify_platform_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

# Global limit shared by every platform
rate_limit_webhook = create_rate_limiter(
    limit=WEBHOOK_RATE_LIMIT,
    window_seconds=WEBHOOK_RATE_WINDOW_SECONDS,
    key_prefix="webhook_platforms",
    use_ip=False,
)


def _delivery_key(request: Request, raw_body: bytes) -> str:
    return request.headers.get(DELIVERY_ID_HEADER) or hashlib.sha256(raw_body).hexdigest()


def _claim_delivery(db: Session, platform: str, key: str, event_type: str) -> Optional[WebhookEvent]:
    """
    Record a delivery as being processed.

    Returns:
        The event row, or None when the delivery was already handled
    """
    event = (
        db.query(WebhookEvent)
        .filter(WebhookEvent.platform == platform, WebhookEvent.event_key == key)
        .first()
    )
    if event is not None:
        if event.status != "failed":
            return None
        logger.info(f"🔄 Reprocessing failed {platform} delivery {key}")
        event.status = "processing"
        event.error_message = None
        db.commit()
        return event

    event = WebhookEvent(platform=platform, event_key=key, event_type=event_type, status="processing")
    db.add(event)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    db.refresh(event)
    return event


def _finish_delivery(db: Session, event: WebhookEvent, status: str, error: Optional[str] = None):
    event.status = status
    event.error_message = error
    db.commit()


@router.post("")
async def receive_webhook(
    request: Request,
    platform: Optional[str] = None,
    db: Session = Depends(get_db),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
    _: None = Depends(rate_limit_webhook),
):
    """
    Handle reservation events - Rate limited to 100 requests per minute

    Security:
    - Signature verification using HMAC-SHA256
    - Replay protection through the optional timestamp header
    - Idempotent processing keyed by delivery id or body hash
    """
    if platform not in PLATFORM_EVENTS:
        logger.warning(f"🚫 Webhook for unknown platform: {platform}")
        raise HTTPException(status_code=400, detail="Unknown platform")

    try:
        raw_body = await verify_platform_webhook(request, platform)
    except WebhookSignatureError as e:
        logger.warning(f"🚫 Rejected {platform} webhook: {e}")
        raise HTTPException(status_code=401, detail="Invalid signature") from e

    try:
        payload = WebhookPayload.model_validate(json.loads(raw_body.decode()))
    except (ValueError, ValidationError) as e:
        logger.warning(f"⚠️ Invalid {platform} webhook payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid payload") from e

    key = _delivery_key(request, raw_body)
    event = _claim_delivery(db, platform, key, payload.event_type)
    if event is None:
        logger.info(f"ℹ️ Duplicate {platform} delivery {key}, skipping")
        return {"status": "duplicate"}

    try:
        result = await dispatch_event(db, orchestrator, platform, payload)
    except ValueError as e:
        db.rollback()
        logger.error(f"❌ Could not apply {platform} {payload.event_type}: {e}")
        _finish_delivery(db, event, "failed", str(e))
        raise HTTPException(status_code=400, detail="Invalid payload") from e
    except Exception as e:
        db.rollback()
        logger.exception(f"❌ Webhook processing error: {str(e)}")
        _finish_delivery(db, event, "failed", str(e))
        raise HTTPException(status_code=500, detail="Internal server error") from e

    _finish_delivery(db, event, "processed" if result == "success" else "ignored")
    return {"status": result}


@router.get("")
async def list_webhook_endpoints():
    """Active webhook endpoints and the event types each platform sends"""
    return {
        "endpoints": {
            platform: {"url": f"/api/webhooks?platform={platform}", "events": list(events)}
            for platform, events in PLATFORM_EVENTS.items()
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
