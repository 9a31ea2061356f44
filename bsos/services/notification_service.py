"""
Reservation Notification Service
Notifies the cleaning team (WhatsApp via Twilio) and the manager (email via Resend)
about reservation events. Every message is recorded as a Notification row;
delivery failures are logged and never interrupt event processing.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
import resend
from sqlalchemy.orm import Session

from ..config import (
    CLEANING_TEAM_WHATSAPP,
    EMAIL_FROM_ADDRESS,
    MANAGER_EMAIL,
    RESEND_API_KEY,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_WHATSAPP_FROM,
)
from ..models import Notification
from ..schemas import ReservationEventData

logger = logging.getLogger(__name__)


def _record(
    db: Session,
    recipient: str,
    channel: str,
    title: str,
    message: str,
    metadata: Optional[dict] = None,
) -> Notification:
    notification = Notification(
        recipient=recipient,
        channel=channel,
        title=title,
        message=message,
        status="pending",
        extra=metadata,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def _mark(db: Session, notification: Notification, success: bool, error: Optional[str] = None):
    notification.status = "sent" if success else "failed"
    notification.error_message = error
    if success:
        notification.sent_at = datetime.now(timezone.utc)
    db.commit()


async def send_whatsapp(
    db: Session,
    recipients: list[str],
    fallback_recipient: str,
    title: str,
    message: str,
    metadata: Optional[dict] = None,
) -> list[Notification]:
    """
    Send a WhatsApp message through the Twilio API

    Without Twilio credentials or recipient numbers the message is stored as
    pending for ``fallback_recipient`` (e.g. ``cleaner_team``).
    """
    if not (TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_WHATSAPP_FROM) or not recipients:
        logger.debug(f"WhatsApp not configured, storing '{title}' as pending")
        return [_record(db, fallback_recipient, "whatsapp", title, message, metadata)]

    notifications = []
    async with httpx.AsyncClient() as client:
        for to_phone in recipients:
            notification = _record(db, to_phone, "whatsapp", title, message, metadata)
            try:
                logger.info(f"📱 Sending WhatsApp '{title}' to {to_phone}")
                response = await client.post(
                    f"https://api.twilio.com/2010-04-01/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                    auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                    data={
                        "From": f"whatsapp:{TWILIO_WHATSAPP_FROM}",
                        "To": f"whatsapp:{to_phone}",
                        "Body": message,
                    },
                    timeout=10.0,
                )
                if response.status_code in (200, 201):
                    _mark(db, notification, True)
                    logger.info(f"✅ WhatsApp sent to {to_phone}")
                else:
                    error_message = response.json().get("message", "Unknown error")
                    _mark(db, notification, False, error_message)
                    logger.error(f"❌ Twilio API error for {to_phone}: {error_message}")
            except (httpx.HTTPError, ValueError) as e:
                _mark(db, notification, False, str(e))
                logger.error(f"❌ Failed to send WhatsApp to {to_phone}: {e}")
            notifications.append(notification)

    return notifications


async def send_manager_email(
    db: Session, subject: str, body: str, metadata: Optional[dict] = None
) -> Notification:
    """Send an email to the manager through Resend"""
    recipient = MANAGER_EMAIL or "manager"
    notification = _record(db, recipient, "email", subject, body, metadata)

    if not (RESEND_API_KEY and MANAGER_EMAIL):
        logger.debug(f"Email not configured, storing '{subject}' as pending")
        return notification

    try:
        logger.info(f"📧 Sending email via Resend to: {MANAGER_EMAIL}")
        resend.api_key = RESEND_API_KEY
        response = resend.Emails.send(
            {
                "from": EMAIL_FROM_ADDRESS,
                "to": [MANAGER_EMAIL],
                "subject": subject,
                "html": body.replace("\n", "<br>"),
            }
        )
        _mark(db, notification, True)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
    except Exception as e:
        _mark(db, notification, False, str(e))
        logger.error(f"❌ Email send error to {MANAGER_EMAIL}: {e}")

    return notification


async def send_new_reservation_notifications(
    db: Session, data: ReservationEventData, platform: str, reservation_id: str
) -> list[Notification]:
    """Notify the cleaning team and the manager about a new reservation"""
    property_name = data.property_name or data.property_id
    metadata = {"reservation_id": reservation_id, "platform": platform, "event": "created"}

    team_message = (
        f"🆕 Nova reserva recebida!\n\n"
        f"Propriedade: {property_name}\n"
        f"Hóspede: {data.guest_name}\n"
        f"Check-in: {data.check_in}\n"
        f"Check-out: {data.check_out}\n\n"
        f"Preparem-se para as limpezas! 🧽✨"
    )
    notifications = await send_whatsapp(
        db, CLEANING_TEAM_WHATSAPP, "cleaner_team", "Nova reserva", team_message, metadata
    )
    notifications.append(
        await send_manager_email(
            db,
            f"Nova Reserva - {property_name}",
            f"Uma nova reserva foi recebida via {platform}.\n\n"
            f"Hóspede: {data.guest_name}\n"
            f"Check-in: {data.check_in}\n"
            f"Check-out: {data.check_out}",
            metadata,
        )
    )
    return notifications


async def send_reservation_update_notifications(
    db: Session,
    data: ReservationEventData,
    platform: str,
    reservation_id: str,
    assigned_cleaners: list[str],
) -> list[Notification]:
    """Tell the assigned cleaners that a reservation's dates changed"""
    property_name = data.property_name or data.property_id
    message = (
        f"📝 Reserva atualizada!\n\n"
        f"Propriedade: {property_name}\n"
        f"Novas datas: {data.check_in} - {data.check_out}\n\n"
        f"Verifiquem suas agendas! 📅"
    )
    metadata = {
        "reservation_id": reservation_id,
        "platform": platform,
        "event": "updated",
        "assigned_cleaners": assigned_cleaners,
    }
    return await send_whatsapp(
        db, CLEANING_TEAM_WHATSAPP, "assigned_cleaners", "Reserva atualizada", message, metadata
    )


async def send_cancellation_notifications(
    db: Session,
    data: ReservationEventData,
    platform: str,
    reservation_id: str,
    released_cleaners: list[str],
) -> list[Notification]:
    """Tell the cleaners whose work was released that a reservation was cancelled"""
    property_name = data.property_name or data.property_id
    message = (
        f"❌ Reserva cancelada!\n\n"
        f"Propriedade: {property_name}\n"
        f"Datas: {data.check_in} - {data.check_out}\n\n"
        f"Agenda liberada! 📅"
    )
    metadata = {
        "reservation_id": reservation_id,
        "platform": platform,
        "event": "cancelled",
        "released_cleaners": released_cleaners,
    }
    return await send_whatsapp(
        db, CLEANING_TEAM_WHATSAPP, "assigned_cleaners", "Reserva cancelada", message, metadata
    )
