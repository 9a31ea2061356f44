"""
Reservation webhook handlers
Applies booking platform events to reservations and their cleaning tasks
"""

import logging

from sqlalchemy.orm import Session

from ..domain.integrations.repository import IntegrationRepository
from ..domain.integrations.schemas import IntegrationSettings
from ..domain.reservations.service import ReservationChange, ReservationService
from ..domain.tasks.service import TaskService
from ..models import CleaningTask
from ..schemas import ReservationEventData, WebhookPayload
from . import notification_service
from .orchestrator import IntegrationOrchestrator

logger = logging.getLogger(__name__)

NEW_RESERVATION = "new_reservation"
RESERVATION_UPDATE = "reservation_update"
RESERVATION_CANCELLATION = "reservation_cancellation"

# Event names used by each platform
PLATFORM_EVENTS = {
    "airbnb": {
        "reservation_created": NEW_RESERVATION,
        "reservation_updated": RESERVATION_UPDATE,
        "reservation_cancelled": RESERVATION_CANCELLATION,
    },
    "hostaway": {
        "reservation.created": NEW_RESERVATION,
        "reservation.updated": RESERVATION_UPDATE,
        "reservation.cancelled": RESERVATION_CANCELLATION,
    },
    "booking": {
        "reservation_created": NEW_RESERVATION,
        "reservation_modified": RESERVATION_UPDATE,
        "reservation_cancelled": RESERVATION_CANCELLATION,
    },
}


def _cleaners_of(tasks: list[CleaningTask]) -> list[str]:
    return sorted({t.assigned_cleaner_id for t in tasks if t.assigned_cleaner_id})


async def _push_statuses(orchestrator: IntegrationOrchestrator, tasks: list[CleaningTask]):
    for task in tasks:
        await orchestrator.sync_task_status(task)


async def _reschedule_and_push(
    db: Session, orchestrator: IntegrationOrchestrator, change: ReservationChange
):
    moved = TaskService(db).reschedule_tasks(change.reservation)
    await _push_statuses(orchestrator, [t for t in moved if t.status == "pending"])


async def _derive_and_push(
    db: Session,
    orchestrator: IntegrationOrchestrator,
    change: ReservationChange,
    settings: IntegrationSettings,
):
    if not settings.create_tasks:
        return []
    tasks = TaskService(db).derive_tasks(change.reservation)
    if tasks and orchestrator.is_configured("taskbird"):
        await orchestrator.push_tasks(db, tasks)
    return tasks


async def _cancellation_flow(
    db: Session,
    orchestrator: IntegrationOrchestrator,
    platform: str,
    data: ReservationEventData,
    change: ReservationChange,
    settings: IntegrationSettings,
):
    service = TaskService(db)
    reservation = change.reservation
    released = _cleaners_of(service.repo.get_reservation_tasks(db, reservation.id))

    cancelled = service.cancel_tasks(reservation)
    await _push_statuses(orchestrator, cancelled)

    if change.became_cancelled and settings.send_notifications:
        await notification_service.send_cancellation_notifications(
            db, data, platform, reservation.id, released
        )


async def handle_new_reservation(
    db: Session, orchestrator: IntegrationOrchestrator, platform: str, payload: WebhookPayload
) -> str:
    settings = IntegrationRepository.get_settings(db, platform)
    data = ReservationEventData.model_validate(payload.data)
    change = ReservationService(db).apply_report(platform, data, payload.timestamp)
    if change.ignored:
        return "ignored"

    if change.became_cancelled:
        await _cancellation_flow(db, orchestrator, platform, data, change, settings)
        return "success"

    if change.dates_changed:
        await _reschedule_and_push(db, orchestrator, change)

    tasks = await _derive_and_push(db, orchestrator, change, settings)
    logger.info(f"🆕 New reservation {change.reservation.id}: {len(tasks)} task(s) created")

    if change.created and settings.send_notifications:
        await notification_service.send_new_reservation_notifications(
            db, data, platform, change.reservation.id
        )
    return "success"


async def handle_reservation_update(
    db: Session, orchestrator: IntegrationOrchestrator, platform: str, payload: WebhookPayload
) -> str:
    settings = IntegrationRepository.get_settings(db, platform)
    data = ReservationEventData.model_validate(payload.data)
    change = ReservationService(db).apply_report(platform, data, payload.timestamp)
    if change.ignored:
        return "ignored"

    if change.became_cancelled:
        await _cancellation_flow(db, orchestrator, platform, data, change, settings)
        return "success"

    service = TaskService(db)
    assigned = _cleaners_of(service.repo.get_reservation_tasks(db, change.reservation.id))

    if change.dates_changed:
        await _reschedule_and_push(db, orchestrator, change)

    # Covers updates for reservations first seen through this event
    await _derive_and_push(db, orchestrator, change, settings)

    logger.info(f"📝 Reservation {change.reservation.id} updated")
    if settings.send_notifications:
        await notification_service.send_reservation_update_notifications(
            db, data, platform, change.reservation.id, assigned
        )
    return "success"


async def handle_reservation_cancellation(
    db: Session, orchestrator: IntegrationOrchestrator, platform: str, payload: WebhookPayload
) -> str:
    settings = IntegrationRepository.get_settings(db, platform)
    data = ReservationEventData.model_validate(payload.data)
    change = ReservationService(db).cancel(platform, data, payload.timestamp)
    if change.ignored:
        return "ignored"

    await _cancellation_flow(db, orchestrator, platform, data, change, settings)
    return "success"


HANDLERS = {
    NEW_RESERVATION: handle_new_reservation,
    RESERVATION_UPDATE: handle_reservation_update,
    RESERVATION_CANCELLATION: handle_reservation_cancellation,
}


async def dispatch_event(
    db: Session, orchestrator: IntegrationOrchestrator, platform: str, payload: WebhookPayload
) -> str:
    """
    Route a platform event to its handler

    Returns:
        ``success`` when the event was applied, ``ignored`` for unmapped,
        stale or inapplicable events

    Raises:
        ValueError: If the event data cannot be applied
    """
    handler_name = PLATFORM_EVENTS.get(platform, {}).get(payload.event_type)
    if handler_name is None:
        logger.info(f"ℹ️ Unhandled {platform} event type: {payload.event_type}")
        return "ignored"

    if not IntegrationRepository.get_settings(db, platform).import_reservations:
        logger.info(f"ℹ️ Reservation import disabled for {platform}, ignoring {payload.event_type}")
        return "ignored"

    logger.info(f"🔍 Processing {platform} {payload.event_type}")
    return await HANDLERS[handler_name](db, orchestrator, platform, payload)
