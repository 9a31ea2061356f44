"""
Integration Orchestrator
Composes the booking, task and staffing platform adapters:
- Polls Airbnb and Hostaway for properties and reservations
- Derives cleaning tasks from reservations and pushes them to Taskbird
- Assigns pending tasks to cleaners available in Turno
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.reservations.service import ReservationService
from ..domain.tasks.repository import TaskRepository
from ..domain.tasks.service import TaskService
from ..exceptions import (
    IntegrationNotConfiguredError,
    PlatformAPIError,
    UnsupportedPlatformError,
)
from ..models import CleaningTask, Integration, Reservation
from ..schemas import ApiCredentials, AssignmentResult, AvailableCleaner, SyncResult
from ..security_utils import decrypt_credentials
from ..shared.validators import minutes_to_time, time_to_minutes
from .airbnb_service import AirbnbApiService
from .hostaway_service import HostawayApiService
from .status_automation import transition_task
from .taskbird_service import TaskbirdApiService
from .turno_service import TurnoApiService

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("airbnb", "hostaway", "taskbird", "turno")
BOOKING_PLATFORMS = ("airbnb", "hostaway")


@dataclass
class CleanerSlot:
    """A cleaner's day as seen by the assignment planner"""

    cleaner: AvailableCleaner
    start: int  # first free minute of the day
    end: int  # end of availability
    task_count: int = 0


@dataclass
class AssignmentPlan:
    cleaner: AvailableCleaner
    start_time: str
    task_count: int = 0


def plan_assignment(
    cleaners: list[AvailableCleaner],
    booked: dict[str, list[CleaningTask]],
    duration: int,
) -> Optional[AssignmentPlan]:
    """
    Choose the cleaner for one task.

    A cleaner fits when the task, started at the end of their last booked task
    (or at ``available_from``), ends before ``available_until``. Among those
    the highest rating wins; ties go to fewer tasks that day, then the earlier
    start, then the cleaner id.

    Args:
        cleaners: Cleaners available on the task's day
        booked: Tasks already holding each cleaner's time that day, by cleaner id
        duration: Task duration in minutes

    Returns:
        The plan, or None when no cleaner fits
    """
    candidates = []
    for cleaner in cleaners:
        try:
            start = time_to_minutes(cleaner.available_from)
            end = time_to_minutes(cleaner.available_until)
        except ValueError as e:
            logger.warning(f"⚠️ Skipping cleaner {cleaner.id}: {e}")
            continue

        cleaner_tasks = booked.get(cleaner.id, [])
        unscheduled = 0
        for task in cleaner_tasks:
            if task.scheduled_time:
                task_end = time_to_minutes(task.scheduled_time) + (task.estimated_duration or 0)
                start = max(start, task_end)
            else:
                # Assigned without a start time; still takes its duration from the day
                unscheduled += task.estimated_duration or 0
        start += unscheduled

        if start + duration <= end:
            candidates.append(CleanerSlot(cleaner, start, end, len(cleaner_tasks)))

    if not candidates:
        return None

    best = min(
        candidates,
        key=lambda slot: (-slot.cleaner.rating, slot.task_count, slot.start, slot.cleaner.id),
    )
    return AssignmentPlan(best.cleaner, minutes_to_time(best.start), best.task_count)


class IntegrationOrchestrator:
    """Coordinates every configured platform integration"""

    def __init__(self, **client_options):
        # Passed to every adapter (transport, max_retries, demo_fallback...)
        self.client_options = client_options
        self.airbnb: Optional[AirbnbApiService] = None
        self.hostaway: Optional[HostawayApiService] = None
        self.taskbird: Optional[TaskbirdApiService] = None
        self.turno: Optional[TurnoApiService] = None

    def configure_airbnb(self, credentials: ApiCredentials):
        self.airbnb = AirbnbApiService(credentials, **self.client_options)
        logger.info("✅ Airbnb integration configured")

    def configure_hostaway(self, credentials: ApiCredentials):
        self.hostaway = HostawayApiService(credentials, **self.client_options)
        logger.info("✅ Hostaway integration configured")

    def configure_taskbird(self, credentials: ApiCredentials):
        self.taskbird = TaskbirdApiService(credentials, **self.client_options)
        logger.info("✅ Taskbird integration configured")

    def configure_turno(self, credentials: ApiCredentials):
        self.turno = TurnoApiService(credentials, **self.client_options)
        logger.info("✅ Turno integration configured")

    def configure(self, platform: str, credentials: ApiCredentials):
        """
        Configure one platform by name

        Raises:
            UnsupportedPlatformError: If the platform is unknown
        """
        if platform not in SUPPORTED_PLATFORMS:
            raise UnsupportedPlatformError(platform)
        getattr(self, f"configure_{platform}")(credentials)

    def is_configured(self, platform: str) -> bool:
        return platform in SUPPORTED_PLATFORMS and getattr(self, platform) is not None

    def configured_platforms(self) -> list[str]:
        return [platform for platform in SUPPORTED_PLATFORMS if self.is_configured(platform)]

    def reset(self):
        self.airbnb = self.hostaway = self.taskbird = self.turno = None

    async def sync_all_data(self, platforms: Optional[list[str]] = None) -> SyncResult:
        """
        Pull properties and reservations from every configured booking platform,
        or only from ``platforms`` when given.
        A failing platform is reported in ``errors`` without stopping the others.
        """
        result = SyncResult()

        for platform, adapter in (("airbnb", self.airbnb), ("hostaway", self.hostaway)):
            if adapter is None or (platforms is not None and platform not in platforms):
                continue
            try:
                properties = await adapter.get_properties()
                reservations = await adapter.get_reservations()
                result.properties.extend(properties)
                result.reservations.extend(reservations)
                logger.info(
                    f"🔄 {platform}: {len(properties)} properties, {len(reservations)} reservations"
                )
            except PlatformAPIError as e:
                logger.error(f"❌ Sync failed for {platform}: {e}")
                result.errors.append(f"Erro na sincronização: {platform}: {e}")

        return result

    def persist_sync_result(self, db: Session, result: SyncResult) -> list[Reservation]:
        """
        Store synced properties and reservations

        Returns:
            Reservations created by this sync
        """
        service = ReservationService(db)
        for prop in result.properties:
            service.upsert_synced_property(prop)

        new_reservations = []
        for data in result.reservations:
            try:
                change = service.upsert_synced_reservation(data)
            except (ValueError, SQLAlchemyError) as e:
                db.rollback()
                logger.error(f"❌ Failed to store reservation {data.id}: {e}")
                result.errors.append(f"Erro ao salvar reserva {data.id}: {e}")
                continue

            if change.created:
                new_reservations.append(change.reservation)
            elif change.became_cancelled:
                TaskService(db).cancel_tasks(change.reservation)
            elif change.dates_changed:
                TaskService(db).reschedule_tasks(change.reservation)

        logger.info(f"📥 Sync stored {len(new_reservations)} new reservation(s)")
        return new_reservations

    async def create_cleaning_tasks_from_reservations(
        self, db: Session, reservations: list[Reservation]
    ) -> list[CleaningTask]:
        """
        Derive the cleaning tasks of each reservation and push new ones to Taskbird

        Raises:
            IntegrationNotConfiguredError: If Taskbird is not configured
        """
        if not self.taskbird:
            raise IntegrationNotConfiguredError("Taskbird não configurado")

        service = TaskService(db)
        created_tasks = []
        for reservation in reservations:
            try:
                tasks = service.derive_tasks(reservation)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"❌ Error creating tasks for reservation {reservation.id}: {e}")
                continue

            await self.push_tasks(db, tasks)
            created_tasks.extend(tasks)

        return created_tasks

    async def push_tasks(self, db: Session, tasks: list[CleaningTask]):
        """Create tasks in Taskbird and remember their external ids"""
        if not self.taskbird:
            return
        for task in tasks:
            external_id = await self.taskbird.create_cleaning_task(task)
            if external_id:
                task.external_id = external_id
                db.commit()
                logger.info(f"✅ Task {task.id} pushed to Taskbird as {external_id}")

    async def auto_assign_cleaners(
        self, db: Session, tasks: list[CleaningTask]
    ) -> list[AssignmentResult]:
        """
        Assign each pending task to the best available cleaner

        Raises:
            IntegrationNotConfiguredError: If Turno or Taskbird is not configured
        """
        if not self.turno or not self.taskbird:
            raise IntegrationNotConfiguredError("Serviços não configurados para atribuição automática")

        repo = TaskRepository()
        results = []
        for task in tasks:
            if task.status != "pending":
                results.append(AssignmentResult(task_id=task.id, reason="not_pending"))
                continue

            try:
                cleaners = await self.turno.get_available_cleaners(
                    task.scheduled_date, task.estimated_duration
                )
            except PlatformAPIError as e:
                logger.error(f"❌ Could not read availability for task {task.id}: {e}")
                results.append(AssignmentResult(task_id=task.id, reason="platform_error"))
                continue

            booked: dict[str, list[CleaningTask]] = {}
            for other in repo.get_bookings_for_day(db, task.scheduled_date):
                booked.setdefault(other.assigned_cleaner_id, []).append(other)

            plan = plan_assignment(cleaners, booked, task.estimated_duration)
            if plan is None:
                logger.warning(f"⚠️ No cleaner available for task {task.id} on {task.scheduled_date}")
                results.append(AssignmentResult(task_id=task.id, reason="no_available_cleaner"))
                continue

            results.append(await self._assign(db, task, plan))

        return results

    async def _assign(self, db: Session, task: CleaningTask, plan: AssignmentPlan) -> AssignmentResult:
        cleaner = plan.cleaner
        scheduled = await self.turno.schedule_shift(
            cleaner.id, task.scheduled_date, plan.start_time, task.estimated_duration
        )
        if not scheduled:
            logger.warning(f"⚠️ Turno refused the shift for task {task.id}, leaving it pending")
            return AssignmentResult(task_id=task.id, cleaner_id=cleaner.id, reason="shift_not_scheduled")

        if task.external_id and not await self.taskbird.assign_task(task.external_id, cleaner.id):
            logger.warning(f"⚠️ Taskbird task {task.external_id} not assigned to {cleaner.id}")

        transition_task(task, "assigned", cleaner.id, cleaner.name)
        task.scheduled_time = plan.start_time
        db.commit()

        if not task.external_id:
            # Not in Taskbird yet; create it already assigned
            await self.push_tasks(db, [task])

        logger.info(
            f"👤 Task {task.id} assigned to {cleaner.name} ({cleaner.id}) "
            f"on {task.scheduled_date} at {plan.start_time}"
        )
        return AssignmentResult(
            task_id=task.id,
            cleaner_id=cleaner.id,
            cleaner_name=cleaner.name,
            start_time=plan.start_time,
            reason="assigned",
        )

    async def sync_task_status(self, task: CleaningTask) -> bool:
        """Mirror a local task status in Taskbird"""
        if not self.taskbird or not task.external_id:
            return False
        return await self.taskbird.update_task_status(task.external_id, task.status)


def load_integrations(db: Session, orchestrator: "IntegrationOrchestrator") -> list[str]:
    """
    Configure the orchestrator from the stored integrations that are not disconnected

    Returns:
        Platforms configured
    """
    configured = []
    integrations = db.query(Integration).filter(Integration.status.in_(("connected", "error"))).all()
    for integration in integrations:
        credentials = ApiCredentials.model_validate(decrypt_credentials(integration.credentials))
        try:
            orchestrator.configure(integration.platform, credentials)
        except UnsupportedPlatformError as e:
            logger.warning(f"⚠️ Skipping stored integration {integration.id}: {e}")
            continue
        configured.append(integration.platform)

    if configured:
        logger.info(f"✅ Loaded integrations: {', '.join(configured)}")
    return configured


def mark_synced(db: Session, platforms: list[str], errors: list[str]):
    """Record the outcome of a sync on the stored integrations"""
    now = datetime.now(timezone.utc)
    for integration in db.query(Integration).filter(Integration.platform.in_(platforms)).all():
        platform_errors = [e for e in errors if f": {integration.platform}:" in e]
        integration.last_sync = now
        integration.last_error = "; ".join(platform_errors) or None
        integration.status = "error" if platform_errors else "connected"
    db.commit()


integration_orchestrator = IntegrationOrchestrator()


def get_orchestrator() -> IntegrationOrchestrator:
    """Dependency returning the process-wide orchestrator"""
    return integration_orchestrator
