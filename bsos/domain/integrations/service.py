"""Integration service - Business logic for configuring and syncing platform integrations"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ...config import APP_URL, DEFAULT_SYNC_INTERVAL_MINUTES
from ...exceptions import UnsupportedPlatformError
from ...models import Integration
from ...schemas import SyncResult
from ...security_utils import encrypt_credentials
from ...services.orchestrator import (
    BOOKING_PLATFORMS,
    SUPPORTED_PLATFORMS,
    IntegrationOrchestrator,
    mark_synced,
)
from ...shared.validators import parse_timestamp
from ..reservations.repository import ReservationRepository
from .repository import IntegrationRepository
from .schemas import IntegrationRequest, IntegrationSettings

logger = logging.getLogger(__name__)

# Platforms that deliver reservation webhooks
WEBHOOK_PLATFORMS = ("airbnb", "hostaway")

PLATFORM_NAMES = {
    "airbnb": "Airbnb",
    "hostaway": "Hostaway",
    "taskbird": "Taskbird",
    "turno": "Turno",
}


# Scheduled runs start late by up to one cron period plus the sync duration
SYNC_TOLERANCE = timedelta(minutes=5)


def due_platforms(db: Session, now: Optional[datetime] = None) -> list[str]:
    """Booking platforms whose auto sync is on and whose interval has elapsed"""
    now = now or datetime.now(timezone.utc)
    due = []
    for integration in IntegrationRepository.get_integrations(db):
        if integration.platform not in BOOKING_PLATFORMS or not integration.auto_sync:
            continue
        last_sync = parse_timestamp(integration.last_sync)
        if last_sync and now - last_sync < timedelta(minutes=integration.sync_interval) - SYNC_TOLERANCE:
            continue
        due.append(integration.platform)
    return due


async def run_sync(
    db: Session, orchestrator: IntegrationOrchestrator, platforms: Optional[list[str]] = None
) -> dict:
    """
    Poll the configured booking platforms (all of them, or only ``platforms``),
    store the results and derive cleaning tasks for new reservations when
    Taskbird is configured. Each platform's stored settings decide whether its
    reservations are imported and whether they get tasks.
    """
    synced = [p for p in BOOKING_PLATFORMS if orchestrator.is_configured(p)]
    if platforms is not None:
        synced = [p for p in synced if p in platforms]
    settings = {p: IntegrationRepository.get_settings(db, p) for p in synced}

    result = await orchestrator.sync_all_data(synced)
    stored = SyncResult(
        properties=result.properties,
        reservations=[r for r in result.reservations if settings[r.platform].import_reservations],
        errors=result.errors,
    )
    new_reservations = orchestrator.persist_sync_result(db, stored)

    tasks_created = 0
    if orchestrator.is_configured("taskbird"):
        wanted = [r for r in new_reservations if settings[r.platform].create_tasks]
        tasks = await orchestrator.create_cleaning_tasks_from_reservations(db, wanted)
        tasks_created = len(tasks)

    mark_synced(db, synced, stored.errors)

    logger.info(
        f"📊 Sync complete: {len(result.properties)} properties, {len(result.reservations)} reservations, "
        f"{len(new_reservations)} new, {tasks_created} tasks, {len(stored.errors)} errors"
    )
    return {
        "properties": [p.model_dump() for p in result.properties],
        "reservations": [r.model_dump(mode="json") for r in result.reservations],
        "errors": stored.errors,
        "new_reservations": len(new_reservations),
        "tasks_created": tasks_created,
    }


class IntegrationService:
    """Service layer for integration management"""

    def __init__(self, db: Session, orchestrator: IntegrationOrchestrator):
        self.db = db
        self.orchestrator = orchestrator
        self.repo = IntegrationRepository()

    def configure(self, body: IntegrationRequest) -> Integration:
        """
        Store an integration and configure the orchestrator with it

        Raises:
            UnsupportedPlatformError: If the platform is unknown
        """
        platform = body.platform
        if platform not in SUPPORTED_PLATFORMS:
            raise UnsupportedPlatformError(platform)

        credentials = body.credentials
        webhook_url = credentials.webhook_url
        if not webhook_url and platform in WEBHOOK_PLATFORMS:
            webhook_url = f"{APP_URL.rstrip('/')}/api/webhooks?platform={platform}"
            credentials = credentials.model_copy(update={"webhook_url": webhook_url})

        self.orchestrator.configure(platform, credentials)

        values = {
            "name": body.name or PLATFORM_NAMES[platform],
            "status": "connected",
            "credentials": encrypt_credentials(credentials.model_dump(exclude_none=True)),
            "webhook_url": webhook_url,
            "sync_interval": body.sync_interval,
            "auto_sync": body.auto_sync,
            "settings": body.settings.model_dump() if body.settings else None,
            "last_error": None,
        }

        integration = self.repo.get_by_platform(self.db, platform)
        if integration:
            integration.last_error = None
            integration = self.repo.update_integration(self.db, integration, **values)
        else:
            values["sync_interval"] = body.sync_interval or DEFAULT_SYNC_INTERVAL_MINUTES
            values["auto_sync"] = True if body.auto_sync is None else body.auto_sync
            values["settings"] = (body.settings or IntegrationSettings()).model_dump()
            integration = self.repo.create_integration(self.db, platform=platform, **values)

        logger.info(f"✅ Integration {platform} saved (id={integration.id})")
        return integration

    async def sync(self) -> dict:
        return await run_sync(self.db, self.orchestrator)

    async def test_connection(self, platform: str) -> dict:
        """
        Check that a configured platform accepts its credentials

        Raises:
            UnsupportedPlatformError: If the platform is unknown
        """
        if platform not in SUPPORTED_PLATFORMS:
            raise UnsupportedPlatformError(platform)

        timestamp = datetime.now(timezone.utc).isoformat()
        if not self.orchestrator.is_configured(platform):
            return {
                "success": False,
                "platform": platform,
                "status": "disconnected",
                "timestamp": timestamp,
                "message": f"{PLATFORM_NAMES[platform]} não configurado",
            }

        adapter = getattr(self.orchestrator, platform)
        connected = await adapter.check_connection()

        integration = self.repo.get_by_platform(self.db, platform)
        if integration:
            integration.status = "connected" if connected else "error"
            integration.last_error = None if connected else "Falha no teste de conexão"
            self.db.commit()

        return {
            "success": connected,
            "platform": platform,
            "status": "connected" if connected else "error",
            "timestamp": timestamp,
            "message": "Conexão testada com sucesso" if connected else "Falha no teste de conexão",
        }

    def status(self) -> dict:
        return {
            "integrations": self.repo.get_integrations(self.db),
            "configured": self.orchestrator.configured_platforms(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def properties(self):
        return ReservationRepository.get_properties(self.db)

    def reservations(self):
        return ReservationRepository.get_reservations(self.db)
