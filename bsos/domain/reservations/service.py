"""Reservation service - Reconciliation of reservations reported by booking platforms"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Property, Reservation
from ...schemas import PlatformProperty, PlatformReservation, ReservationEventData
from ...shared.validators import (
    normalize_platform_id,
    normalize_reservation_status,
    parse_timestamp,
)
from .repository import ReservationRepository

logger = logging.getLogger(__name__)


@dataclass
class ReservationChange:
    """Outcome of applying one platform report to the datastore"""

    reservation: Optional[Reservation]
    created: bool = False
    dates_changed: bool = False
    previous_status: Optional[str] = None
    ignored: Optional[str] = None  # reason the report was not applied

    @property
    def became_cancelled(self) -> bool:
        return (
            self.reservation is not None
            and self.reservation.status == "cancelled"
            and self.previous_status != "cancelled"
        )


class ReservationService:
    """Service layer applying webhook events and polled data to reservations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReservationRepository()

    def ensure_property(
        self,
        platform: str,
        property_id: str,
        name: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Property:
        """Get a property, creating a placeholder for listings not synced yet"""
        internal_id = normalize_platform_id(platform, property_id)
        prop = self.repo.get_property(self.db, internal_id)

        if prop:
            changed = False
            if name and prop.name != name:
                prop.name = name
                changed = True
            if address and prop.address != address:
                prop.address = address
                changed = True
            if changed:
                self.db.commit()
            return prop

        logger.info(f"🏠 Registering property {internal_id} from {platform}")
        return self.repo.create_property(
            self.db,
            id=internal_id,
            name=name or internal_id,
            address=address,
            platform=platform,
            platform_id=internal_id.removeprefix(f"{platform}-"),
        )

    def upsert_synced_property(self, prop: PlatformProperty) -> Property:
        return self.ensure_property(prop.platform, prop.id, prop.name, prop.address)

    def upsert_synced_reservation(self, data: PlatformReservation) -> ReservationChange:
        """Apply a reservation read by polling sync"""
        status = normalize_reservation_status(data.status)
        if status is None:
            logger.warning(f"⚠️ Unknown status '{data.status}' for {data.id}, treating as confirmed")
            status = "confirmed"

        event = ReservationEventData(
            id=data.platform_reservation_id,
            property_id=data.property_id,
            guest_name=data.guest_name,
            guest_email=data.guest_email,
            check_in=data.check_in,
            check_out=data.check_out,
            guests=data.guests,
            status=status,
        )
        return self.apply_report(data.platform, event, event_time=None)

    def apply_report(
        self,
        platform: str,
        data: ReservationEventData,
        event_time: Optional[datetime],
    ) -> ReservationChange:
        """
        Create or update a reservation from a platform report.

        Reports older than the last applied event are ignored, and a
        cancelled reservation stays cancelled.

        Raises:
            ValueError: If the report lacks the fields needed to create the
                reservation
        """
        reference = data.reference
        if not reference:
            raise ValueError("Reservation id missing from event data")

        reservation_id = normalize_platform_id(platform, reference)
        event_time = parse_timestamp(event_time)
        reservation = self.repo.get_reservation(self.db, reservation_id)

        if reservation is None:
            if not (data.property_id and data.check_in and data.check_out):
                raise ValueError(
                    f"Reservation {reservation_id} is unknown and the event lacks property or dates"
                )
            prop = self.ensure_property(platform, data.property_id, data.property_name)
            status = normalize_reservation_status(data.status) or "confirmed"
            reservation, created = self.repo.create_reservation(
                self.db,
                id=reservation_id,
                platform=platform,
                platform_reservation_id=reservation_id.removeprefix(f"{platform}-"),
                property_id=prop.id,
                guest_name=data.guest_name,
                guest_email=data.guest_email,
                check_in=data.check_in,
                check_out=data.check_out,
                guests=data.guests or 1,
                status=status,
                source_updated_at=event_time,
            )
            if created:
                logger.info(f"📥 Reservation {reservation.id} saved ({status})")
                return ReservationChange(reservation, created=True, previous_status=None)

        return self._update(reservation, data, event_time)

    def cancel(
        self,
        platform: str,
        data: ReservationEventData,
        event_time: Optional[datetime],
    ) -> ReservationChange:
        """Mark a reservation cancelled"""
        reference = data.reference
        if not reference:
            raise ValueError("Reservation id missing from event data")

        reservation_id = normalize_platform_id(platform, reference)
        event_time = parse_timestamp(event_time)
        reservation = self.repo.get_reservation(self.db, reservation_id)

        if reservation is None:
            logger.warning(f"⚠️ Cancellation for unknown reservation {reservation_id}")
            return ReservationChange(None, ignored="unknown_reservation")

        if self._is_stale(reservation, event_time):
            return ReservationChange(reservation, previous_status=reservation.status, ignored="stale_event")

        previous_status = reservation.status
        self.repo.update_reservation(
            self.db, reservation, status="cancelled", source_updated_at=event_time
        )
        logger.info(f"❌ Reservation {reservation.id} cancelled (was {previous_status})")
        return ReservationChange(reservation, previous_status=previous_status)

    def _update(
        self,
        reservation: Reservation,
        data: ReservationEventData,
        event_time: Optional[datetime],
    ) -> ReservationChange:
        previous_status = reservation.status

        if self._is_stale(reservation, event_time):
            return ReservationChange(reservation, previous_status=previous_status, ignored="stale_event")

        if previous_status == "cancelled":
            logger.warning(f"⚠️ Ignoring update for cancelled reservation {reservation.id}")
            return ReservationChange(
                reservation, previous_status=previous_status, ignored="reservation_cancelled"
            )

        status = normalize_reservation_status(data.status)
        if data.status and status is None:
            logger.warning(f"⚠️ Unknown status '{data.status}' for {reservation.id}, keeping {previous_status}")

        previous_dates = (reservation.check_in, reservation.check_out)
        updates = {
            "guest_name": data.guest_name,
            "guest_email": data.guest_email,
            "check_in": data.check_in,
            "check_out": data.check_out,
            "guests": data.guests,
            "status": status,
            "source_updated_at": event_time,
        }
        if data.property_id:
            prop = self.ensure_property(reservation.platform, data.property_id, data.property_name)
            updates["property_id"] = prop.id

        self.repo.update_reservation(self.db, reservation, **updates)
        dates_changed = previous_dates != (reservation.check_in, reservation.check_out)
        if dates_changed:
            logger.info(
                f"📅 Reservation {reservation.id} dates changed: "
                f"{previous_dates[0]}–{previous_dates[1]} → {reservation.check_in}–{reservation.check_out}"
            )
        return ReservationChange(
            reservation, dates_changed=dates_changed, previous_status=previous_status
        )

    @staticmethod
    def _is_stale(reservation: Reservation, event_time: Optional[datetime]) -> bool:
        """An event older than the last applied one lost the race"""
        if event_time is None or reservation.source_updated_at is None:
            return False
        last_applied = parse_timestamp(reservation.source_updated_at)
        if event_time < last_applied:
            logger.warning(
                f"⚠️ Stale event for {reservation.id}: {event_time.isoformat()} < {last_applied.isoformat()}"
            )
            return True
        return False
