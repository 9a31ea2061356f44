"""Reservation repository - Database operations for properties and reservations"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Property, Reservation

logger = logging.getLogger(__name__)


class ReservationRepository:
    """Repository for property and reservation database operations"""

    @staticmethod
    def get_property(db: Session, property_id: str) -> Optional[Property]:
        return db.query(Property).filter(Property.id == property_id).first()

    @staticmethod
    def get_properties(db: Session, platform: Optional[str] = None) -> list[Property]:
        query = db.query(Property)
        if platform:
            query = query.filter(Property.platform == platform)
        return query.order_by(Property.name.asc()).all()

    @staticmethod
    def create_property(db: Session, **property_data) -> Property:
        """
        Create a property. A concurrent insert of the same id is resolved by
        returning the row that won.
        """
        prop = Property(**property_data)
        db.add(prop)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = ReservationRepository.get_property(db, property_data["id"])
            if existing is None:
                raise
            logger.debug(f"Property {property_data['id']} created concurrently, reusing it")
            return existing
        db.refresh(prop)
        return prop

    @staticmethod
    def get_reservation(db: Session, reservation_id: str) -> Optional[Reservation]:
        return db.query(Reservation).filter(Reservation.id == reservation_id).first()

    @staticmethod
    def get_reservations(
        db: Session,
        property_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Reservation]:
        query = db.query(Reservation)
        if property_id:
            query = query.filter(Reservation.property_id == property_id)
        if status:
            query = query.filter(Reservation.status == status)
        return query.order_by(Reservation.check_in.asc()).all()

    @staticmethod
    def create_reservation(db: Session, **reservation_data) -> tuple[Reservation, bool]:
        """
        Create a reservation.

        Returns:
            Tuple of (reservation, created). ``created`` is False when another
            delivery inserted the same reservation first.
        """
        reservation = Reservation(**reservation_data)
        db.add(reservation)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = ReservationRepository.get_reservation(db, reservation_data["id"])
            if existing is None:
                raise
            logger.info(f"ℹ️ Reservation {reservation_data['id']} created concurrently, reusing it")
            return existing, False
        db.refresh(reservation)
        return reservation, True

    @staticmethod
    def update_reservation(db: Session, reservation: Reservation, **updates) -> Reservation:
        """Update a reservation with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(reservation, key):
                setattr(reservation, key, value)

        db.commit()
        db.refresh(reservation)
        return reservation
