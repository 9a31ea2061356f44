from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

RESERVATION_STATUSES = ("confirmed", "checked_in", "checked_out", "cancelled")
TASK_STATUSES = ("pending", "assigned", "in_progress", "completed", "cancelled")
TASK_TYPES = (
    "checkout_cleaning",
    "checkin_preparation",
    "maintenance",
    "deep_cleaning",
    "inspection",
)
TASK_PRIORITIES = ("low", "medium", "high", "urgent")


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(255), primary_key=True, index=True)  # "<platform>-<platform_id>"
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    type = Column(String(50), default="apartment", nullable=False)  # apartment, house, studio, commercial
    platform = Column(String(50), nullable=False, index=True)
    platform_id = Column(String(255), nullable=False)
    owner_id = Column(String(255), nullable=True)
    key_location = Column(String(255), nullable=True)
    cleaning_instructions = Column(Text, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="property")
    tasks = relationship("CleaningTask", back_populates="property")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("platform", "platform_reservation_id", name="uq_reservation_platform_ref"),
    )

    id = Column(String(255), primary_key=True, index=True)  # "<platform>-<platform_reservation_id>"
    platform = Column(String(50), nullable=False, index=True)
    platform_reservation_id = Column(String(255), nullable=False)
    property_id = Column(String(255), ForeignKey("properties.id"), nullable=False, index=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, default=1, nullable=True)
    status = Column(String(50), default="confirmed", nullable=False)  # confirmed, checked_in, checked_out, cancelled
    # Timestamp of the last platform event applied; older events are ignored
    source_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    property = relationship("Property", back_populates="reservations")
    tasks = relationship("CleaningTask", back_populates="reservation")


class CleaningTask(Base):
    __tablename__ = "cleaning_tasks"
    __table_args__ = (
        # One checkout task and one checkin task per reservation
        UniqueConstraint("reservation_id", "type", name="uq_task_reservation_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(String(255), ForeignKey("properties.id"), nullable=False, index=True)
    reservation_id = Column(String(255), ForeignKey("reservations.id"), nullable=True, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String(5), nullable=True)  # HH:MM
    estimated_duration = Column(Integer, nullable=False)  # minutes
    actual_duration = Column(Integer, nullable=True)
    assigned_cleaner_id = Column(String(255), nullable=True, index=True)
    assigned_cleaner_name = Column(String(255), nullable=True)
    external_id = Column(String(255), nullable=True)  # Taskbird task id
    status = Column(String(50), default="pending", nullable=False, index=True)
    priority = Column(String(20), default="medium", nullable=False)
    checklist = Column(JSON, default=list, nullable=False)
    rating = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    property = relationship("Property", back_populates="tasks")
    reservation = relationship("Reservation", back_populates="tasks")


class Integration(Base):
    __tablename__ = "integrations"

    id = Column(Integer, primary_key=True, index=True)
    platform = Column(String(50), nullable=False, index=True)  # airbnb, hostaway, taskbird, turno
    name = Column(String(255), nullable=False)
    status = Column(String(50), default="disconnected", nullable=False)  # connected, disconnected, error, syncing
    credentials = Column(Text, nullable=True)  # Fernet encrypted JSON
    webhook_url = Column(String(500), nullable=True)
    sync_interval = Column(Integer, default=15, nullable=False)  # minutes
    auto_sync = Column(Boolean, default=True, nullable=False)
    settings = Column(JSON, nullable=True)
    last_sync = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WebhookEvent(Base):
    """Delivery log used to make webhook processing idempotent"""

    __tablename__ = "webhook_events"
    __table_args__ = (UniqueConstraint("platform", "event_key", name="uq_webhook_event_key"),)

    id = Column(Integer, primary_key=True, index=True)
    platform = Column(String(50), nullable=False)
    event_key = Column(String(255), nullable=False)  # delivery id header or body sha256
    event_type = Column(String(100), nullable=True)
    status = Column(String(20), default="processing", nullable=False)  # processing, processed, ignored, failed
    error_message = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient = Column(String(255), nullable=False)
    channel = Column(String(20), nullable=False)  # whatsapp, email
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, sent, failed
    error_message = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
