"""Task repository - Database operations for cleaning tasks"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import CleaningTask

logger = logging.getLogger(__name__)

ACTIVE_ASSIGNMENT_STATUSES = ("assigned", "in_progress")


class TaskRepository:
    """Repository for cleaning task database operations"""

    @staticmethod
    def get_task(db: Session, task_id: int) -> Optional[CleaningTask]:
        return db.query(CleaningTask).filter(CleaningTask.id == task_id).first()

    @staticmethod
    def get_tasks(
        db: Session,
        property_id: Optional[str] = None,
        cleaner_id: Optional[str] = None,
        status: Optional[str] = None,
        scheduled_date: Optional[date] = None,
    ) -> list[CleaningTask]:
        """Get tasks with optional filters"""
        query = db.query(CleaningTask)
        if property_id:
            query = query.filter(CleaningTask.property_id == property_id)
        if cleaner_id:
            query = query.filter(CleaningTask.assigned_cleaner_id == cleaner_id)
        if status:
            query = query.filter(CleaningTask.status == status)
        if scheduled_date:
            query = query.filter(CleaningTask.scheduled_date == scheduled_date)
        return query.order_by(CleaningTask.scheduled_date.asc(), CleaningTask.id.asc()).all()

    @staticmethod
    def get_reservation_tasks(db: Session, reservation_id: str) -> list[CleaningTask]:
        return (
            db.query(CleaningTask)
            .filter(CleaningTask.reservation_id == reservation_id)
            .order_by(CleaningTask.id.asc())
            .all()
        )

    @staticmethod
    def get_reservation_task(db: Session, reservation_id: str, task_type: str) -> Optional[CleaningTask]:
        return (
            db.query(CleaningTask)
            .filter(CleaningTask.reservation_id == reservation_id, CleaningTask.type == task_type)
            .first()
        )

    @staticmethod
    def get_bookings_for_day(db: Session, day: date) -> list[CleaningTask]:
        """Tasks holding a cleaner's time on ``day``"""
        return (
            db.query(CleaningTask)
            .filter(
                CleaningTask.scheduled_date == day,
                CleaningTask.assigned_cleaner_id.isnot(None),
                CleaningTask.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
            )
            .all()
        )

    @staticmethod
    def create_task(db: Session, **task_data) -> tuple[CleaningTask, bool]:
        """
        Create a task.

        Returns:
            Tuple of (task, created). A reservation task that already exists is
            returned with ``created`` False.
        """
        task = CleaningTask(**task_data)
        db.add(task)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            reservation_id = task_data.get("reservation_id")
            existing = (
                TaskRepository.get_reservation_task(db, reservation_id, task_data["type"])
                if reservation_id
                else None
            )
            if existing is None:
                raise
            logger.info(f"ℹ️ Task {task_data['type']} for {reservation_id} already exists")
            return existing, False
        db.refresh(task)
        return task, True

    @staticmethod
    def save(db: Session, task: CleaningTask) -> CleaningTask:
        db.commit()
        db.refresh(task)
        return task
