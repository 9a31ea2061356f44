"""
Task status machine and automated status transitions
Handles the central task transition guard used by every status change
Handles date-driven reservation transitions (confirmed → checked_in → checked_out)
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..exceptions import InvalidTransitionError
from ..models import CleaningTask, Reservation

logger = logging.getLogger(__name__)

# Task statuses: pending → assigned → in_progress → completed, or cancelled
VALID_TASK_TRANSITIONS = {
    "pending": ["assigned", "cancelled"],
    "assigned": ["in_progress", "pending", "cancelled"],  # back to pending releases the cleaner
    "in_progress": ["completed", "cancelled"],
    "completed": [],  # Terminal state
    "cancelled": [],  # Terminal state
}

TERMINAL_TASK_STATUSES = {"completed", "cancelled"}


def validate_task_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if a task status transition is allowed

    Args:
        current_status: Current task status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    allowed = VALID_TASK_TRANSITIONS.get(current_status, [])
    return new_status in allowed


def transition_task(
    task: CleaningTask,
    new_status: str,
    cleaner_id: Optional[str] = None,
    cleaner_name: Optional[str] = None,
) -> CleaningTask:
    """
    Apply a status change to a task through the status machine.

    Moving to ``assigned`` requires a cleaner; moving back to ``pending`` or to
    ``cancelled`` releases the current one. The caller commits.

    Raises:
        InvalidTransitionError: If the status machine forbids the change
    """
    if not validate_task_transition(task.status, new_status):
        raise InvalidTransitionError(task.status, new_status)

    if new_status == "assigned":
        if not cleaner_id:
            raise ValueError("A cleaner is required to assign a task")
        task.assigned_cleaner_id = cleaner_id
        task.assigned_cleaner_name = cleaner_name
    elif new_status in ("pending", "cancelled"):
        task.assigned_cleaner_id = None
        task.assigned_cleaner_name = None

    logger.info(f"✅ Task {task.id} transitioned: {task.status} → {new_status}")
    task.status = new_status
    return task


def update_statuses(db: Session, today: Optional[date] = None) -> dict:
    """
    Update reservation and task statuses based on dates
    Should be run as a scheduled job (e.g., daily cron)

    Reservation statuses: confirmed → checked_in → checked_out (or cancelled)
    Task statuses: pending → assigned → in_progress → completed (or cancelled)

    Returns:
        dict: Summary of status changes made
    """
    summary = {
        "checked_in": 0,
        "checked_out": 0,
        "orphan_tasks_cancelled": 0,
        "tasks_escalated": 0,
        "total_updated": 0,
    }

    try:
        today = today or date.today()

        # 1. CONFIRMED → CHECKED_IN (check-in day has arrived)
        arriving = (
            db.query(Reservation)
            .filter(Reservation.status == "confirmed", Reservation.check_in <= today)
            .all()
        )
        for reservation in arriving:
            reservation.status = "checked_in"
            summary["checked_in"] += 1
            logger.info(f"✅ Reservation {reservation.id} transitioned: confirmed → checked_in")
        db.flush()

        # 2. CHECKED_IN → CHECKED_OUT (check-out day has arrived)
        departing = (
            db.query(Reservation)
            .filter(Reservation.status == "checked_in", Reservation.check_out <= today)
            .all()
        )
        for reservation in departing:
            reservation.status = "checked_out"
            summary["checked_out"] += 1
            logger.info(f"✅ Reservation {reservation.id} transitioned: checked_in → checked_out")

        # 3. Tasks left open on cancelled reservations
        orphan_tasks = (
            db.query(CleaningTask)
            .join(Reservation, CleaningTask.reservation_id == Reservation.id)
            .filter(
                Reservation.status == "cancelled",
                CleaningTask.status.notin_(TERMINAL_TASK_STATUSES),
            )
            .all()
        )
        for task in orphan_tasks:
            transition_task(task, "cancelled")
            summary["orphan_tasks_cancelled"] += 1
        db.flush()

        # 4. Pending tasks that are due get top priority
        overdue_tasks = (
            db.query(CleaningTask)
            .filter(
                CleaningTask.status == "pending",
                CleaningTask.scheduled_date <= today,
                CleaningTask.priority != "urgent",
            )
            .all()
        )
        for task in overdue_tasks:
            task.priority = "urgent"
            summary["tasks_escalated"] += 1
            logger.info(f"⏰ Task {task.id} escalated to urgent (due {task.scheduled_date})")

        total = (
            summary["checked_in"]
            + summary["checked_out"]
            + summary["orphan_tasks_cancelled"]
            + summary["tasks_escalated"]
        )
        if total > 0:
            db.commit()
            summary["total_updated"] = total
            logger.info(f"📊 Status automation summary: {summary}")
        else:
            logger.debug("ℹ️ No reservation/task status updates needed")

        return summary

    except Exception as e:
        logger.error(f"❌ Error updating statuses: {str(e)}")
        db.rollback()
        raise
