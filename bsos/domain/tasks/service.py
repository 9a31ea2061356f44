"""Task service - Derivation of cleaning tasks from reservations and status changes"""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import CleaningTask, Reservation
from ...services.status_automation import TERMINAL_TASK_STATUSES, transition_task
from .repository import TaskRepository

logger = logging.getLogger(__name__)

# Two tasks per reservation: clean after the guest leaves, prepare before the guest arrives
DERIVED_TASKS = (
    {
        "type": "checkout_cleaning",
        "date_field": "check_out",
        "title": "Limpeza Pós-Checkout",
        "estimated_duration": 120,  # 2 hours
        "priority": "high",
    },
    {
        "type": "checkin_preparation",
        "date_field": "check_in",
        "title": "Preparação Pré-Checkin",
        "estimated_duration": 90,  # 1.5 hours
        "priority": "medium",
    },
)

CHECKLIST_TEMPLATES = {
    "checkout_cleaning": [
        ("Trocar roupa de cama", True, "cleaning"),
        ("Aspirar tapetes", True, "cleaning"),
        ("Limpar banheiro", True, "cleaning"),
        ("Lavar louça e utensílios", True, "cleaning"),
        ("Tirar o lixo", True, "cleaning"),
        ("Verificar amenities", True, "inspection"),
    ],
    "checkin_preparation": [
        ("Repor papel higiênico e toalhas", True, "supplies"),
        ("Verificar amenities", True, "inspection"),
        ("Verificar iluminação e ar-condicionado", False, "maintenance"),
        ("Conferir chaves e acesso", True, "inspection"),
    ],
}

PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}


def build_checklist(task_type: str) -> list[dict]:
    """Fresh checklist items for a task type"""
    return [
        {
            "id": str(uuid.uuid4()),
            "description": description,
            "completed": False,
            "required": required,
            "category": category,
        }
        for description, required, category in CHECKLIST_TEMPLATES.get(task_type, [])
    ]


class TaskService:
    """Service layer for cleaning task business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TaskRepository()

    def get_task(self, task_id: int) -> CleaningTask:
        task = self.repo.get_task(self.db, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    def list_tasks(
        self,
        property_id: Optional[str] = None,
        cleaner_id: Optional[str] = None,
        status: Optional[str] = None,
        scheduled_date: Optional[date] = None,
    ) -> list[CleaningTask]:
        return self.repo.get_tasks(self.db, property_id, cleaner_id, status, scheduled_date)

    def get_pending_tasks(self) -> list[CleaningTask]:
        """Pending tasks in assignment order: earliest date, then highest priority"""
        tasks = self.repo.get_tasks(self.db, status="pending")
        return sorted(
            tasks, key=lambda t: (t.scheduled_date, PRIORITY_RANK.get(t.priority, 99), t.id)
        )

    def derive_tasks(self, reservation: Reservation) -> list[CleaningTask]:
        """
        Create the checkout-cleaning and checkin-preparation tasks of a
        reservation. Tasks that already exist are left untouched, so repeated
        deliveries of the same reservation never duplicate work.

        Returns:
            The tasks created by this call
        """
        if reservation.status == "cancelled":
            logger.info(f"ℹ️ Reservation {reservation.id} is cancelled, no tasks derived")
            return []

        guest = reservation.guest_name or "hóspede"
        created_tasks = []
        for derived in DERIVED_TASKS:
            if self.repo.get_reservation_task(self.db, reservation.id, derived["type"]):
                continue

            task, created = self.repo.create_task(
                self.db,
                property_id=reservation.property_id,
                reservation_id=reservation.id,
                type=derived["type"],
                title=derived["title"],
                description=f"{derived['title']} - {guest} ({reservation.platform})",
                scheduled_date=getattr(reservation, derived["date_field"]),
                estimated_duration=derived["estimated_duration"],
                priority=derived["priority"],
                status="pending",
                checklist=build_checklist(derived["type"]),
            )
            if created:
                created_tasks.append(task)
                logger.info(
                    f"🧹 Task {task.id} ({task.type}) created for reservation {reservation.id} on {task.scheduled_date}"
                )

        return created_tasks

    def reschedule_tasks(self, reservation: Reservation) -> list[CleaningTask]:
        """
        Move open derived tasks to the reservation's current dates.
        An assigned task whose date changes goes back to pending so it can be
        re-assigned for the new day.

        Returns:
            The tasks whose date changed
        """
        changed = []
        for derived in DERIVED_TASKS:
            task = self.repo.get_reservation_task(self.db, reservation.id, derived["type"])
            if not task or task.status in TERMINAL_TASK_STATUSES:
                continue

            new_date = getattr(reservation, derived["date_field"])
            if task.scheduled_date == new_date:
                continue

            logger.info(f"📅 Task {task.id} rescheduled: {task.scheduled_date} → {new_date}")
            task.scheduled_date = new_date
            task.scheduled_time = None
            if task.status == "assigned":
                transition_task(task, "pending")
            changed.append(task)

        if changed:
            self.db.commit()
        return changed

    def cancel_tasks(self, reservation: Reservation) -> list[CleaningTask]:
        """
        Cancel every open task of a reservation, releasing assigned cleaners

        Returns:
            The tasks cancelled by this call
        """
        cancelled = []
        for task in self.repo.get_reservation_tasks(self.db, reservation.id):
            if task.status in TERMINAL_TASK_STATUSES:
                continue
            transition_task(task, "cancelled")
            cancelled.append(task)

        if cancelled:
            self.db.commit()
            logger.info(f"❌ Cancelled {len(cancelled)} task(s) of reservation {reservation.id}")
        return cancelled

    def change_status(
        self,
        task_id: int,
        new_status: str,
        cleaner_id: Optional[str] = None,
        cleaner_name: Optional[str] = None,
    ) -> CleaningTask:
        """Change a task's status through the status machine"""
        task = self.get_task(task_id)
        transition_task(task, new_status, cleaner_id, cleaner_name)
        return self.repo.save(self.db, task)
