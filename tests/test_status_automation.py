from datetime import date

from bsos.models import CleaningTask, Property, Reservation
from bsos.services.status_automation import update_statuses

TODAY = date(2024, 1, 25)


def add_reservation(db, id, check_in, check_out, status="confirmed"):
    if db.get(Property, "airbnb-123") is None:
        db.add(Property(id="airbnb-123", name="Apartamento Centro", platform="airbnb", platform_id="123"))
    reservation = Reservation(
        id=f"airbnb-{id}",
        platform="airbnb",
        platform_reservation_id=id,
        property_id="airbnb-123",
        check_in=check_in,
        check_out=check_out,
        status=status,
    )
    db.add(reservation)
    db.commit()
    return reservation


def add_task(db, reservation, scheduled_date, status="pending", priority="medium", task_type="checkout_cleaning"):
    task = CleaningTask(
        property_id="airbnb-123",
        reservation_id=reservation.id,
        type=task_type,
        title="Limpeza",
        scheduled_date=scheduled_date,
        estimated_duration=120,
        status=status,
        priority=priority,
        checklist=[],
    )
    db.add(task)
    db.commit()
    return task


def test_reservations_follow_the_calendar(db):
    arriving = add_reservation(db, "A", date(2024, 1, 25), date(2024, 1, 28))
    same_day = add_reservation(db, "B", date(2024, 1, 20), date(2024, 1, 25))
    future = add_reservation(db, "C", date(2024, 2, 1), date(2024, 2, 3))

    summary = update_statuses(db, today=TODAY)

    assert arriving.status == "checked_in"
    # confirmed → checked_in → checked_out in a single run
    assert same_day.status == "checked_out"
    assert future.status == "confirmed"
    assert summary["checked_in"] == 2
    assert summary["checked_out"] == 1


def test_open_tasks_of_cancelled_reservations_are_cancelled(db):
    cancelled = add_reservation(db, "X", date(2024, 2, 1), date(2024, 2, 3), status="cancelled")
    open_task = add_task(db, cancelled, date(2024, 2, 3), status="assigned")
    open_task.assigned_cleaner_id = "cleaner-001"
    done_task = add_task(db, cancelled, date(2024, 2, 1), status="completed", task_type="checkin_preparation")
    db.commit()

    summary = update_statuses(db, today=TODAY)

    assert open_task.status == "cancelled"
    assert open_task.assigned_cleaner_id is None
    assert done_task.status == "completed"
    assert summary["orphan_tasks_cancelled"] == 1


def test_due_pending_tasks_are_escalated(db):
    reservation = add_reservation(db, "D", date(2024, 2, 1), date(2024, 2, 3))
    due = add_task(db, reservation, TODAY, priority="high")
    later = add_task(db, reservation, date(2024, 2, 1), task_type="checkin_preparation")

    summary = update_statuses(db, today=TODAY)

    assert due.priority == "urgent"
    assert later.priority == "medium"
    assert summary["tasks_escalated"] == 1


def test_nothing_to_do(db):
    add_reservation(db, "E", date(2024, 3, 1), date(2024, 3, 3))

    summary = update_statuses(db, today=TODAY)

    assert summary["total_updated"] == 0
