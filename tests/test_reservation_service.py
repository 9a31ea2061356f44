from datetime import date, datetime, timezone

import pytest

from bsos.domain.reservations.service import ReservationService
from bsos.domain.tasks.service import TaskService
from bsos.models import Property
from bsos.schemas import PlatformReservation, ReservationEventData
from bsos.shared.validators import (
    minutes_to_time,
    normalize_platform_id,
    normalize_reservation_status,
    parse_date,
    parse_timestamp,
    time_to_minutes,
)


def event(**overrides):
    data = {
        "reservation_id": 4411,
        "property_id": 123,
        "guest_name": "Ana Costa",
        "check_in": "2024-03-01",
        "check_out": "2024-03-04",
    }
    data.update(overrides)
    return ReservationEventData.model_validate(data)


class TestValidators:
    def test_parse_date_drops_time(self):
        assert parse_date("2024-03-04T11:00:00Z") == date(2024, 3, 4)
        assert parse_date(datetime(2024, 3, 4, 9)) == date(2024, 3, 4)
        assert parse_date("") is None

    def test_parse_timestamp_is_utc(self):
        parsed = parse_timestamp("2024-01-10T12:00:00-03:00")

        assert parsed == datetime(2024, 1, 10, 15, tzinfo=timezone.utc)
        assert parse_timestamp(datetime(2024, 1, 10)).tzinfo == timezone.utc

    def test_time_conversion(self):
        assert time_to_minutes("09:30") == 570
        assert minutes_to_time(570) == "09:30"
        with pytest.raises(ValueError):
            time_to_minutes("25:00")

    def test_platform_ids(self):
        assert normalize_platform_id("airbnb", "123") == "airbnb-123"
        assert normalize_platform_id("airbnb", "airbnb-123") == "airbnb-123"
        assert normalize_platform_id("airbnb", 7) == "airbnb-7"

    def test_status_aliases(self):
        assert normalize_reservation_status("Canceled") == "cancelled"
        assert normalize_reservation_status("accepted") == "confirmed"
        assert normalize_reservation_status("pending_payment") is None


class TestReservationService:
    def test_numeric_ids_and_placeholder_property(self, db):
        change = ReservationService(db).apply_report("hostaway", event(), event_time=None)

        assert change.created
        assert change.reservation.id == "hostaway-4411"
        assert change.reservation.platform_reservation_id == "4411"
        assert change.reservation.guests == 1
        assert db.get(Property, "hostaway-123").name == "hostaway-123"

    def test_property_name_from_event_updates_placeholder(self, db):
        service = ReservationService(db)
        service.apply_report("hostaway", event(), event_time=None)

        service.apply_report("hostaway", event(property_name="Studio Copacabana"), event_time=None)

        assert db.get(Property, "hostaway-123").name == "Studio Copacabana"

    def test_dates_change_detection(self, db):
        service = ReservationService(db)
        service.apply_report("hostaway", event(), event_time=None)

        same = service.apply_report("hostaway", event(), event_time=None)
        moved = service.apply_report("hostaway", event(check_in="2024-03-02"), event_time=None)

        assert not same.dates_changed
        assert moved.dates_changed
        assert moved.reservation.check_in == date(2024, 3, 2)

    def test_unknown_status_keeps_current(self, db):
        service = ReservationService(db)
        service.apply_report("hostaway", event(), event_time=None)

        change = service.apply_report("hostaway", event(status="on_hold"), event_time=None)

        assert change.reservation.status == "confirmed"

    def test_stale_event_is_ignored(self, db):
        service = ReservationService(db)
        service.apply_report("hostaway", event(), event_time=datetime(2024, 1, 10, tzinfo=timezone.utc))

        change = service.apply_report(
            "hostaway", event(guest_name="Outro"), event_time=datetime(2024, 1, 9, tzinfo=timezone.utc)
        )

        assert change.ignored == "stale_event"
        assert change.reservation.guest_name == "Ana Costa"

    def test_missing_reference(self, db):
        with pytest.raises(ValueError):
            ReservationService(db).apply_report("airbnb", event(reservation_id=None), event_time=None)

    def test_synced_reservation_cancellation_is_detected(self, db):
        service = ReservationService(db)
        synced = PlatformReservation(
            id="airbnb-R5",
            property_id="airbnb-1",
            check_in=date(2024, 3, 1),
            check_out=date(2024, 3, 4),
            status="accepted",
            platform="airbnb",
            platform_reservation_id="R5",
        )
        created = service.upsert_synced_reservation(synced)

        cancelled = service.upsert_synced_reservation(synced.model_copy(update={"status": "canceled"}))

        assert created.reservation.status == "confirmed"
        assert cancelled.became_cancelled


class TestTaskDerivation:
    def test_cancelled_reservation_has_no_tasks(self, db):
        change = ReservationService(db).apply_report("airbnb", event(status="cancelled"), event_time=None)

        assert TaskService(db).derive_tasks(change.reservation) == []

    def test_pending_tasks_order(self, db):
        service = TaskService(db)
        first = ReservationService(db).apply_report("airbnb", event(), event_time=None).reservation
        second = ReservationService(db).apply_report(
            "airbnb", event(reservation_id="9", check_in="2024-02-20", check_out="2024-03-01"), event_time=None
        ).reservation
        service.derive_tasks(first)
        service.derive_tasks(second)

        ordered = [(t.scheduled_date, t.priority) for t in service.get_pending_tasks()]

        assert ordered == [
            (date(2024, 2, 20), "medium"),
            (date(2024, 3, 1), "high"),
            (date(2024, 3, 1), "medium"),
            (date(2024, 3, 4), "high"),
        ]
