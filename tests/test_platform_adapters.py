from datetime import date

import pytest

from bsos.exceptions import PlatformAPIError
from bsos.models import CleaningTask
from bsos.schemas import ApiCredentials
from bsos.services.airbnb_service import AirbnbApiService
from bsos.services.hostaway_service import HostawayApiService
from bsos.services.taskbird_service import TaskbirdApiService
from bsos.services.turno_service import TurnoApiService

AIRBNB = "api.airbnb.com/v2"
HOSTAWAY = "api.hostaway.com/v1"
TASKBIRD = "api.taskbird.com/v1"
TURNO = "api.turno.com/v1"


@pytest.fixture
def airbnb(client_options):
    return AirbnbApiService(ApiCredentials(access_token="airbnb-token"), **client_options)


async def test_airbnb_properties_are_mapped_with_platform_prefix(airbnb, fake_platforms):
    fake_platforms.add(
        "GET",
        f"{AIRBNB}/listings",
        json={"listings": [{"id": 77, "name": "Loft Lapa", "address": "Rua do Lavradio, 10"}]},
    )

    properties = await airbnb.get_properties()

    assert len(properties) == 1
    assert properties[0].id == "airbnb-77"
    assert properties[0].platform_id == "77"
    assert properties[0].name == "Loft Lapa"
    request = fake_platforms.requests[0]
    assert request.headers["Authorization"] == "Bearer airbnb-token"


async def test_airbnb_reservations_filter_by_listing_and_join_guest_name(airbnb, fake_platforms):
    fake_platforms.add(
        "GET",
        f"{AIRBNB}/reservations",
        json={
            "reservations": [
                {
                    "id": "R1",
                    "listing_id": 77,
                    "guest": {"first_name": "Ana", "last_name": "Costa", "email": "ana@example.com"},
                    "start_date": "2024-03-01",
                    "end_date": "2024-03-04T11:00:00Z",
                    "status": "accepted",
                }
            ]
        },
    )

    reservations = await airbnb.get_reservations(property_id="77")

    assert fake_platforms.requests[0].url.params["listing_id"] == "77"
    reservation = reservations[0]
    assert reservation.guest_name == "Ana Costa"
    assert reservation.property_id == "airbnb-77"
    assert reservation.check_out == date(2024, 3, 4)
    assert reservation.platform_reservation_id == "R1"


async def test_retryable_status_is_retried_until_success(airbnb, fake_platforms):
    fake_platforms.add("GET", f"{AIRBNB}/listings", status=503, json={})
    fake_platforms.add("GET", f"{AIRBNB}/listings", json={"listings": []})

    assert await airbnb.get_properties() == []
    assert len(fake_platforms.calls("GET", f"{AIRBNB}/listings")) == 2


async def test_client_error_is_not_retried(airbnb, fake_platforms):
    fake_platforms.add("GET", f"{AIRBNB}/listings", status=401, json={"error": "unauthorized"})

    with pytest.raises(PlatformAPIError) as exc_info:
        await airbnb.get_properties()

    assert exc_info.value.status_code == 401
    assert exc_info.value.platform == "airbnb"
    assert len(fake_platforms.calls("GET", f"{AIRBNB}/listings")) == 1


async def test_transport_errors_exhaust_retries(airbnb, fake_platforms):
    fake_platforms.add("GET", f"{AIRBNB}/listings", error=True)

    with pytest.raises(PlatformAPIError, match="airbnb API error"):
        await airbnb.get_properties()

    assert len(fake_platforms.calls("GET", f"{AIRBNB}/listings")) == 2


async def test_malformed_records_raise_platform_error(airbnb, fake_platforms):
    fake_platforms.add("GET", f"{AIRBNB}/listings", json={"listings": [{"name": "no id"}]})

    with pytest.raises(PlatformAPIError, match="unexpected response format"):
        await airbnb.get_properties()


async def test_demo_fallback_serves_fixtures(client_options, fake_platforms):
    options = {**client_options, "demo_fallback": True}
    service = HostawayApiService(ApiCredentials(access_token="t"), **options)
    fake_platforms.add("GET", f"{HOSTAWAY}/listings", status=500, json={})

    properties = await service.get_properties()

    assert [p.id for p in properties] == ["hostaway-789"]


async def test_hostaway_reservations_mapping(client_options, fake_platforms):
    service = HostawayApiService(ApiCredentials(access_token="t"), **client_options)
    fake_platforms.add(
        "GET",
        f"{HOSTAWAY}/reservations",
        json={
            "result": [
                {
                    "id": 555,
                    "listingId": 789,
                    "guestName": "Maria Santos",
                    "arrivalDate": "2024-01-23",
                    "departureDate": "2024-01-26",
                    "numberOfGuests": 2,
                    "status": "new",
                }
            ]
        },
    )

    reservation = (await service.get_reservations())[0]

    assert reservation.id == "hostaway-555"
    assert reservation.property_id == "hostaway-789"
    assert reservation.guests == 2
    assert reservation.check_in == date(2024, 1, 23)


async def test_setup_webhook_requires_url(airbnb, fake_platforms):
    assert await airbnb.setup_webhook() is False
    assert fake_platforms.requests == []


async def test_setup_webhook_registers_reservation_events(client_options, fake_platforms):
    service = AirbnbApiService(
        ApiCredentials(access_token="t", webhook_url="https://bsos.test/api/webhooks?platform=airbnb"),
        **client_options,
    )
    fake_platforms.add("POST", f"{AIRBNB}/webhooks", status=201, json={"id": "wh-1"})

    assert await service.setup_webhook() is True
    body = fake_platforms.requests[0].read()
    assert b"reservation_cancelled" in body
    assert b"https://bsos.test/api/webhooks?platform=airbnb" in body


async def test_taskbird_create_returns_prefixed_external_id(client_options, fake_platforms):
    service = TaskbirdApiService(ApiCredentials(api_key="tb-key"), **client_options)
    fake_platforms.add("POST", f"{TASKBIRD}/tasks", status=201, json={"id": 99})
    task = CleaningTask(
        id=5,
        property_id="airbnb-123",
        type="checkout_cleaning",
        title="Limpeza Pós-Checkout",
        scheduled_date=date(2024, 1, 25),
        estimated_duration=120,
        priority="high",
    )

    assert await service.create_cleaning_task(task) == "taskbird-99"
    request = fake_platforms.requests[0]
    assert request.headers["Authorization"] == "Bearer tb-key"
    assert b'"due_date":"2024-01-25"' in request.read().replace(b" ", b"")


async def test_taskbird_create_failure_returns_none(client_options, fake_platforms):
    service = TaskbirdApiService(ApiCredentials(api_key="tb-key"), **client_options)
    fake_platforms.add("POST", f"{TASKBIRD}/tasks", status=422, json={"error": "invalid"})
    task = CleaningTask(
        id=6,
        property_id="airbnb-123",
        type="checkin_preparation",
        scheduled_date=date(2024, 1, 22),
        estimated_duration=90,
        priority="medium",
    )

    assert await service.create_cleaning_task(task) is None


async def test_taskbird_status_and_assignment_use_remote_id(client_options, fake_platforms):
    service = TaskbirdApiService(ApiCredentials(api_key="tb-key"), **client_options)
    fake_platforms.add("PATCH", f"{TASKBIRD}/tasks/42", json={})
    fake_platforms.add("POST", f"{TASKBIRD}/tasks/42/assign", json={})

    assert await service.update_task_status("taskbird-42", "completed") is True
    assert await service.assign_task("taskbird-42", "cleaner-001") is True
    assert await service.update_task_status("taskbird-43", "completed") is False


async def test_turno_available_cleaners(client_options, fake_platforms):
    service = TurnoApiService(ApiCredentials(api_key="turno-key"), **client_options)
    fake_platforms.add(
        "GET",
        f"{TURNO}/availability",
        json={
            "available_staff": [
                {"id": 7, "name": "Joana", "rating": 4.8, "available_from": "07:00", "available_until": "15:00"}
            ]
        },
    )

    cleaners = await service.get_available_cleaners(date(2024, 1, 25), 120)

    assert cleaners[0].id == "7"
    assert cleaners[0].available_from == "07:00"
    params = fake_platforms.requests[0].url.params
    assert params["date"] == "2024-01-25"
    assert params["duration"] == "120"


async def test_turno_schedule_shift(client_options, fake_platforms):
    service = TurnoApiService(ApiCredentials(api_key="turno-key"), **client_options)
    fake_platforms.add("POST", f"{TURNO}/shifts", status=201, json={"id": "shift-1"})

    assert await service.schedule_shift("cleaner-001", date(2024, 1, 25), "08:00", 120) is True
    assert b"cleaner-001" in fake_platforms.requests[0].read()
