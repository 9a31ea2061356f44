import os

# Settings are read at import time
os.environ.update(
    {
        "DATABASE_URL": "sqlite://",
        "SECRET_KEY": "test-secret-key",
        "AIRBNB_WEBHOOK_SECRET": "airbnb-test-secret",
        "HOSTAWAY_WEBHOOK_SECRET": "hostaway-test-secret",
        "BOOKING_WEBHOOK_SECRET": "",
        "TWILIO_ACCOUNT_SID": "",
        "TWILIO_AUTH_TOKEN": "",
        "TWILIO_WHATSAPP_FROM": "",
        "CLEANING_TEAM_WHATSAPP": "",
        "RESEND_API_KEY": "",
        "MANAGER_EMAIL": "",
        "DB_LOG_SLOW_QUERIES": "false",
    }
)

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bsos.database import Base, get_db  # noqa: E402
from bsos.main import app  # noqa: E402
from bsos.routes.webhooks import rate_limit_webhook  # noqa: E402
from bsos.schemas import ApiCredentials  # noqa: E402
from bsos.services.orchestrator import IntegrationOrchestrator, get_orchestrator  # noqa: E402


class FakePlatforms:
    """
    httpx transport handler serving canned responses per (method, host + path).

    Responses queued for a route are served in order; the last one repeats.
    Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, json=None, error: bool = False):
        self.routes.setdefault((method, url), []).append((status, json, error))
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, f"{request.url.host}{request.url.path}"))
        if not queue:
            return httpx.Response(404, json={"error": "not found"})

        status, body, error = queue.pop(0) if len(queue) > 1 else queue[0]
        if error:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status, json=body)

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and f"{r.url.host}{r.url.path}" == url
        ]


@pytest.fixture
def fake_platforms():
    return FakePlatforms()


@pytest.fixture
def client_options(fake_platforms):
    return {
        "transport": httpx.MockTransport(fake_platforms),
        "max_retries": 2,
        "retry_base_delay": 0,
        "demo_fallback": False,
    }


@pytest.fixture
def orchestrator(client_options):
    return IntegrationOrchestrator(**client_options)


@pytest.fixture
def configured_orchestrator(orchestrator):
    """Orchestrator with every platform configured"""
    orchestrator.configure_airbnb(ApiCredentials(access_token="airbnb-token"))
    orchestrator.configure_hostaway(ApiCredentials(access_token="hostaway-token"))
    orchestrator.configure_taskbird(ApiCredentials(api_key="taskbird-key"))
    orchestrator.configure_turno(ApiCredentials(api_key="turno-key"))
    return orchestrator


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def client(db, orchestrator):
    def override_get_db():
        yield db

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[rate_limit_webhook] = no_rate_limit
    yield TestClient(app)
    app.dependency_overrides.clear()
