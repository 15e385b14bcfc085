"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Must be set before app.database / app.core.config are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", f"test-only-{secrets.token_urlsafe(32)}")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "")

from fastapi.testclient import TestClient  # noqa: E402

from app.core.security import create_access_token  # noqa: E402
from app.crud.base import DocumentStore  # noqa: E402
from app.crud.subscriptions import SubscriptionHub  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models.document import DocumentRecord  # noqa: E402,F401
from app.schemas.user import Actor, UserRole  # noqa: E402
from app.services.cleaning_job import CleaningJobService  # noqa: E402
from app.services.job import JobService, PendingJobOutbox  # noqa: E402
from app.services.notifications import StoreNotificationSink  # noqa: E402
from app.services.property import PropertyService  # noqa: E402
from app.services.reconciler import AssignmentReconciler  # noqa: E402
from app.services.team_member import TeamMemberService  # noqa: E402
from app.services.worker_queue import QueueManager, cleaning_queue_config, trash_queue_config  # noqa: E402
from app.utils.clock import MINUTE_MS  # noqa: E402

NOW = 1_700_000_000_000


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: int = 1) -> None:
        self.now += minutes * MINUTE_MS


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def hub():
    return SubscriptionHub()


@pytest.fixture
def store(db, hub):
    return DocumentStore(db, hub)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def notifier(store, clock):
    return StoreNotificationSink(store, clock=clock)


@pytest.fixture
def trash_queue(store, clock):
    return QueueManager(store, trash_queue_config(), clock=clock)


@pytest.fixture
def cleaning_queue(store, clock):
    return QueueManager(store, cleaning_queue_config(), clock=clock)


@pytest.fixture
def job_service(store, trash_queue, notifier, clock):
    return JobService(store, trash_queue, notifier, outbox=PendingJobOutbox(), clock=clock)


@pytest.fixture
def reconciler(store, cleaning_queue, clock):
    return AssignmentReconciler(store, cleaning_queue=cleaning_queue, clock=clock)


@pytest.fixture
def team_service(store, reconciler, clock):
    return TeamMemberService(store, reconciler, clock=clock)


@pytest.fixture
def cleaning_service(store, cleaning_queue, team_service, notifier, clock):
    return CleaningJobService(store, cleaning_queue, team_service, notifier, clock=clock)


@pytest.fixture
def property_service(store):
    return PropertyService(store)


@pytest.fixture
def host():
    return Actor(uid="host-1", role=UserRole.host, first_name="Hana", last_name="Host", email="hana@example.com")


@pytest.fixture
def worker():
    return Actor(uid="worker-1", role=UserRole.worker, first_name="Wes", last_name="Worker")


@pytest.fixture
def other_worker():
    return Actor(uid="worker-2", role=UserRole.worker, first_name="Wren", last_name="Walker")


@pytest.fixture
def cleaner():
    return Actor(uid="cleaner-1", role=UserRole.cleaner, first_name="Cara", last_name="Clean")


@pytest.fixture
def client():
    """Create a test client."""
    from main import app

    return TestClient(app)


def token_headers(actor: Actor) -> dict:
    claims = {
        "uid": actor.uid,
        "role": actor.role.value if actor.role else None,
        "firstName": actor.first_name,
        "lastName": actor.last_name,
        "email": actor.email,
    }
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest.fixture
def auth_headers():
    """Build auth headers for an actor with a freshly minted token."""
    return token_headers
