"""Pytest fixtures — file-backed SQLite database per test, fake clock, recording channel."""
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.dependencies import get_clock
from app.main import app
from app.services.errors import DeliveryError
from app.services.lifecycle_service import LifecycleEngine
from app.services.notification_service import NotificationDispatcher, get_channel

# Import all models so they register with Base.metadata
from app.models.actor import Actor                          # noqa: F401
from app.models.addon import AddonService                   # noqa: F401
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.schedule import Schedule                    # noqa: F401
from app.models.schedule_note import ScheduleNote           # noqa: F401
from app.models.notification import NotificationDelivery    # noqa: F401

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class RecordingChannel:
    """Delivery channel that keeps messages in memory and can be told to fail."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise DeliveryError(f"mailbox for {recipient} unavailable")
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def dispatcher(db, channel, clock):
    return NotificationDispatcher(db, channel, clock)


@pytest.fixture
def engine(db, dispatcher, clock):
    """LifecycleEngine wired to the test session, fake clock and recording channel."""
    return LifecycleEngine(db, dispatcher, clock=clock)


@pytest.fixture(scope="function")
def client(session_factory, clock, channel):
    """FastAPI TestClient with database, clock and channel overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_channel] = lambda: channel
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: seed the collaborator tables directly (catalog, billing, identity)
# ---------------------------------------------------------------------------
def seed_actor(db, name: str, role: str = "subadmin", permissions=None, email: str | None = None) -> Actor:
    actor = Actor(display_name=name, role=role, permissions=permissions or [], email=email)
    db.add(actor)
    db.commit()
    db.refresh(actor)
    return actor


def seed_addon(db, name: str = "Professional Photography", category: str = "photography") -> AddonService:
    addon = AddonService(
        name=name,
        description="High quality photos of the listed property",
        price=2999,
        currency="INR",
        billing_type="one_time",
        category=category,
    )
    db.add(addon)
    db.commit()
    db.refresh(addon)
    return addon


def seed_subscription(
    db,
    vendor: Actor,
    addons: list,
    status: SubscriptionStatus = SubscriptionStatus.active,
    now: datetime = START,
    days_left: int = 30,
) -> Subscription:
    subscription = Subscription(
        vendor_id=vendor.actor_id,
        status=status,
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=days_left),
    )
    subscription.addons = list(addons)
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


@pytest.fixture
def world(db, clock):
    """An admin, a scoped operator, a vendor with an active subscription covering one addon."""
    admin = seed_actor(db, "Admin", role="admin", email="admin@example.com")
    operator = seed_actor(db, "Operator", permissions=["schedule", "manage"])
    outsider = seed_actor(db, "Outsider", permissions=[])
    vendor = seed_actor(db, "Vendor", role="vendor", email="vendor@example.com")
    addon = seed_addon(db)
    subscription = seed_subscription(db, vendor, [addon], now=clock())
    return {
        "admin": admin,
        "operator": operator,
        "outsider": outsider,
        "vendor": vendor,
        "addon": addon,
        "subscription": subscription,
    }
