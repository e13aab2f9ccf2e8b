"""Test configuration and fixtures."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("WORKERS_ENABLED", "false")
os.environ.setdefault("SMTP_HOST", "")

from datetime import timedelta  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import travel_agency.models  # noqa: E402,F401 - register all models
from travel_agency.core.config import settings  # noqa: E402
from travel_agency.core.database import Base, build_engine, build_session_factory, get_db  # noqa: E402
from travel_agency.core.dependencies import get_notification_sender, get_payment_processor  # noqa: E402
from travel_agency.core.timeutils import utcnow  # noqa: E402
from travel_agency.models.booking import Booking  # noqa: E402
from travel_agency.models.trip import Trip  # noqa: E402
from travel_agency.models.waitlist import WaitingListEntry  # noqa: E402
from travel_agency.schemas.auth import Requester  # noqa: E402
from travel_agency.services.payment_service import SimulatedPaymentProcessor  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingSender:
    """Notification sender that keeps messages in memory."""

    def __init__(self, fail: bool = False, raise_error: bool = False):
        self.fail = fail
        self.raise_error = raise_error
        self.messages: list[tuple[str, str, str]] = []

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        if self.raise_error:
            raise ConnectionError("mail server unreachable")
        if self.fail:
            return False
        self.messages.append((recipient, subject, body))
        return True

    def recipients(self) -> list[str]:
        return [recipient for recipient, _, _ in self.messages]


def make_token(user_id: str, roles: tuple[str, ...] = (), email: str | None = None) -> str:
    """Create a bearer token signed with the test secret."""
    payload = {"sub": user_id, "roles": list(roles)}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return build_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sender():
    """Notification sender that records messages."""
    return RecordingSender()


@pytest.fixture
def broken_sender():
    """Notification sender whose mail server is unreachable."""
    return RecordingSender(raise_error=True)


@pytest.fixture
def payment_processor():
    """Payment processor that accepts every charge."""
    return SimulatedPaymentProcessor()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, sender, payment_processor):
    """Create the application with test dependencies."""
    from travel_agency.main import create_app

    app = create_app()

    async def override_get_db():
        yield test_session

    async def override_get_notification_sender():
        return sender

    async def override_get_payment_processor():
        return payment_processor

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = override_get_notification_sender
    app.dependency_overrides[get_payment_processor] = override_get_payment_processor

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user."""

    def _headers(user_id: str = "alice", admin: bool = False, email: str | None = None) -> dict[str, str]:
        roles = ("admin",) if admin else ()
        token = make_token(user_id, roles=roles, email=email or f"{user_id}@example.com")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def alice():
    return Requester(user_id="alice", email="alice@example.com")


@pytest.fixture
def bob():
    return Requester(user_id="bob", email="bob@example.com")


@pytest.fixture
def admin():
    return Requester(user_id="admin", email="admin@example.com", roles=["admin"])


@pytest.fixture
def trip_factory(test_session):
    """Create trips directly in the database."""

    async def _create(**overrides) -> Trip:
        capacity = overrides.pop("capacity", 10)
        start_date = overrides.pop("start_date", utcnow() + timedelta(days=30))
        values = {
            "title": "Northern Lights Adventure",
            "destination": "Reykjavik",
            "country": "Iceland",
            "package_type": "Adventure",
            "description": "Chase the Aurora Borealis",
            "start_date": start_date,
            "end_date": start_date + timedelta(days=7),
            "capacity": capacity,
            "available_rooms": capacity,
            "price_amount": 120000,
        }
        values.update(overrides)
        trip = Trip(**values)
        test_session.add(trip)
        await test_session.commit()
        await test_session.refresh(trip)
        return trip

    return _create


@pytest.fixture
def waitlist_factory(test_session):
    """Add waiting list entries directly to the database."""

    async def _create(trip: Trip, requester_ref: str, **overrides) -> WaitingListEntry:
        values = {
            "trip_id": trip.id,
            "requester_ref": requester_ref,
            "contact_email": f"{requester_ref}@example.com",
            "joined_at": utcnow(),
        }
        values.update(overrides)
        entry = WaitingListEntry(**values)
        test_session.add(entry)
        await test_session.commit()
        await test_session.refresh(entry)
        return entry

    return _create


@pytest.fixture
def booking_factory(test_session):
    """Insert bookings directly, bypassing the inventory ledger."""

    async def _create(trip: Trip, requester_ref: str, party_size: int = 1, **overrides) -> Booking:
        values = {
            "trip_id": trip.id,
            "requester_ref": requester_ref,
            "contact_email": f"{requester_ref}@example.com",
            "party_size": party_size,
            "unit_price_amount": trip.price_amount,
            "total_price_amount": trip.price_amount * party_size,
        }
        values.update(overrides)
        booking = Booking(**values)
        test_session.add(booking)
        await test_session.commit()
        await test_session.refresh(booking)
        return booking

    return _create
