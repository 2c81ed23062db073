"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from fleet_backend.app.main import app
from fleet_backend.app.db.session import get_db, Base
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import FrozenClock, get_clock
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.jwt import TokenService
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.vehicle_enums import VehicleStatus, VehicleType, FuelType
from fleet_backend.app.services import identity
from fleet_backend.app.services.departments import create_department
from fleet_backend.app.services.notification_service import EmailNotifier, get_notifier

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
PASSWORD = "correct-horse-battery"

# Keep hashing fast in tests
settings.bcrypt_rounds = 4


class RecordingNotifier(EmailNotifier):
    """Keeps delivered messages in memory; `fail` makes every delivery raise."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def deliver(self, to_address, subject, body):
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append({"to": to_address, "subject": subject, "body": body})


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def tokens(clock):
    return TokenService(clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def apply_overrides(session_factory, clock, notifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client(apply_overrides):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db_session, clock):
    """Factory creating a committed user with PASSWORD."""
    counter = {"n": 0}

    async def _make(role=UserRole.USER, email=None, **fields):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "employee_number": fields.pop("employee_number", f"EMP-{n:04d}"),
            "email": email or f"{role.value}{n}@example.com",
            "first_name": fields.pop("first_name", "Test"),
            "last_name": fields.pop("last_name", f"User{n}"),
        }
        permissions = fields.pop("permissions", None)
        password = fields.pop("password", PASSWORD)
        data.update(fields)
        user = await identity.create_principal(
            db_session, data, clock, password=password, role=role, permission_overrides=permissions
        )
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(tokens):
    def _headers(user):
        return {"Authorization": f"Bearer {tokens.issue(user.id)}"}
    return _headers


@pytest.fixture
def principal_of():
    return Principal.from_user


@pytest.fixture
async def super_admin(make_user):
    return await make_user(UserRole.SUPER_ADMIN, email="root@example.com")


@pytest.fixture
async def department(db_session):
    dept = await create_department(db_session, {"name": "Operations", "budget": 1000})
    await db_session.commit()
    await db_session.refresh(dept)
    return dept


@pytest.fixture
def make_vehicle(db_session):
    """Factory creating a committed vehicle directly in the database."""
    counter = {"n": 0}

    async def _make(registration=None, status=VehicleStatus.AVAILABLE, **fields):
        counter["n"] += 1
        vehicle = Vehicle(
            registration=registration or f"TST{counter['n']:03d}",
            make=fields.pop("make", "Toyota"),
            model=fields.pop("model", "Corolla"),
            year=fields.pop("year", 2022),
            vehicle_type=fields.pop("vehicle_type", VehicleType.CAR),
            fuel_type=fields.pop("fuel_type", FuelType.PETROL),
            status=status,
            **fields,
        )
        db_session.add(vehicle)
        await db_session.commit()
        await db_session.refresh(vehicle)
        return vehicle

    return _make


@pytest.fixture
def trip_payload():
    def _payload(driver_id, vehicle_id, **overrides):
        payload = {
            "driver_id": driver_id,
            "vehicle_id": vehicle_id,
            "passenger_name": "Jane Passenger",
            "pickup_location": "Head Office",
            "destination": "Airport",
            "scheduled_pickup_time": "2026-03-02T10:00:00Z",
            "scheduled_return_time": "2026-03-02T14:00:00Z",
        }
        payload.update(overrides)
        return payload
    return _payload


@pytest.fixture
def password():
    """Password given to users built by make_user."""
    return PASSWORD
