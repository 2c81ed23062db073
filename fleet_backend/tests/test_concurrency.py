"""
Concurrency Tests.

Two sessions on separate connections race for the same row. The conditional
UPDATEs must let exactly one of them win.
"""

import asyncio
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from fleet_backend.app.db.session import Base
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import StateError
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.vehicle_enums import VehicleStatus, VehicleType, FuelType
from fleet_backend.app.services import identity, trip_lifecycle
from fleet_backend.app.services.departments import create_department, deduct_funds, get_department


@pytest.fixture
async def file_factory(tmp_path):
    """Engine on a database file so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def fleet(file_factory, clock):
    async with file_factory() as session:
        admin = await identity.create_principal(
            session,
            {"employee_number": "EMP-0001", "email": "root@example.com", "first_name": "Root", "last_name": "Admin"},
            clock,
            role=UserRole.SUPER_ADMIN,
        )
        driver = await identity.create_principal(
            session,
            {"employee_number": "EMP-0002", "email": "driver@example.com", "first_name": "Dee", "last_name": "Driver"},
            clock,
            role=UserRole.DRIVER,
        )
        vehicle = Vehicle(
            registration="RACE01",
            make="Toyota",
            model="Corolla",
            year=2022,
            vehicle_type=VehicleType.CAR,
            fuel_type=FuelType.PETROL,
            status=VehicleStatus.AVAILABLE,
        )
        session.add(vehicle)
        department = await create_department(session, {"name": "Racing", "budget": 100})
        await session.commit()
        return {
            "actor": Principal.from_user(admin),
            "driver_id": driver.id,
            "vehicle_id": vehicle.id,
            "department_id": department.id,
        }


async def test_concurrent_bookings_for_one_vehicle(file_factory, fleet, clock):
    """Of two simultaneous bookings for the same vehicle exactly one succeeds."""
    booking = {
        "driver_id": fleet["driver_id"],
        "vehicle_id": fleet["vehicle_id"],
        "passenger_name": "Jane Passenger",
        "pickup_location": "Head Office",
        "destination": "Airport",
        "scheduled_pickup_time": clock.now(),
    }

    async def book():
        async with file_factory() as session:
            try:
                await trip_lifecycle.create_trip(session, fleet["actor"], dict(booking))
                await session.commit()
                return "ok"
            except StateError as exc:
                await session.rollback()
                return exc.reason

    results = await asyncio.gather(book(), book())

    assert sorted(results) == ["VehicleUnavailable", "ok"]
    async with file_factory() as session:
        vehicle = await session.get(Vehicle, fleet["vehicle_id"])
        assert vehicle.status == VehicleStatus.IN_USE


async def test_concurrent_deductions_never_overdraw(file_factory, fleet):
    """Two 60.00 deductions against 100.00: one succeeds, the balance stays 40.00."""

    async def deduct():
        async with file_factory() as session:
            try:
                await deduct_funds(session, fleet["department_id"], 60, fleet["actor"])
                await session.commit()
                return "ok"
            except StateError as exc:
                await session.rollback()
                return exc.reason

    results = await asyncio.gather(deduct(), deduct())

    assert sorted(results) == ["InsufficientFunds", "ok"]
    async with file_factory() as session:
        department = await get_department(session, fleet["department_id"])
        assert float(department.available_funds) == 40.0
