"""
Tests for maintenance records and the vehicle holds they place.
"""

from datetime import date

import pytest

from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.vehicle_enums import VehicleStatus


def repair(vehicle_id, **overrides):
    data = {
        "vehicle_id": vehicle_id,
        "maintenance_type": "repair",
        "description": "Replace brake pads",
        "scheduled_date": "2026-03-03T08:00:00Z",
        "cost": 180,
    }
    data.update(overrides)
    return data


@pytest.fixture
async def mechanic_headers(make_user, auth_headers):
    return auth_headers(await make_user(UserRole.FLEET_MANAGER))


async def test_repair_holds_vehicle_until_complete(client, mechanic_headers, make_vehicle, db_session):
    vehicle = await make_vehicle(mileage=5000)

    response = await client.post("/v1/maintenance", json=repair(vehicle.id), headers=mechanic_headers)
    assert response.status_code == 201
    record = response.json()
    assert record["status"] == "scheduled"
    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.MAINTENANCE

    response = await client.post(f"/v1/maintenance/{record['id']}/start", headers=mechanic_headers)
    assert response.json()["status"] == "in-progress"

    response = await client.post(
        f"/v1/maintenance/{record['id']}/complete",
        json={"mileage": 5200, "next_service_due": "2026-09-01"},
        headers=mechanic_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["completed_date"] is not None

    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.AVAILABLE
    assert vehicle.mileage == 5200
    assert vehicle.last_service_date == date(2026, 3, 2)
    assert vehicle.next_service_due == date(2026, 9, 1)


async def test_routine_service_leaves_status_alone(client, mechanic_headers, make_vehicle, db_session):
    vehicle = await make_vehicle(status=VehicleStatus.IN_USE)

    response = await client.post(
        "/v1/maintenance", json=repair(vehicle.id, maintenance_type="routine"), headers=mechanic_headers
    )

    assert response.status_code == 201
    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.IN_USE


async def test_repair_on_vehicle_in_use_fails(client, mechanic_headers, make_vehicle):
    vehicle = await make_vehicle(status=VehicleStatus.IN_USE)

    response = await client.post("/v1/maintenance", json=repair(vehicle.id), headers=mechanic_headers)

    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "VehicleUnavailable"


async def test_second_repair_keeps_hold(client, mechanic_headers, make_vehicle, db_session):
    vehicle = await make_vehicle()
    first = (await client.post("/v1/maintenance", json=repair(vehicle.id), headers=mechanic_headers)).json()
    second = (await client.post(
        "/v1/maintenance", json=repair(vehicle.id, maintenance_type="accident-repair"), headers=mechanic_headers
    )).json()

    await client.post(f"/v1/maintenance/{first['id']}/complete", headers=mechanic_headers)
    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.MAINTENANCE

    await client.post(f"/v1/maintenance/{second['id']}/cancel", headers=mechanic_headers)
    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.AVAILABLE


async def test_completed_record_cannot_restart(client, mechanic_headers, make_vehicle):
    vehicle = await make_vehicle()
    record = (await client.post("/v1/maintenance", json=repair(vehicle.id), headers=mechanic_headers)).json()
    await client.post(f"/v1/maintenance/{record['id']}/complete", headers=mechanic_headers)

    response = await client.post(f"/v1/maintenance/{record['id']}/start", headers=mechanic_headers)

    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "IllegalTransition"


async def test_vehicle_in_maintenance_cannot_be_booked(
    client, mechanic_headers, make_vehicle, make_user, super_admin, auth_headers, trip_payload
):
    vehicle = await make_vehicle()
    driver = await make_user(UserRole.DRIVER)
    await client.post("/v1/maintenance", json=repair(vehicle.id), headers=mechanic_headers)

    response = await client.post(
        "/v1/trips", json=trip_payload(driver.id, vehicle.id), headers=auth_headers(super_admin)
    )

    assert response.status_code == 409
    assert response.json()["details"]["status"] == "maintenance"


async def test_vehicle_history(client, mechanic_headers, make_vehicle):
    vehicle = await make_vehicle()
    await client.post("/v1/maintenance", json=repair(vehicle.id, maintenance_type="inspection"), headers=mechanic_headers)
    await client.post("/v1/maintenance", json=repair(vehicle.id, maintenance_type="other"), headers=mechanic_headers)

    response = await client.get(f"/v1/maintenance/vehicle/{vehicle.id}", headers=mechanic_headers)

    assert response.status_code == 200
    assert response.json()["total"] == 2
