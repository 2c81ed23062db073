"""
Tests for the fuel ledger.
"""

import pytest

from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.vehicle_enums import FuelType
from fleet_backend.app.services import departments


def fill_up(vehicle_id, **overrides):
    data = {
        "vehicle_id": vehicle_id,
        "fueling_date": "2026-03-01T08:30:00Z",
        "odometer_reading": 10000,
        "fuel_amount": 40,
        "fuel_type": "petrol",
        "cost_per_unit": 1.5,
    }
    data.update(overrides)
    return data


@pytest.fixture
async def fuel_clerk(make_user):
    return await make_user(UserRole.FLEET_MANAGER)


async def test_total_cost_is_derived(client, fuel_clerk, make_vehicle, auth_headers, db_session):
    vehicle = await make_vehicle(mileage=9000)
    headers = auth_headers(fuel_clerk)

    response = await client.post("/v1/fuel", json={**fill_up(vehicle.id), "total_cost": 1}, headers=headers)

    assert response.status_code == 201
    record = response.json()
    assert record["total_cost"] == pytest.approx(60.0)
    assert record["driver_id"] == fuel_clerk.id
    assert record["is_verified"] is False

    response = await client.patch(f"/v1/fuel/{record['id']}", json={"cost_per_unit": 2}, headers=headers)
    assert response.json()["total_cost"] == pytest.approx(80.0)

    await db_session.refresh(vehicle)
    assert vehicle.mileage == 10000


async def test_mileage_never_decreases(client, fuel_clerk, make_vehicle, auth_headers, db_session):
    vehicle = await make_vehicle(mileage=20000)

    response = await client.post(
        "/v1/fuel", json=fill_up(vehicle.id, odometer_reading=15000), headers=auth_headers(fuel_clerk)
    )

    assert response.status_code == 201
    await db_session.refresh(vehicle)
    assert vehicle.mileage == 20000


async def test_verify_only_once(client, fuel_clerk, super_admin, make_vehicle, auth_headers):
    vehicle = await make_vehicle()
    record = (await client.post("/v1/fuel", json=fill_up(vehicle.id), headers=auth_headers(fuel_clerk))).json()
    headers = auth_headers(super_admin)

    response = await client.post(f"/v1/fuel/{record['id']}/verify", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_verified"] is True
    assert response.json()["verified_by_id"] == super_admin.id
    assert response.json()["verified_at"] is not None

    response = await client.post(f"/v1/fuel/{record['id']}/verify", headers=headers)
    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "AlreadyVerified"


async def test_fuel_card_sync_reports_each_item(client, fuel_clerk, make_vehicle, auth_headers):
    await make_vehicle(registration="FUEL01")
    transaction = {
        "fueling_date": "2026-03-01T08:30:00Z",
        "odometer_reading": 500,
        "fuel_amount": 30,
        "fuel_type": "diesel",
        "cost_per_unit": 2,
    }
    payload = {"transactions": [
        {**transaction, "vehicle_registration": "fuel01"},
        {**transaction, "vehicle_registration": "GHOST"},
        {**transaction, "vehicle_registration": "FUEL01", "odometer_reading": 900},
    ]}

    response = await client.post("/v1/fuel/sync", json=payload, headers=auth_headers(fuel_clerk))

    body = response.json()
    assert body["succeeded"] == 2
    assert body["failed"] == 1
    assert body["results"][1]["error_code"] == "ERR_NOT_FOUND"
    assert body["results"][1]["vehicle_registration"] == "GHOST"

    listing = await client.get("/v1/fuel", headers=auth_headers(fuel_clerk))
    assert listing.json()["total"] == 2


async def test_fuel_card_sync_respects_department_scope(
    client, make_user, make_vehicle, department, auth_headers, db_session
):
    other = await departments.create_department(db_session, {"name": "Forestry"})
    await db_session.commit()
    own = await make_vehicle(registration="OPS001", mileage=100, department_id=department.id)
    foreign = await make_vehicle(registration="FOR001", mileage=100, department_id=other.id)
    clerk = await make_user(UserRole.FLEET_MANAGER, department_access=[department.id])
    headers = auth_headers(clerk)

    response = await client.post("/v1/fuel", json=fill_up(foreign.id, odometer_reading=9999), headers=headers)
    assert response.status_code == 403

    transaction = {
        "fueling_date": "2026-03-01T08:30:00Z",
        "odometer_reading": 9999,
        "fuel_amount": 30,
        "fuel_type": "petrol",
        "cost_per_unit": 2,
    }
    payload = {"transactions": [
        {**transaction, "vehicle_registration": "FOR001"},
        {**transaction, "vehicle_registration": "OPS001"},
    ]}

    response = await client.post("/v1/fuel/sync", json=payload, headers=headers)

    body = response.json()
    assert body["succeeded"] == 1
    assert body["results"][0]["error_code"] == "ERR_FORBIDDEN_DEPARTMENTSCOPE"
    assert body["results"][1]["success"] is True

    await db_session.refresh(foreign)
    await db_session.refresh(own)
    assert foreign.mileage == 100
    assert own.mileage == 9999


async def test_summary_and_consumption(client, fuel_clerk, make_vehicle, auth_headers):
    vehicle = await make_vehicle()
    headers = auth_headers(fuel_clerk)
    for odometer, amount in [(1000, 50), (1400, 40), (1800, 40)]:
        await client.post(
            "/v1/fuel", json=fill_up(vehicle.id, odometer_reading=odometer, fuel_amount=amount), headers=headers
        )

    summary = (await client.get("/v1/fuel/summary", headers=headers)).json()
    assert summary["total_records"] == 3
    assert summary["total_fuel_amount"] == pytest.approx(130.0)
    assert summary["total_cost"] == pytest.approx(195.0)
    assert summary["average_cost_per_unit"] == pytest.approx(1.5)
    assert summary["by_fuel_type"][FuelType.PETROL.value]["records"] == 3

    consumption = (await client.get(f"/v1/fuel/consumption/{vehicle.id}", headers=headers)).json()
    assert consumption["distance"] == 800
    assert consumption["fuel_used"] == pytest.approx(80.0)
    assert consumption["efficiency"] == pytest.approx(10.0)
    assert consumption["cost_per_distance"] == pytest.approx(0.15)


async def test_consumption_needs_two_readings(client, fuel_clerk, make_vehicle, auth_headers):
    vehicle = await make_vehicle()
    await client.post("/v1/fuel", json=fill_up(vehicle.id), headers=auth_headers(fuel_clerk))

    body = (await client.get(f"/v1/fuel/consumption/{vehicle.id}", headers=auth_headers(fuel_clerk))).json()

    assert body["records"] == 1
    assert body["efficiency"] is None


async def test_delete_record(client, fuel_clerk, make_vehicle, auth_headers):
    vehicle = await make_vehicle()
    headers = auth_headers(fuel_clerk)
    record = (await client.post("/v1/fuel", json=fill_up(vehicle.id), headers=headers)).json()

    response = await client.delete(f"/v1/fuel/{record['id']}", headers=headers)
    assert response.status_code == 204

    response = await client.get(f"/v1/fuel/{record['id']}", headers=headers)
    assert response.status_code == 404


async def test_viewer_cannot_record_fuel(client, make_user, make_vehicle, auth_headers):
    viewer = await make_user(UserRole.VIEWER)
    vehicle = await make_vehicle()

    response = await client.post("/v1/fuel", json=fill_up(vehicle.id), headers=auth_headers(viewer))

    assert response.status_code == 403
    assert response.json()["details"]["reason"] == "MissingCapability"
