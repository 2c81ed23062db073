"""
Tests for parking, shuttles, accidents, costs and subsidiaries.
"""

import pytest

from fleet_backend.app.models.enums import UserRole


@pytest.fixture
async def headers(super_admin, auth_headers):
    return auth_headers(super_admin)


async def test_parking_duration_is_derived(client, headers, make_vehicle, department):
    vehicle = await make_vehicle(department_id=department.id)

    response = await client.post("/v1/parking", json={
        "vehicle_id": vehicle.id,
        "location": "Terminal 2 car park",
        "start_time": "2026-03-01T08:00:00Z",
        "end_time": "2026-03-01T11:30:00Z",
        "cost_amount": 12.5,
    }, headers=headers)

    assert response.status_code == 201
    record = response.json()
    assert record["duration_hours"] == 3.5
    assert record["department_id"] == department.id

    response = await client.patch(
        f"/v1/parking/{record['id']}", json={"end_time": "2026-03-01T14:00:00Z"}, headers=headers
    )
    assert response.json()["duration_hours"] == 6.0


async def test_open_parking_session_has_no_duration(client, headers, make_vehicle):
    vehicle = await make_vehicle()

    response = await client.post("/v1/parking", json={
        "vehicle_id": vehicle.id, "location": "Depot", "start_time": "2026-03-01T08:00:00Z",
    }, headers=headers)

    assert response.json()["duration_hours"] is None


@pytest.mark.parametrize("targets", [{}, {"vehicle_id": 1, "shuttle_id": 1}])
async def test_parking_needs_exactly_one_target(client, headers, targets):
    response = await client.post("/v1/parking", json={
        **targets, "location": "Depot", "start_time": "2026-03-01T08:00:00Z",
    }, headers=headers)

    assert response.status_code == 422


async def test_parking_end_before_start_rejected_on_update(client, headers, make_vehicle):
    vehicle = await make_vehicle()
    record = (await client.post("/v1/parking", json={
        "vehicle_id": vehicle.id, "location": "Depot", "start_time": "2026-03-01T08:00:00Z",
    }, headers=headers)).json()

    response = await client.patch(
        f"/v1/parking/{record['id']}", json={"end_time": "2026-03-01T07:00:00Z"}, headers=headers
    )

    assert response.status_code == 400


async def test_shuttle_parking_and_analysis(client, headers):
    response = await client.post("/v1/shuttles", json={
        "name": "Campus Loop", "registration": "shu-01", "capacity": 20,
    }, headers=headers)
    assert response.status_code == 201
    shuttle = response.json()
    assert shuttle["registration"] == "SHU-01"

    for start, end, parking_type in [
        ("2026-03-01T08:00:00Z", "2026-03-01T10:00:00Z", "daily"),
        ("2026-03-01T12:00:00Z", "2026-03-01T16:00:00Z", "daily"),
        ("2026-03-02T08:00:00Z", "2026-03-02T09:00:00Z", "event"),
    ]:
        await client.post("/v1/parking", json={
            "shuttle_id": shuttle["id"], "location": "Campus", "parking_type": parking_type,
            "start_time": start, "end_time": end, "cost_amount": 5,
        }, headers=headers)

    listing = await client.get(f"/v1/parking/shuttle/{shuttle['id']}", headers=headers)
    assert listing.json()["total"] == 3

    analysis = (await client.get("/v1/parking/analysis/duration", headers=headers)).json()
    assert analysis["sessions"] == 3
    assert analysis["total_hours"] == pytest.approx(7.0)
    assert analysis["longest_hours"] == pytest.approx(4.0)
    assert analysis["total_cost"] == pytest.approx(15.0)
    assert analysis["by_parking_type"]["daily"]["average_hours"] == pytest.approx(3.0)


async def test_duplicate_shuttle_registration(client, headers):
    payload = {"name": "Campus Loop", "registration": "SHU-01", "capacity": 20}
    await client.post("/v1/shuttles", json=payload, headers=headers)

    response = await client.post("/v1/shuttles", json=payload, headers=headers)

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_DUPLICATE_REGISTRATION"


async def test_accident_defaults_to_trip_driver(
    client, headers, make_user, make_vehicle, trip_payload
):
    driver = await make_user(UserRole.DRIVER)
    vehicle = await make_vehicle()
    trip = (await client.post("/v1/trips", json=trip_payload(driver.id, vehicle.id), headers=headers)).json()

    response = await client.post("/v1/accidents", json={
        "trip_id": trip["id"],
        "vehicle_id": vehicle.id,
        "accident_date": "2026-03-02T11:15:00Z",
        "location": "Ring road",
        "description": "Rear-ended at lights",
    }, headers=headers)

    assert response.status_code == 201
    assert response.json()["driver_id"] == driver.id
    assert response.json()["status"] == "reported"

    listing = await client.get(f"/v1/accidents?vehicle_id={vehicle.id}", headers=headers)
    assert listing.json()["total"] == 1


async def test_cost_takes_vehicle_department(client, headers, make_vehicle, department):
    vehicle = await make_vehicle(department_id=department.id)

    response = await client.post("/v1/costs", json={
        "amount": 99.99,
        "category": "tolls",
        "incurred_date": "2026-03-01T00:00:00Z",
        "vehicle_id": vehicle.id,
    }, headers=headers)

    assert response.status_code == 201
    assert response.json()["department_id"] == department.id
    assert response.json()["amount"] == pytest.approx(99.99)

    listing = await client.get("/v1/costs?category=tolls", headers=headers)
    assert listing.json()["total"] == 1
    listing = await client.get("/v1/costs?category=fines", headers=headers)
    assert listing.json()["total"] == 0


async def test_subsidiary_codes_are_unique(client, headers):
    response = await client.post("/v1/subsidiaries", json={"name": "North", "code": "nth"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["code"] == "NTH"

    response = await client.post("/v1/subsidiaries", json={"name": "Northern", "code": "NTH"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_DUPLICATE_SUBSIDIARY"

    listing = await client.get("/v1/subsidiaries", headers=headers)
    assert listing.json()["total"] == 1
