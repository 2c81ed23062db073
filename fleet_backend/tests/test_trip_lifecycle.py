"""
Tests for trip status transitions, reassignment and cancellation.
"""

import pytest
from sqlalchemy import select

from fleet_backend.app.core.exceptions import StateError, ValidationError
from fleet_backend.app.models.audit_log import AuditLog
from fleet_backend.app.core.access import Principal
from fleet_backend.app.models.enums import UserRole, UserStatus
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.models.vehicle_enums import VehicleStatus
from fleet_backend.app.services import trip_lifecycle
from fleet_backend.app.services.trip_lifecycle import ALLOWED_TRANSITIONS, can_transition, parse_status


@pytest.fixture
async def driver(make_user):
    return await make_user(UserRole.DRIVER)


@pytest.fixture
async def booked(client, super_admin, driver, make_vehicle, auth_headers, trip_payload):
    """A scheduled trip booked over HTTP, with its vehicle."""
    vehicle = await make_vehicle()
    response = await client.post(
        "/v1/trips", json=trip_payload(driver.id, vehicle.id), headers=auth_headers(super_admin)
    )
    assert response.status_code == 201
    return response.json(), vehicle


def test_terminal_statuses_have_no_exits():
    assert ALLOWED_TRANSITIONS[TripStatus.COMPLETED] == frozenset()
    assert ALLOWED_TRANSITIONS[TripStatus.CANCELLED] == frozenset()


@pytest.mark.parametrize("current,target,allowed", [
    (TripStatus.SCHEDULED, TripStatus.IN_PROGRESS, True),
    (TripStatus.SCHEDULED, TripStatus.DELAYED, True),
    (TripStatus.SCHEDULED, TripStatus.COMPLETED, True),
    (TripStatus.IN_PROGRESS, TripStatus.COMPLETED, True),
    (TripStatus.IN_PROGRESS, TripStatus.DELAYED, False),
    (TripStatus.IN_PROGRESS, TripStatus.SCHEDULED, False),
    (TripStatus.DELAYED, TripStatus.IN_PROGRESS, True),
    (TripStatus.DELAYED, TripStatus.SCHEDULED, False),
    (TripStatus.COMPLETED, TripStatus.CANCELLED, False),
    (TripStatus.CANCELLED, TripStatus.SCHEDULED, False),
])
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_parse_status_rejects_unknown_values():
    assert parse_status("in-progress") == TripStatus.IN_PROGRESS

    with pytest.raises(ValidationError) as exc_info:
        parse_status("finished")

    assert exc_info.value.error_code == "ERR_INVALID_STATUS"
    assert exc_info.value.details["reason"] == "InvalidStatus"


async def test_invalid_status_over_http(client, super_admin, auth_headers, booked):
    trip, vehicle = booked

    response = await client.put(
        f"/v1/trips/{trip['id']}/status", json={"status": "finished"}, headers=auth_headers(super_admin)
    )

    assert response.status_code == 400
    assert response.json()["details"]["reason"] == "InvalidStatus"


async def test_full_run_stamps_actual_times(client, clock, super_admin, auth_headers, booked, db_session):
    trip, vehicle = booked
    headers = auth_headers(super_admin)

    response = await client.put(f"/v1/trips/{trip['id']}/status", json={"status": "in-progress"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["actual_pickup_time"] is not None
    assert response.json()["actual_return_time"] is None

    clock.advance(hours=3)
    response = await client.put(
        f"/v1/trips/{trip['id']}/status",
        json={"status": "completed", "actual_cost": 42.5},
        headers=headers
    )
    body = response.json()
    assert body["status"] == "completed"
    assert body["actual_cost"] == 42.5
    assert body["actual_return_time"] is not None

    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.AVAILABLE


async def test_delayed_trip_keeps_vehicle(client, super_admin, auth_headers, booked, db_session):
    trip, vehicle = booked
    headers = auth_headers(super_admin)

    response = await client.put(f"/v1/trips/{trip['id']}/status", json={"status": "delayed"}, headers=headers)
    assert response.json()["status"] == "delayed"

    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.IN_USE


async def test_leaving_terminal_status_is_illegal(client, super_admin, auth_headers, booked):
    trip, vehicle = booked
    headers = auth_headers(super_admin)
    await client.put(f"/v1/trips/{trip['id']}/status", json={"status": "completed"}, headers=headers)

    response = await client.put(f"/v1/trips/{trip['id']}/status", json={"status": "in-progress"}, headers=headers)

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "ERR_STATE_ILLEGALTRANSITION"
    assert body["details"]["from"] == "completed"
    assert body["details"]["to"] == "in-progress"


async def test_status_change_is_audited(client, super_admin, auth_headers, booked, db_session):
    trip, vehicle = booked

    await client.put(
        f"/v1/trips/{trip['id']}/status", json={"status": "in-progress"}, headers=auth_headers(super_admin)
    )

    result = await db_session.execute(select(AuditLog).where(AuditLog.action == "TRIP_STATUS_CHANGED"))
    entry = result.scalar_one()
    assert entry.actor_id == super_admin.id
    assert entry.meta_data["to"] == "in-progress"


async def test_cancel_records_reason(client, super_admin, auth_headers, booked, db_session):
    trip, vehicle = booked

    response = await client.put(
        f"/v1/trips/{trip['id']}/cancel", json={"reason": "Flight cancelled"}, headers=auth_headers(super_admin)
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Flight cancelled"
    await db_session.refresh(vehicle)
    assert vehicle.status == VehicleStatus.AVAILABLE


async def test_reassign_vehicle_moves_reservation(
    client, super_admin, auth_headers, booked, make_vehicle, db_session
):
    trip, old_vehicle = booked
    new_vehicle = await make_vehicle()

    response = await client.put(
        f"/v1/trips/{trip['id']}/reassign", json={"vehicle_id": new_vehicle.id}, headers=auth_headers(super_admin)
    )

    assert response.status_code == 200
    assert response.json()["vehicle_id"] == new_vehicle.id
    await db_session.refresh(old_vehicle)
    await db_session.refresh(new_vehicle)
    assert old_vehicle.status == VehicleStatus.AVAILABLE
    assert new_vehicle.status == VehicleStatus.IN_USE


async def test_reassign_to_busy_vehicle_fails(
    client, super_admin, auth_headers, booked, make_vehicle, db_session
):
    trip, old_vehicle = booked
    busy = await make_vehicle(status=VehicleStatus.MAINTENANCE)

    response = await client.put(
        f"/v1/trips/{trip['id']}/reassign", json={"vehicle_id": busy.id}, headers=auth_headers(super_admin)
    )

    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "VehicleUnavailable"
    await db_session.refresh(old_vehicle)
    assert old_vehicle.status == VehicleStatus.IN_USE


async def test_reassign_driver(client, super_admin, auth_headers, booked, make_user):
    trip, vehicle = booked
    other = await make_user(UserRole.DRIVER)

    response = await client.put(
        f"/v1/trips/{trip['id']}/reassign", json={"driver_id": other.id}, headers=auth_headers(super_admin)
    )

    assert response.json()["driver_id"] == other.id
    assert response.json()["vehicle_id"] == vehicle.id


async def test_reassign_needs_a_change(db_session, super_admin, booked):
    trip = await trip_lifecycle.get_trip(db_session, booked[0]["id"])

    with pytest.raises(ValidationError):
        await trip_lifecycle.reassign(db_session, trip, Principal.from_user(super_admin))


async def test_inactive_driver_cannot_be_booked(client, super_admin, make_user, make_vehicle, auth_headers, trip_payload):
    suspended = await make_user(UserRole.DRIVER, status=UserStatus.SUSPENDED)
    vehicle = await make_vehicle()

    response = await client.post(
        "/v1/trips", json=trip_payload(suspended.id, vehicle.id), headers=auth_headers(super_admin)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_DRIVER_INACTIVE"


async def test_return_before_pickup_rejected(client, super_admin, driver, make_vehicle, auth_headers, trip_payload):
    vehicle = await make_vehicle()
    payload = trip_payload(driver.id, vehicle.id, scheduled_return_time="2026-03-02T09:00:00Z")

    response = await client.post("/v1/trips", json=payload, headers=auth_headers(super_admin))

    assert response.status_code == 422


async def test_driver_sees_only_own_trips(client, make_user, booked, auth_headers, super_admin, make_vehicle, trip_payload):
    trip, vehicle = booked
    other_driver = await make_user(UserRole.DRIVER)
    await client.post(
        "/v1/trips",
        json=trip_payload(other_driver.id, (await make_vehicle()).id),
        headers=auth_headers(super_admin)
    )

    response = await client.get("/v1/trips", headers=auth_headers(other_driver))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["driver_id"] == other_driver.id


async def test_stale_status_is_rejected(db_session, clock, booked):
    trip = await trip_lifecycle.get_trip(db_session, booked[0]["id"])
    await trip_lifecycle.update_status(db_session, trip, TripStatus.CANCELLED, clock)
    await db_session.commit()

    # Another request still holding the trip as scheduled
    trip.status = TripStatus.SCHEDULED
    with pytest.raises(StateError) as exc_info:
        await trip_lifecycle.update_status(db_session, trip, TripStatus.IN_PROGRESS, clock)

    assert exc_info.value.reason == "IllegalTransition"
