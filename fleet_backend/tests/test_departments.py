"""
Tests for department funds: budget reset and guarded deductions.
"""

import pytest
from decimal import Decimal

from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import NotFoundError, StateError, ValidationError
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.services import departments


async def test_exact_deduction(db_session, super_admin, department):
    actor = Principal.from_user(super_admin)

    updated = await departments.deduct_funds(db_session, department.id, "250.75", actor, description="Tyres")
    await db_session.commit()

    assert updated.available_funds == Decimal("749.25")
    assert updated.allocated_funds == Decimal("1000")


async def test_insufficient_funds_changes_nothing(db_session, super_admin, department):
    actor = Principal.from_user(super_admin)

    with pytest.raises(StateError) as exc_info:
        await departments.deduct_funds(db_session, department.id, 1000.01, actor)
    await db_session.rollback()

    assert exc_info.value.reason == "InsufficientFunds"
    assert exc_info.value.details["available_funds"] == 1000.0
    await db_session.refresh(department)
    assert department.available_funds == Decimal("1000")


async def test_whole_balance_can_be_spent(db_session, super_admin, department):
    updated = await departments.deduct_funds(db_session, department.id, 1000, Principal.from_user(super_admin))

    assert updated.available_funds == Decimal("0")


@pytest.mark.parametrize("amount", [0, -5])
async def test_non_positive_amount_rejected(db_session, super_admin, department, amount):
    with pytest.raises(ValidationError):
        await departments.deduct_funds(db_session, department.id, amount, Principal.from_user(super_admin))


async def test_deduct_from_missing_department(db_session, super_admin):
    with pytest.raises(NotFoundError):
        await departments.deduct_funds(db_session, 404, 10, Principal.from_user(super_admin))


async def test_budget_reset_over_http(client, super_admin, department, auth_headers):
    headers = auth_headers(super_admin)
    await client.post(f"/v1/departments/{department.id}/deduct", json={"amount": 300}, headers=headers)

    response = await client.get(f"/v1/departments/{department.id}/budget", headers=headers)
    assert response.json() == {
        "department_id": department.id,
        "allocated_funds": 1000.0,
        "available_funds": 700.0,
        "spent_funds": 300.0,
    }

    response = await client.put(f"/v1/departments/{department.id}/budget", json={"budget": 5000}, headers=headers)
    assert response.status_code == 200
    assert response.json()["allocated_funds"] == 5000.0
    assert response.json()["available_funds"] == 5000.0


async def test_insufficient_funds_over_http(client, super_admin, department, auth_headers):
    response = await client.post(
        f"/v1/departments/{department.id}/deduct", json={"amount": 5000}, headers=auth_headers(super_admin)
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_STATE_INSUFFICIENTFUNDS"


async def test_zero_deduction_over_http(client, super_admin, department, auth_headers):
    response = await client.post(
        f"/v1/departments/{department.id}/deduct", json={"amount": 0}, headers=auth_headers(super_admin)
    )

    assert response.status_code == 422


async def test_duplicate_department_name(client, super_admin, department, auth_headers):
    response = await client.post("/v1/departments", json={"name": "Operations"}, headers=auth_headers(super_admin))

    assert response.status_code == 409


async def test_budget_outside_scope_forbidden(client, make_user, department, auth_headers, db_session):
    other = await departments.create_department(db_session, {"name": "Logistics", "budget": 10})
    await db_session.commit()
    manager = await make_user(UserRole.ADMIN, department_access=[department.id])

    response = await client.get(f"/v1/departments/{other.id}/budget", headers=auth_headers(manager))
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_FORBIDDEN_DEPARTMENTSCOPE"

    response = await client.get("/v1/departments", headers=auth_headers(manager))
    assert [item["id"] for item in response.json()["items"]] == [department.id]
