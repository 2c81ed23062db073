"""
Tests for the identity and credential service.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import AuthError, ConflictError, ForbiddenError, ValidationError
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.models.audit_log import AuditLog
from fleet_backend.app.models.enums import UserRole, UserStatus
from fleet_backend.app.services import identity
from fleet_backend.app.services.audit import AuditAction


async def test_create_principal_normalizes_and_merges(db_session, clock, password):
    user = await identity.create_principal(
        db_session,
        {"employee_number": " E-100 ", "email": "  Driver@Example.COM ", "first_name": "Dee", "last_name": "Driver"},
        clock,
        password=password,
        role=UserRole.DRIVER,
        permission_overrides={Capability.ANALYTICS: True},
    )
    await db_session.commit()

    assert user.email == "driver@example.com"
    assert user.employee_number == "E-100"
    assert user.permissions[Capability.ANALYTICS] is True
    assert user.permissions[Capability.TRIP_MANAGEMENT] is True
    assert user.permissions[Capability.USER_MANAGEMENT] is False
    assert user.hashed_password != password
    assert user.credential_changed_at is not None


async def test_duplicate_email_and_employee_number(db_session, clock, make_user):
    await make_user(email="taken@example.com", employee_number="E-1")

    with pytest.raises(ConflictError) as exc_info:
        await identity.create_principal(
            db_session,
            {"employee_number": "E-2", "email": "TAKEN@example.com", "first_name": "A", "last_name": "B"},
            clock,
        )
    assert exc_info.value.error_code == "ERR_DUPLICATE_EMAIL"

    with pytest.raises(ConflictError) as exc_info:
        await identity.create_principal(
            db_session,
            {"employee_number": "E-1", "email": "new@example.com", "first_name": "A", "last_name": "B"},
            clock,
        )
    assert exc_info.value.error_code == "ERR_DUPLICATE_EMPLOYEE_NUMBER"


async def test_only_super_admin_grants_super_admin(db_session, clock, make_user, super_admin):
    admin = Principal.from_user(await make_user(UserRole.ADMIN))
    fields = {"employee_number": "E-9", "email": "boss@example.com", "first_name": "A", "last_name": "B"}

    with pytest.raises(ForbiddenError):
        await identity.create_principal(db_session, fields, clock, role=UserRole.SUPER_ADMIN, actor=admin)

    user = await identity.create_principal(
        db_session, fields, clock, role=UserRole.SUPER_ADMIN, actor=Principal.from_user(super_admin)
    )
    assert user.role is UserRole.SUPER_ADMIN


async def test_role_change_recomputes_permissions(db_session, make_user, super_admin):
    user = await make_user(UserRole.VIEWER, permissions={Capability.FUEL_MANAGEMENT: True})

    await identity.update_role_and_permissions(
        db_session, user, Principal.from_user(super_admin),
        role=UserRole.DISPATCHER, permission_overrides={Capability.COMMUNICATION: False}
    )
    await db_session.commit()

    assert user.role is UserRole.DISPATCHER
    assert user.permissions[Capability.TRIP_MANAGEMENT] is True
    assert user.permissions[Capability.COMMUNICATION] is False
    # Overrides from the previous role do not survive a role change
    assert user.permissions[Capability.FUEL_MANAGEMENT] is False

    logs = (await db_session.execute(select(AuditLog).where(AuditLog.action == AuditAction.ROLE_CHANGED))).scalars().all()
    assert len(logs) == 1
    assert logs[0].target_user_id == user.id


async def test_authenticate_by_email_or_employee_number(db_session, clock, tokens, make_user, password):
    user = await make_user(UserRole.DRIVER, email="dee@example.com", employee_number="E-77")

    token, by_email = await identity.authenticate(db_session, "DEE@example.com", password, tokens, clock)
    assert by_email.id == user.id
    assert tokens.verify(token).principal_id == user.id
    assert by_email.last_login is not None

    _, by_number = await identity.authenticate(db_session, "E-77", password, tokens, clock)
    assert by_number.id == user.id


async def test_authenticate_rejects_wrong_password_and_unknown_user(db_session, clock, tokens, make_user, password):
    await make_user(email="dee@example.com")

    for identifier, attempt in [("dee@example.com", "wrong-password"), ("ghost@example.com", password)]:
        with pytest.raises(AuthError) as exc_info:
            await identity.authenticate(db_session, identifier, attempt, tokens, clock)
        assert exc_info.value.reason == "InvalidCredentials"


async def test_authenticate_inactive_account(db_session, clock, tokens, make_user, password):
    await make_user(email="gone@example.com", status=UserStatus.SUSPENDED)

    with pytest.raises(AuthError) as exc_info:
        await identity.authenticate(db_session, "gone@example.com", password, tokens, clock)
    assert exc_info.value.reason == "InactiveAccount"

    # Without the password the account state is not revealed
    with pytest.raises(AuthError) as exc_info:
        await identity.authenticate(db_session, "gone@example.com", "wrong-password", tokens, clock)
    assert exc_info.value.reason == "InvalidCredentials"


async def test_user_without_password_cannot_log_in(db_session, clock, tokens, make_user, password):
    await make_user(email="nopass@example.com", password=None)

    with pytest.raises(AuthError):
        await identity.authenticate(db_session, "nopass@example.com", password, tokens, clock)


async def test_change_password_requires_current_password(db_session, clock, make_user, password):
    user = await make_user()

    with pytest.raises(AuthError):
        await identity.change_password(db_session, user, "not-my-password", "another-password", clock)

    clock.advance(minutes=1)
    await identity.change_password(db_session, user, password, "another-password", clock)
    await db_session.commit()

    assert await identity.verify_credential(user, "another-password")
    assert not await identity.verify_credential(user, password)
    assert user.credential_changed_at == clock.now()


async def test_cannot_deactivate_or_delete_self(db_session, super_admin):
    actor = Principal.from_user(super_admin)

    with pytest.raises(ValidationError):
        await identity.set_status(db_session, super_admin, UserStatus.INACTIVE, actor)
    with pytest.raises(ValidationError):
        await identity.delete_principal(db_session, super_admin, actor)


async def test_batch_create_reports_each_item(db_session, clock, make_user, super_admin):
    await make_user(email="dup@example.com")
    items = [
        {"employee_number": "B-1", "email": "one@example.com", "first_name": "A", "last_name": "One", "role": UserRole.DRIVER},
        {"employee_number": "B-2", "email": "dup@example.com", "first_name": "A", "last_name": "Two"},
        {"employee_number": "B-3", "email": "three@example.com", "first_name": "A", "last_name": "Three"},
    ]

    results = await identity.batch_create_principals(db_session, items, clock, Principal.from_user(super_admin))

    assert [r["success"] for r in results] == [True, False, True]
    assert results[1]["error_code"] == "ERR_DUPLICATE_EMAIL"
    assert results[0]["id"] is not None


async def test_batch_reports_constraint_cause(db_session, clock, super_admin, mocker):
    mocker.patch.object(
        db_session, "flush",
        side_effect=IntegrityError("INSERT INTO users", {}, Exception("FOREIGN KEY constraint failed"))
    )
    items = [{"employee_number": "B-9", "email": "fk@example.com", "first_name": "A", "last_name": "B", "department_id": 404}]

    results = await identity.batch_create_principals(db_session, items, clock, Principal.from_user(super_admin))

    assert results[0]["success"] is False
    assert results[0]["error_code"] == "ERR_INTEGRITY"
    assert results[0]["message"] == "User violates a database constraint"


async def test_scoped_actor_cannot_create_unrestricted_user(db_session, clock, make_user, department):
    admin = Principal.from_user(await make_user(UserRole.ADMIN, department_access=[department.id]))
    fields = {"employee_number": "E-50", "email": "scoped@example.com", "first_name": "A", "last_name": "B"}

    with pytest.raises(ForbiddenError) as exc_info:
        await identity.create_principal(db_session, fields, clock, actor=admin)
    assert exc_info.value.details["field"] == "department_access"

    user = await identity.create_principal(
        db_session, {**fields, "department_access": [department.id]}, clock, actor=admin
    )
    assert user.department_access == [department.id]
