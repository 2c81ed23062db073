"""
Integration tests for the authentication flow.

Verifies Register -> Login -> Me, token rejection reasons and the audit trail
of login attempts.
"""

from sqlalchemy import select

from fleet_backend.app.models.audit_log import AuditLog
from fleet_backend.app.models.enums import UserRole, UserStatus
from fleet_backend.app.services.audit import AuditAction


REGISTRATION = {
    "employee_number": "E-500",
    "email": "New.Hire@Example.com",
    "first_name": "New",
    "last_name": "Hire",
    "password": "s3cure-passphrase",
}


async def test_register_login_me(client):
    response = await client.post("/v1/auth/register", json=REGISTRATION)
    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "new.hire@example.com"
    assert body["user"]["role"] == UserRole.USER.value
    assert "hashed_password" not in body["user"]

    response = await client.post("/v1/auth/login", json={"email": "new.hire@example.com", "password": "s3cure-passphrase"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["employee_number"] == "E-500"


async def test_register_ignores_requested_role(client):
    response = await client.post("/v1/auth/register", json={**REGISTRATION, "role": "super-admin"})

    assert response.status_code == 201
    assert response.json()["user"]["role"] == UserRole.USER.value


async def test_register_duplicate_email(client):
    await client.post("/v1/auth/register", json=REGISTRATION)
    response = await client.post("/v1/auth/register", json={**REGISTRATION, "employee_number": "E-501"})

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["kind"] == "ConflictError"
    assert body["error_code"] == "ERR_DUPLICATE_EMAIL"


async def test_login_by_employee_number(client, make_user, password):
    await make_user(employee_number="E-42")

    response = await client.post("/v1/auth/login", json={"email": "E-42", "password": password})

    assert response.status_code == 200


async def test_failed_login_is_audited(client, db_session, make_user):
    await make_user(email="dee@example.com")

    response = await client.post("/v1/auth/login", json={"email": "dee@example.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["kind"] == "AuthError"
    assert response.json()["details"]["reason"] == "InvalidCredentials"

    logs = (await db_session.execute(select(AuditLog).where(AuditLog.action == AuditAction.LOGIN_FAILED))).scalars().all()
    assert len(logs) == 1
    assert logs[0].actor_email == "dee@example.com"


async def test_suspended_account_cannot_log_in(client, make_user, password):
    await make_user(email="gone@example.com", status=UserStatus.SUSPENDED)

    response = await client.post("/v1/auth/login", json={"email": "gone@example.com", "password": password})

    assert response.status_code == 401
    assert response.json()["details"]["reason"] == "InactiveAccount"


async def test_missing_token(client):
    response = await client.get("/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_MISSING"
    assert response.headers["WWW-Authenticate"] == "Bearer"


async def test_malformed_token(client):
    response = await client.get("/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["details"]["reason"] == "Malformed"


async def test_expired_token(client, clock, make_user, auth_headers):
    user = await make_user()
    headers = auth_headers(user)

    clock.advance(days=31)
    response = await client.get("/v1/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["details"]["reason"] == "Expired"


async def test_token_of_suspended_user_rejected(client, db_session, make_user, auth_headers):
    user = await make_user()
    headers = auth_headers(user)

    user.status = UserStatus.SUSPENDED
    await db_session.commit()

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["details"]["reason"] == "InactiveAccount"


async def test_password_change_makes_old_tokens_stale(client, clock, make_user, auth_headers, password):
    user = await make_user()
    old_headers = auth_headers(user)

    clock.advance(seconds=10)
    response = await client.post(
        "/v1/auth/change-password",
        json={"current_password": password, "new_password": "fresh-passphrase"},
        headers=old_headers,
    )
    assert response.status_code == 200
    new_token = response.json()["access_token"]

    clock.advance(seconds=10)
    response = await client.get("/v1/auth/me", headers=old_headers)
    assert response.status_code == 401
    assert response.json()["details"]["reason"] == "Stale"

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {new_token}"})
    assert response.status_code == 200


async def test_change_password_with_wrong_current_password(client, make_user, auth_headers):
    user = await make_user()

    response = await client.post(
        "/v1/auth/change-password",
        json={"current_password": "nope-nope-nope", "new_password": "fresh-passphrase"},
        headers=auth_headers(user),
    )

    assert response.status_code == 401


async def test_update_own_profile(client, make_user, auth_headers):
    user = await make_user(UserRole.DRIVER)

    response = await client.patch(
        "/v1/auth/profile",
        json={"phone": "+1 555 0100", "license_number": "DL-123"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json()["phone"] == "+1 555 0100"
    assert response.json()["license_number"] == "DL-123"
