"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.exceptions import AuthError
from fleet_backend.app.core.jwt import TokenService, TokenError, ensure_fresh
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.enums import UserStatus
from fleet_backend.app.models.user import User

# HTTP Bearer security scheme (missing header handled below as AuthError)
security = HTTPBearer(auto_error=False)


def get_token_service(clock: Clock = Depends(get_clock)) -> TokenService:
    """FastAPI dependency providing a TokenService bound to the request clock."""
    return TokenService(clock=clock)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """
    Resolve the bearer token to a live, active user row.

    Checks, in order:
    1. Token present, well-formed, correctly signed and unexpired
    2. User still exists
    3. Token issued after the user's last credential change
    4. User status is Active

    Raises:
        AuthError: 401 if authentication fails for any reason
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated", reason="Missing")

    try:
        claims = tokens.verify(credentials.credentials)
    except TokenError as exc:
        raise AuthError(str(exc), reason=exc.kind)

    user = await db.get(User, claims.principal_id)
    if user is None:
        raise AuthError("User not found", reason="InvalidCredentials")

    try:
        ensure_fresh(claims, user.credential_changed_at)
    except TokenError as exc:
        raise AuthError(str(exc), reason=exc.kind)

    if user.status != UserStatus.ACTIVE:
        raise AuthError("Account is not active", reason="InactiveAccount")

    return user


async def get_current_principal(user: User = Depends(get_current_user)) -> Principal:
    """Immutable snapshot of the authenticated user for access decisions."""
    return Principal.from_user(user)
