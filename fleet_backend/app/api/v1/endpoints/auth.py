"""
Authentication API endpoints.

Provides register, login, profile and password endpoints. Logout is
client-side: discard the token.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.user import User
from fleet_backend.app.schemas.auth import UserRegister, UserLogin, TokenResponse, ProfileUpdate, PasswordChange
from fleet_backend.app.schemas.user import UserResponse
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.exceptions import AuthError
from fleet_backend.app.core.jwt import TokenService
from fleet_backend.app.core.dependencies import get_current_user, get_token_service
from fleet_backend.app.services import identity
from fleet_backend.app.services.audit import log_auth_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    tokens: TokenService = Depends(get_token_service)
):
    """
    Register a new user.

    Self-registered accounts always get role `user` with its default
    permissions; an admin grants anything more.
    """
    fields = user_data.model_dump(exclude={"password"})
    user = await identity.register(db, fields, user_data.password, clock)
    await db.commit()
    await db.refresh(user)

    return TokenResponse(
        access_token=tokens.issue(user.id),
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    tokens: TokenService = Depends(get_token_service)
):
    """
    Login user and return JWT token.

    Accepts email or employee number. Logs successful and failed login
    attempts for security monitoring.
    """
    ip_address = request.client.host if request.client else None

    try:
        access_token, user = await identity.authenticate(db, credentials.email, credentials.password, tokens, clock)
    except AuthError as exc:
        # Log failed login attempt
        await db.rollback()
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=None,
            email=credentials.email,
            ip_address=ip_address,
            metadata={"reason": exc.reason}
        )
        await db.commit()
        raise

    # Log successful login
    await log_auth_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        email=user.email,
        ip_address=ip_address
    )
    await db.commit()
    await db.refresh(user)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Get current authenticated user information.

    Requires valid JWT token in Authorization header.
    """
    return UserResponse.model_validate(current_user)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update the caller's own name, phone and licence details."""
    user = await identity.update_profile(db, current_user, profile.model_dump(exclude_unset=True, exclude_none=True))
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    tokens: TokenService = Depends(get_token_service)
):
    """
    Change the caller's password.

    Every previously issued token stops working; the response carries a
    fresh one.
    """
    user = await identity.change_password(db, current_user, payload.current_password, payload.new_password, clock)
    await db.commit()
    await db.refresh(user)

    return TokenResponse(
        access_token=tokens.issue(user.id),
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )
