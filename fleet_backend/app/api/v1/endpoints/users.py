"""
User management API endpoints.

All endpoints require the userManagement capability. Only a super-admin can
grant the super-admin role.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.user import User
from fleet_backend.app.models.enums import UserRole, UserStatus
from fleet_backend.app.schemas.user import (
    UserResponse, UserCreate, UserBatchCreate, UserUpdate, RoleUpdate, StatusUpdate, UserListResponse
)
from fleet_backend.app.schemas.common import BatchResponse
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import identity

router = APIRouter(prefix="/users", tags=["Users"])

can_manage_users = require_capability(Capability.USER_MANAGEMENT)


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    user_status: Optional[UserStatus] = Query(None, alias="status", description="Filter by status"),
    department_id: Optional[int] = Query(None, description="Filter by department"),
    search: Optional[str] = Query(None, min_length=1, description="Name, email or employee number"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db)
):
    """
    List users visible to the caller.

    Department-restricted callers only see users of their departments.
    """
    query = department_guard.apply(select(User), User.department_id, principal)
    if role:
        query = query.where(User.role == role)
    if user_status:
        query = query.where(User.status == user_status)
    if department_id:
        query = query.where(User.department_id == department_id)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(or_(
            func.lower(User.first_name).like(pattern),
            func.lower(User.last_name).like(pattern),
            User.email.like(pattern),
            func.lower(User.employee_number).like(pattern),
        ))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(page_size))
    users = result.scalars().all()

    return UserListResponse(
        items=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Create a user with a given role (admin capability)."""
    fields = user_data.model_dump(exclude={"password", "role", "permissions"})
    user = await identity.create_principal(
        db, fields, clock,
        password=user_data.password,
        role=user_data.role,
        permission_overrides=user_data.permissions,
        actor=principal
    )
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.post("/batch", response_model=BatchResponse)
async def batch_create_users(
    payload: UserBatchCreate,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """
    Create many users at once.

    Each user is committed on its own; the response reports every item.
    """
    items = [item.model_dump() for item in payload.users]
    results = await identity.batch_create_principals(db, items, clock, actor=principal)
    return BatchResponse.from_results(results)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db)
):
    """Get detailed information about a specific user."""
    user = await identity.get_user(db, user_id)
    department_guard.enforce(principal, user.department_id)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db)
):
    """Edit profile fields of a user."""
    user = await identity.get_user(db, user_id)
    department_guard.enforce(principal, user.department_id)

    fields = user_data.model_dump(exclude_unset=True, exclude_none=True)
    if "department_id" in fields:
        department_guard.enforce(principal, fields["department_id"])

    user = await identity.update_profile(db, user, fields, actor=principal)
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db)
):
    """
    Change role and permissions.

    Permissions become the role defaults overlaid by the supplied overrides.
    """
    user = await identity.get_user(db, user_id)
    department_guard.enforce(principal, user.department_id)

    user = await identity.update_role_and_permissions(
        db, user, principal,
        role=payload.role,
        permission_overrides=payload.permissions,
        department_access=payload.department_access,
        subsidiary_access=payload.subsidiary_access
    )
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.put("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: int,
    payload: StatusUpdate,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db)
):
    """Activate, deactivate or suspend a user. Non-active users fail authentication immediately."""
    user = await identity.get_user(db, user_id)
    department_guard.enforce(principal, user.department_id)

    user = await identity.set_status(db, user, payload.status, principal)
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    principal: Principal = Depends(can_manage_users),
    db: AsyncSession = Depends(get_db)
):
    """Delete a user. Trips and other records keep the old id as a snapshot."""
    user = await identity.get_user(db, user_id)
    department_guard.enforce(principal, user.department_id)

    await identity.delete_principal(db, user, principal)
    await db.commit()
