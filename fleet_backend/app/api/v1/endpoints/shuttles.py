"""
Shuttle API endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.shuttle import Shuttle
from fleet_backend.app.models.vehicle_enums import ShuttleStatus
from fleet_backend.app.schemas.shuttle import ShuttleCreate, ShuttleUpdate, ShuttleResponse, ShuttleListResponse
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import ConflictError, NotFoundError
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability

router = APIRouter(prefix="/shuttles", tags=["Shuttles"])

can_manage_shuttles = require_capability(Capability.VEHICLE_MANAGEMENT)


async def _load_in_scope(db: AsyncSession, shuttle_id: int, principal: Principal) -> Shuttle:
    shuttle = await db.get(Shuttle, shuttle_id)
    if shuttle is None:
        raise NotFoundError("Shuttle", shuttle_id)
    department_guard.enforce(principal, shuttle.department_id)
    return shuttle


@router.post("", response_model=ShuttleResponse, status_code=status.HTTP_201_CREATED)
async def create_shuttle(
    payload: ShuttleCreate,
    principal: Principal = Depends(can_manage_shuttles),
    db: AsyncSession = Depends(get_db)
):
    department_guard.enforce(principal, payload.department_id)

    existing = await db.execute(select(Shuttle.id).where(Shuttle.registration == payload.registration))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(
            "Shuttle registration already exists",
            error_code="ERR_DUPLICATE_REGISTRATION",
            details={"registration": payload.registration}
        )

    shuttle = Shuttle(**payload.model_dump(), created_by_id=principal.id)
    db.add(shuttle)
    await db.commit()
    await db.refresh(shuttle)
    return ShuttleResponse.model_validate(shuttle)


@router.get("", response_model=ShuttleListResponse)
async def list_shuttles(
    shuttle_status: Optional[ShuttleStatus] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_shuttles),
    db: AsyncSession = Depends(get_db)
):
    query = department_guard.apply(select(Shuttle), Shuttle.department_id, principal)
    if shuttle_status:
        query = query.where(Shuttle.status == shuttle_status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Shuttle.name).offset(offset).limit(page_size))

    return ShuttleListResponse(
        items=[ShuttleResponse.model_validate(s) for s in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{shuttle_id}", response_model=ShuttleResponse)
async def get_shuttle(
    shuttle_id: int,
    principal: Principal = Depends(can_manage_shuttles),
    db: AsyncSession = Depends(get_db)
):
    shuttle = await _load_in_scope(db, shuttle_id, principal)
    return ShuttleResponse.model_validate(shuttle)


@router.patch("/{shuttle_id}", response_model=ShuttleResponse)
async def update_shuttle(
    shuttle_id: int,
    payload: ShuttleUpdate,
    principal: Principal = Depends(can_manage_shuttles),
    db: AsyncSession = Depends(get_db)
):
    shuttle = await _load_in_scope(db, shuttle_id, principal)
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "department_id" in fields:
        department_guard.enforce(principal, fields["department_id"])
    for key, value in fields.items():
        setattr(shuttle, key, value)

    await db.commit()
    await db.refresh(shuttle)
    return ShuttleResponse.model_validate(shuttle)


@router.delete("/{shuttle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shuttle(
    shuttle_id: int,
    principal: Principal = Depends(can_manage_shuttles),
    db: AsyncSession = Depends(get_db)
):
    shuttle = await _load_in_scope(db, shuttle_id, principal)
    await db.delete(shuttle)
    await db.commit()
