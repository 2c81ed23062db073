"""
Parking API endpoints.

duration_hours is derived from start_time and end_time on every write.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.parking import ParkingRecord
from fleet_backend.app.models.shuttle import Shuttle
from fleet_backend.app.schemas.parking import (
    ParkingCreate, ParkingUpdate, ParkingResponse, ParkingListResponse, ParkingDurationAnalysis
)
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import as_utc
from fleet_backend.app.core.exceptions import NotFoundError, ValidationError
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import departments as department_service
from fleet_backend.app.services import vehicle_lifecycle
from fleet_backend.app.services.analytics import AnalyticsService

router = APIRouter(prefix="/parking", tags=["Parking"])

can_manage_parking = require_capability(Capability.VEHICLE_MANAGEMENT)


async def _load_in_scope(db: AsyncSession, record_id: int, principal: Principal) -> ParkingRecord:
    record = await db.get(ParkingRecord, record_id)
    if record is None:
        raise NotFoundError("Parking record", record_id)
    department_guard.enforce(principal, record.department_id)
    return record


async def _get_shuttle(db: AsyncSession, shuttle_id: int) -> Shuttle:
    shuttle = await db.get(Shuttle, shuttle_id)
    if shuttle is None:
        raise NotFoundError("Shuttle", shuttle_id)
    return shuttle


async def _page(db: AsyncSession, query, page: int, page_size: int) -> ParkingListResponse:
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(ParkingRecord.start_time.desc(), ParkingRecord.id.desc()).offset(offset).limit(page_size)
    )
    return ParkingListResponse(
        items=[ParkingResponse.model_validate(r) for r in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("", response_model=ParkingResponse, status_code=status.HTTP_201_CREATED)
async def record_parking(
    payload: ParkingCreate,
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    """Record a parking session for a vehicle or a shuttle (exactly one)."""
    if payload.vehicle_id is not None:
        owner = await vehicle_lifecycle.get_vehicle(db, payload.vehicle_id)
    else:
        owner = await _get_shuttle(db, payload.shuttle_id)

    fields = payload.model_dump()
    if fields["department_id"] is None:
        fields["department_id"] = owner.department_id
    department_guard.enforce(principal, fields["department_id"])

    record = ParkingRecord(**fields, recorded_by_id=principal.id)
    record.cost_amount = department_service.to_amount(payload.cost_amount)
    record.recompute_duration()
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return ParkingResponse.model_validate(record)


@router.get("", response_model=ParkingListResponse)
async def list_parking(
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    query = department_guard.apply(select(ParkingRecord), ParkingRecord.department_id, principal)
    if is_active is not None:
        query = query.where(ParkingRecord.is_active.is_(is_active))
    return await _page(db, query, page, page_size)


@router.get("/analysis/duration", response_model=ParkingDurationAnalysis)
async def parking_duration_analysis(
    vehicle_id: Optional[int] = Query(None, description="Restrict to one vehicle"),
    shuttle_id: Optional[int] = Query(None, description="Restrict to one shuttle"),
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    """Duration and cost of closed sessions, overall and per parking type."""
    return await AnalyticsService.get_parking_duration_analysis(
        db, principal, vehicle_id=vehicle_id, shuttle_id=shuttle_id
    )


@router.get("/vehicle/{vehicle_id}", response_model=ParkingListResponse)
async def list_vehicle_parking(
    vehicle_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await vehicle_lifecycle.get_vehicle(db, vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)
    return await _page(db, select(ParkingRecord).where(ParkingRecord.vehicle_id == vehicle_id), page, page_size)


@router.get("/shuttle/{shuttle_id}", response_model=ParkingListResponse)
async def list_shuttle_parking(
    shuttle_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    shuttle = await _get_shuttle(db, shuttle_id)
    department_guard.enforce(principal, shuttle.department_id)
    return await _page(db, select(ParkingRecord).where(ParkingRecord.shuttle_id == shuttle_id), page, page_size)


@router.get("/{record_id}", response_model=ParkingResponse)
async def get_parking(
    record_id: int,
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    return ParkingResponse.model_validate(record)


@router.patch("/{record_id}", response_model=ParkingResponse)
async def update_parking(
    record_id: int,
    payload: ParkingUpdate,
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    """Edit a session. Closing it (setting end_time) fills in duration_hours."""
    record = await _load_in_scope(db, record_id, principal)

    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "cost_amount" in fields:
        fields["cost_amount"] = department_service.to_amount(fields["cost_amount"])
    for key, value in fields.items():
        setattr(record, key, value)

    if record.end_time is not None and as_utc(record.end_time) < as_utc(record.start_time):
        raise ValidationError("end_time cannot be before start_time")
    record.recompute_duration()

    await db.commit()
    await db.refresh(record)
    return ParkingResponse.model_validate(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_parking(
    record_id: int,
    principal: Principal = Depends(can_manage_parking),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    await db.delete(record)
    await db.commit()
