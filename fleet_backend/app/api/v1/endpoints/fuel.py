"""
Fuel ledger API endpoints.
"""

from datetime import datetime
from functools import partial
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.fuel_record import FuelRecord
from fleet_backend.app.schemas.common import BatchResponse
from fleet_backend.app.schemas.fuel import (
    FuelCreate, FuelUpdate, FuelResponse, FuelListResponse, FuelCardSync, FuelSummary, FuelConsumption
)
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import fuel as fuel_service
from fleet_backend.app.services import vehicle_lifecycle

router = APIRouter(prefix="/fuel", tags=["Fuel"])

can_manage_fuel = require_capability(Capability.FUEL_MANAGEMENT)


async def _load_in_scope(db: AsyncSession, record_id: int, principal: Principal) -> FuelRecord:
    record = await fuel_service.get_record(db, record_id)
    department_guard.enforce(principal, record.department_id)
    return record


async def _page(db: AsyncSession, query, page: int, page_size: int) -> FuelListResponse:
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(FuelRecord.fueling_date.desc(), FuelRecord.id.desc()).offset(offset).limit(page_size)
    )
    return FuelListResponse(
        items=[FuelResponse.model_validate(r) for r in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("", response_model=FuelResponse, status_code=status.HTTP_201_CREATED)
async def record_fuel(
    payload: FuelCreate,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    """Record a fill-up. total_cost is computed as fuel_amount * cost_per_unit."""
    vehicle = await vehicle_lifecycle.get_vehicle(db, payload.vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)

    record = await fuel_service.record_fuel(db, principal, payload.model_dump())
    await db.commit()
    await db.refresh(record)
    return FuelResponse.model_validate(record)


@router.get("", response_model=FuelListResponse)
async def list_fuel_records(
    vehicle_id: Optional[int] = Query(None, description="Filter by vehicle"),
    start: Optional[datetime] = Query(None, description="Fueled on or after"),
    end: Optional[datetime] = Query(None, description="Fueled on or before"),
    is_verified: Optional[bool] = Query(None, description="Filter by verification"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    query = department_guard.apply(select(FuelRecord), FuelRecord.department_id, principal)
    if vehicle_id:
        query = query.where(FuelRecord.vehicle_id == vehicle_id)
    if start:
        query = query.where(FuelRecord.fueling_date >= start)
    if end:
        query = query.where(FuelRecord.fueling_date <= end)
    if is_verified is not None:
        query = query.where(FuelRecord.is_verified.is_(is_verified))

    return await _page(db, query, page, page_size)


@router.get("/summary", response_model=FuelSummary)
async def fuel_summary(
    vehicle_id: Optional[int] = Query(None, description="Restrict to one vehicle"),
    start: Optional[datetime] = Query(None, description="Fueled on or after"),
    end: Optional[datetime] = Query(None, description="Fueled on or before"),
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    """Totals overall and per fuel type for records within the caller's departments."""
    scope = partial(department_guard.apply, column=FuelRecord.department_id, principal=principal)
    return FuelSummary(**await fuel_service.summary(db, scope=scope, vehicle_id=vehicle_id, start=start, end=end))


@router.post("/sync", response_model=BatchResponse)
async def sync_fuel_card(
    payload: FuelCardSync,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    """
    Import fuel-card transactions.

    Each transaction is committed on its own; unknown registrations and vehicles
    outside the caller's departments are reported per item.
    """
    results = await fuel_service.sync_fuel_card(
        db, principal, [t.model_dump() for t in payload.transactions]
    )
    return BatchResponse.from_results(results)


@router.get("/consumption/{vehicle_id}", response_model=FuelConsumption)
async def fuel_consumption(
    vehicle_id: int,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await vehicle_lifecycle.get_vehicle(db, vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)
    return FuelConsumption(**await fuel_service.consumption(db, vehicle_id))


@router.get("/vehicle/{vehicle_id}", response_model=FuelListResponse)
async def list_vehicle_fuel_records(
    vehicle_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await vehicle_lifecycle.get_vehicle(db, vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)
    return await _page(db, select(FuelRecord).where(FuelRecord.vehicle_id == vehicle_id), page, page_size)


@router.get("/{record_id}", response_model=FuelResponse)
async def get_fuel_record(
    record_id: int,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    return FuelResponse.model_validate(record)


@router.patch("/{record_id}", response_model=FuelResponse)
async def update_fuel_record(
    record_id: int,
    payload: FuelUpdate,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    record = await fuel_service.update_fuel(db, record, payload.model_dump(exclude_unset=True, exclude_none=True))
    await db.commit()
    await db.refresh(record)
    return FuelResponse.model_validate(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fuel_record(
    record_id: int,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    await db.delete(record)
    await db.commit()


@router.post("/{record_id}/verify", response_model=FuelResponse)
async def verify_fuel_record(
    record_id: int,
    principal: Principal = Depends(can_manage_fuel),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Mark the record verified by the caller. A second verification fails with 409."""
    record = await _load_in_scope(db, record_id, principal)
    record = await fuel_service.verify(db, record, principal, clock)
    await db.commit()
    await db.refresh(record)
    return FuelResponse.model_validate(record)
