"""
Maintenance API endpoints.

Scheduling a repair or accident repair moves the vehicle into maintenance;
completing or cancelling it returns the vehicle to service.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.maintenance import MaintenanceRecord
from fleet_backend.app.models.trip_enums import MaintenanceType, MaintenanceStatus
from fleet_backend.app.schemas.maintenance import (
    MaintenanceCreate, MaintenanceUpdate, MaintenanceComplete, MaintenanceResponse, MaintenanceListResponse
)
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import maintenance as maintenance_service
from fleet_backend.app.services import vehicle_lifecycle

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])

can_manage_maintenance = require_capability(Capability.MAINTENANCE_MANAGEMENT)


async def _load_in_scope(db: AsyncSession, record_id: int, principal: Principal) -> MaintenanceRecord:
    record = await maintenance_service.get_record(db, record_id)
    department_guard.enforce(principal, record.department_id)
    return record


async def _respond(db: AsyncSession, record: MaintenanceRecord) -> MaintenanceResponse:
    await db.commit()
    await db.refresh(record)
    return MaintenanceResponse.model_validate(record)


@router.post("", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
async def schedule_maintenance(
    payload: MaintenanceCreate,
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    """Schedule maintenance. Repairs fail with 409 if the vehicle is in use or retired."""
    vehicle = await vehicle_lifecycle.get_vehicle(db, payload.vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)

    record = await maintenance_service.schedule(db, principal, payload.model_dump())
    return await _respond(db, record)


@router.get("", response_model=MaintenanceListResponse)
async def list_maintenance(
    record_status: Optional[MaintenanceStatus] = Query(None, alias="status", description="Filter by status"),
    maintenance_type: Optional[MaintenanceType] = Query(None, description="Filter by type"),
    vehicle_id: Optional[int] = Query(None, description="Filter by vehicle"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    query = department_guard.apply(select(MaintenanceRecord), MaintenanceRecord.department_id, principal)
    if record_status:
        query = query.where(MaintenanceRecord.status == record_status)
    if maintenance_type:
        query = query.where(MaintenanceRecord.maintenance_type == maintenance_type)
    if vehicle_id:
        query = query.where(MaintenanceRecord.vehicle_id == vehicle_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(MaintenanceRecord.scheduled_date.desc(), MaintenanceRecord.id.desc()).offset(offset).limit(page_size)
    )

    return MaintenanceListResponse(
        items=[MaintenanceResponse.model_validate(r) for r in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/vehicle/{vehicle_id}", response_model=MaintenanceListResponse)
async def list_vehicle_maintenance(
    vehicle_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    """Maintenance history for one vehicle."""
    vehicle = await vehicle_lifecycle.get_vehicle(db, vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)

    query = select(MaintenanceRecord).where(MaintenanceRecord.vehicle_id == vehicle_id)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(MaintenanceRecord.scheduled_date.desc(), MaintenanceRecord.id.desc()).offset(offset).limit(page_size)
    )
    return MaintenanceListResponse(
        items=[MaintenanceResponse.model_validate(r) for r in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{record_id}", response_model=MaintenanceResponse)
async def get_maintenance(
    record_id: int,
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    return MaintenanceResponse.model_validate(record)


@router.patch("/{record_id}", response_model=MaintenanceResponse)
async def update_maintenance(
    record_id: int,
    payload: MaintenanceUpdate,
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    """Edit details. Use the start/complete/cancel actions to change status."""
    record = await _load_in_scope(db, record_id, principal)
    record = await maintenance_service.update_details(
        db, record, payload.model_dump(exclude_unset=True, exclude_none=True)
    )
    return await _respond(db, record)


@router.post("/{record_id}/start", response_model=MaintenanceResponse)
async def start_maintenance(
    record_id: int,
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    record = await maintenance_service.start(db, record, principal)
    return await _respond(db, record)


@router.post("/{record_id}/complete", response_model=MaintenanceResponse)
async def complete_maintenance(
    record_id: int,
    payload: Optional[MaintenanceComplete] = None,
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Close the record; a repaired vehicle becomes available again."""
    record = await _load_in_scope(db, record_id, principal)
    completion = payload.model_dump(exclude_none=True) if payload else {}
    record = await maintenance_service.complete(db, record, principal, clock, completion)
    return await _respond(db, record)


@router.post("/{record_id}/cancel", response_model=MaintenanceResponse)
async def cancel_maintenance(
    record_id: int,
    principal: Principal = Depends(can_manage_maintenance),
    db: AsyncSession = Depends(get_db)
):
    record = await _load_in_scope(db, record_id, principal)
    record = await maintenance_service.cancel(db, record, principal)
    return await _respond(db, record)
