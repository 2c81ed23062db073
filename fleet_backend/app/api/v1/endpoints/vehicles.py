"""
Vehicle API endpoints.

Status changes only happen through the lifecycle actions (assign, unassign,
retire, reactivate) or as side effects of trips and maintenance.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.vehicle_enums import VehicleStatus, VehicleType
from fleet_backend.app.schemas.vehicle import (
    VehicleCreate, VehicleBatchCreate, VehicleUpdate, VehicleLocationUpdate, VehicleResponse, VehicleListResponse
)
from fleet_backend.app.schemas.common import BatchResponse
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import vehicle_lifecycle
from fleet_backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])

can_manage_vehicles = require_capability(Capability.VEHICLE_MANAGEMENT)


async def _load_in_scope(db: AsyncSession, vehicle_id: int, principal: Principal) -> Vehicle:
    vehicle = await vehicle_lifecycle.get_vehicle(db, vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)
    return vehicle


async def _override(db: AsyncSession, vehicle: Vehicle, principal: Principal, action: str) -> VehicleResponse:
    await log_event(
        db=db,
        action=action,
        actor_id=principal.id,
        actor_email=principal.email,
        metadata={"vehicle_id": vehicle.id, "registration": vehicle.registration}
    )
    await db.commit()
    await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Register a vehicle. It starts available."""
    vehicle = await vehicle_lifecycle.create_vehicle(db, principal, vehicle_data.model_dump())
    await db.commit()
    await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.post("/batch", response_model=BatchResponse)
async def batch_create_vehicles(
    payload: VehicleBatchCreate,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Register many vehicles; each is committed on its own and reported per item."""
    items = [item.model_dump() for item in payload.vehicles]
    results = await vehicle_lifecycle.batch_create_vehicles(db, principal, items)
    return BatchResponse.from_results(results)


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    vehicle_status: Optional[VehicleStatus] = Query(None, alias="status", description="Filter by status"),
    vehicle_type: Optional[VehicleType] = Query(None, description="Filter by type"),
    department_id: Optional[int] = Query(None, description="Filter by department"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """List vehicles within the caller's departments."""
    query = department_guard.apply(select(Vehicle), Vehicle.department_id, principal)
    if vehicle_status:
        query = query.where(Vehicle.status == vehicle_status)
    if vehicle_type:
        query = query.where(Vehicle.vehicle_type == vehicle_type)
    if department_id:
        query = query.where(Vehicle.department_id == department_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Vehicle.registration).offset(offset).limit(page_size))
    vehicles = result.scalars().all()

    return VehicleListResponse(
        items=[VehicleResponse.model_validate(v) for v in vehicles],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/registration/{registration}", response_model=VehicleResponse)
async def get_vehicle_by_registration(
    registration: str,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Look a vehicle up by registration (case-insensitive)."""
    vehicle = await vehicle_lifecycle.get_by_registration(db, registration)
    department_guard.enforce(principal, vehicle.department_id)
    return VehicleResponse.model_validate(vehicle)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    return VehicleResponse.model_validate(vehicle)


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: int,
    vehicle_data: VehicleUpdate,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Edit vehicle details. Status cannot be set here."""
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    fields = vehicle_data.model_dump(exclude_unset=True, exclude_none=True)
    if "department_id" in fields:
        department_guard.enforce(principal, fields["department_id"])

    vehicle = await vehicle_lifecycle.update_details(db, vehicle, fields)
    await db.commit()
    await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.patch("/{vehicle_id}/location", response_model=VehicleResponse)
async def update_vehicle_location(
    vehicle_id: int,
    payload: VehicleLocationUpdate,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    vehicle.current_location = payload.current_location
    await db.commit()
    await db.refresh(vehicle)
    return VehicleResponse.model_validate(vehicle)


@router.post("/{vehicle_id}/assign", response_model=VehicleResponse)
async def assign_vehicle(
    vehicle_id: int,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Mark an available vehicle in use without a trip (admin override)."""
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    await vehicle_lifecycle.assign(db, vehicle.id)
    return await _override(db, vehicle, principal, AuditAction.VEHICLE_ASSIGNED)


@router.post("/{vehicle_id}/unassign", response_model=VehicleResponse)
async def unassign_vehicle(
    vehicle_id: int,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Return an assigned vehicle to the pool. Refused while an active trip holds it."""
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    await vehicle_lifecycle.unassign(db, vehicle.id)
    return await _override(db, vehicle, principal, AuditAction.VEHICLE_UNASSIGNED)


@router.post("/{vehicle_id}/retire", response_model=VehicleResponse)
async def retire_vehicle(
    vehicle_id: int,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Take a vehicle out of service, whatever its current status."""
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    await vehicle_lifecycle.retire(db, vehicle.id)
    return await _override(db, vehicle, principal, AuditAction.VEHICLE_RETIRED)


@router.post("/{vehicle_id}/reactivate", response_model=VehicleResponse)
async def reactivate_vehicle(
    vehicle_id: int,
    principal: Principal = Depends(can_manage_vehicles),
    db: AsyncSession = Depends(get_db)
):
    """Bring an out-of-service vehicle back as available."""
    vehicle = await _load_in_scope(db, vehicle_id, principal)
    await vehicle_lifecycle.reactivate(db, vehicle.id)
    return await _override(db, vehicle, principal, AuditAction.VEHICLE_REACTIVATED)
