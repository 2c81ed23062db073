"""
Accident report API endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.accident import AccidentRecord
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.schemas.ledger import AccidentCreate, AccidentResponse, AccidentListResponse
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import trip_lifecycle, vehicle_lifecycle

router = APIRouter(prefix="/accidents", tags=["Accidents"])

can_report = require_capability(Capability.COMPLIANCE)


@router.post("", response_model=AccidentResponse, status_code=status.HTTP_201_CREATED)
async def record_accident(
    payload: AccidentCreate,
    principal: Principal = Depends(can_report),
    db: AsyncSession = Depends(get_db)
):
    """
    Record an accident.

    Schedule an accident-repair maintenance record to take the vehicle out of
    service.
    """
    vehicle = await vehicle_lifecycle.get_vehicle(db, payload.vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)

    fields = payload.model_dump()
    if payload.trip_id is not None:
        trip = await trip_lifecycle.get_trip(db, payload.trip_id)
        if fields["driver_id"] is None:
            fields["driver_id"] = trip.driver_id

    accident = AccidentRecord(**fields, reported_by_id=principal.id)
    db.add(accident)
    await db.commit()
    await db.refresh(accident)
    return AccidentResponse.model_validate(accident)


@router.get("", response_model=AccidentListResponse)
async def list_accidents(
    vehicle_id: Optional[int] = Query(None, description="Filter by vehicle"),
    driver_id: Optional[int] = Query(None, description="Filter by driver"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_report),
    db: AsyncSession = Depends(get_db)
):
    """Accidents involving vehicles within the caller's departments."""
    query = department_guard.apply(
        select(AccidentRecord).outerjoin(Vehicle, AccidentRecord.vehicle_id == Vehicle.id),
        Vehicle.department_id, principal
    )
    if vehicle_id:
        query = query.where(AccidentRecord.vehicle_id == vehicle_id)
    if driver_id:
        query = query.where(AccidentRecord.driver_id == driver_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(AccidentRecord.accident_date.desc(), AccidentRecord.id.desc()).offset(offset).limit(page_size)
    )

    return AccidentListResponse(
        items=[AccidentResponse.model_validate(a) for a in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{accident_id}", response_model=AccidentResponse)
async def get_accident(
    accident_id: int,
    principal: Principal = Depends(can_report),
    db: AsyncSession = Depends(get_db)
):
    accident = await db.get(AccidentRecord, accident_id)
    if accident is None:
        raise NotFoundError("Accident", accident_id)
    if accident.vehicle_id is not None:
        vehicle = await db.get(Vehicle, accident.vehicle_id)
        if vehicle is not None:
            department_guard.enforce(principal, vehicle.department_id)
    return AccidentResponse.model_validate(accident)
