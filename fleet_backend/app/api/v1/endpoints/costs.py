"""
Operating cost API endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.cost import CostRecord
from fleet_backend.app.schemas.ledger import CostCreate, CostResponse, CostListResponse
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import departments as department_service
from fleet_backend.app.services import vehicle_lifecycle

router = APIRouter(prefix="/costs", tags=["Costs"])

can_track_costs = require_capability(Capability.ANALYTICS)


@router.post("", response_model=CostResponse, status_code=status.HTTP_201_CREATED)
async def record_cost(
    payload: CostCreate,
    principal: Principal = Depends(can_track_costs),
    db: AsyncSession = Depends(get_db)
):
    """Book a cost. The department defaults to the vehicle's department."""
    fields = payload.model_dump()
    if payload.vehicle_id is not None:
        vehicle = await vehicle_lifecycle.get_vehicle(db, payload.vehicle_id)
        if fields["department_id"] is None:
            fields["department_id"] = vehicle.department_id
    if fields["department_id"] is not None:
        await department_service.get_department(db, fields["department_id"])
    department_guard.enforce(principal, fields["department_id"])

    cost = CostRecord(**fields, recorded_by_id=principal.id)
    cost.amount = department_service.to_amount(payload.amount)
    db.add(cost)
    await db.commit()
    await db.refresh(cost)
    return CostResponse.model_validate(cost)


@router.get("", response_model=CostListResponse)
async def list_costs(
    department_id: Optional[int] = Query(None, description="Filter by department"),
    category: Optional[str] = Query(None, description="Filter by category"),
    vehicle_id: Optional[int] = Query(None, description="Filter by vehicle"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_track_costs),
    db: AsyncSession = Depends(get_db)
):
    query = department_guard.apply(select(CostRecord), CostRecord.department_id, principal)
    if department_id:
        query = query.where(CostRecord.department_id == department_id)
    if category:
        query = query.where(CostRecord.category == category)
    if vehicle_id:
        query = query.where(CostRecord.vehicle_id == vehicle_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(CostRecord.incurred_date.desc(), CostRecord.id.desc()).offset(offset).limit(page_size)
    )

    return CostListResponse(
        items=[CostResponse.model_validate(c) for c in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )
