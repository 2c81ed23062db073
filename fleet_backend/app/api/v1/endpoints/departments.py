"""
Department API endpoints.

Reading departments needs the dashboard capability; creating them and moving
funds needs system settings.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.department import Department
from fleet_backend.app.schemas.department import (
    DepartmentCreate, DepartmentUpdate, BudgetUpdate, FundsDeduction,
    DepartmentResponse, DepartmentListResponse, BudgetResponse
)
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import departments as department_service

router = APIRouter(prefix="/departments", tags=["Departments"])

can_view = require_capability(Capability.DASHBOARD)
can_configure = require_capability(Capability.SYSTEM_SETTINGS)


@router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    payload: DepartmentCreate,
    principal: Principal = Depends(can_configure),
    db: AsyncSession = Depends(get_db)
):
    """Create a department; its initial budget becomes both allocated and available funds."""
    department = await department_service.create_department(db, payload.model_dump())
    await db.commit()
    await db.refresh(department)
    return DepartmentResponse.model_validate(department)


@router.get("", response_model=DepartmentListResponse)
async def list_departments(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_view),
    db: AsyncSession = Depends(get_db)
):
    query = department_guard.apply(select(Department), Department.id, principal)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Department.name).offset(offset).limit(page_size))

    return DepartmentListResponse(
        items=[DepartmentResponse.model_validate(d) for d in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: int,
    principal: Principal = Depends(can_view),
    db: AsyncSession = Depends(get_db)
):
    department_guard.enforce(principal, department_id)
    department = await department_service.get_department(db, department_id)
    return DepartmentResponse.model_validate(department)


@router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: int,
    payload: DepartmentUpdate,
    principal: Principal = Depends(can_configure),
    db: AsyncSession = Depends(get_db)
):
    department_guard.enforce(principal, department_id)
    department = await department_service.get_department(db, department_id)
    department = await department_service.update_department(
        db, department, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    await db.refresh(department)
    return DepartmentResponse.model_validate(department)


@router.get("/{department_id}/budget", response_model=BudgetResponse)
async def get_budget(
    department_id: int,
    principal: Principal = Depends(can_view),
    db: AsyncSession = Depends(get_db)
):
    department_guard.enforce(principal, department_id)
    department = await department_service.get_department(db, department_id)
    return BudgetResponse(
        department_id=department.id,
        allocated_funds=float(department.allocated_funds),
        available_funds=float(department.available_funds),
        spent_funds=float(department.allocated_funds - department.available_funds)
    )


@router.put("/{department_id}/budget", response_model=DepartmentResponse)
async def set_budget(
    department_id: int,
    payload: BudgetUpdate,
    principal: Principal = Depends(can_configure),
    db: AsyncSession = Depends(get_db)
):
    """Reset the budget. Allocated and available funds both become the new value."""
    department_guard.enforce(principal, department_id)
    department = await department_service.get_department(db, department_id)
    department = await department_service.set_budget(db, department, payload.budget, principal)
    await db.commit()
    await db.refresh(department)
    return DepartmentResponse.model_validate(department)


@router.post("/{department_id}/deduct", response_model=DepartmentResponse)
async def deduct_funds(
    department_id: int,
    payload: FundsDeduction,
    principal: Principal = Depends(can_configure),
    db: AsyncSession = Depends(get_db)
):
    """
    Deduct from available funds.

    Fails with 409 InsufficientFunds, changing nothing, when the balance is
    lower than the amount.
    """
    department_guard.enforce(principal, department_id)
    department = await department_service.deduct_funds(
        db, department_id, payload.amount, principal, description=payload.description
    )
    await db.commit()
    await db.refresh(department)
    return DepartmentResponse.model_validate(department)
