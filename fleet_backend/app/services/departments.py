"""
Department funds service.

available_funds only moves down through deduct_funds, which is a conditional
UPDATE: it applies only while the balance covers the amount, so the balance
can never go negative even under concurrent deductions.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from fleet_backend.app.models.department import Department
from fleet_backend.app.models.subsidiary import Subsidiary
from fleet_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet")

Amount = Union[Decimal, float, int, str]


def to_amount(value: Amount) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


async def get_department(db: AsyncSession, department_id: int) -> Department:
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department", department_id)
    return department


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int = None):
    query = select(Department.id).where(Department.name == name)
    if exclude_id is not None:
        query = query.where(Department.id != exclude_id)
    result = await db.execute(query)
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Department name already exists", error_code="ERR_DUPLICATE_DEPARTMENT", details={"name": name})


async def create_department(db: AsyncSession, data: Dict[str, Any]) -> Department:
    fields = dict(data)
    await _ensure_unique_name(db, fields["name"])
    if fields.get("subsidiary_id") is not None and await db.get(Subsidiary, fields["subsidiary_id"]) is None:
        raise NotFoundError("Subsidiary", fields["subsidiary_id"])

    budget = to_amount(fields.pop("budget", 0) or 0)
    department = Department(**fields, allocated_funds=budget, available_funds=budget)
    db.add(department)
    await db.flush()
    return department


async def update_department(db: AsyncSession, department: Department, fields: Dict[str, Any]) -> Department:
    """Edit name, description, head and subsidiary. Funds change only through the budget operations."""
    if fields.get("name") is not None and fields["name"] != department.name:
        await _ensure_unique_name(db, fields["name"], exclude_id=department.id)
    for key, value in fields.items():
        setattr(department, key, value)
    await db.flush()
    return department


async def set_budget(db: AsyncSession, department: Department, budget: Amount, actor: Principal) -> Department:
    """Reset the budget: allocated and available funds both become `budget`."""
    amount = to_amount(budget)
    if amount < 0:
        raise ValidationError("Budget cannot be negative", details={"budget": str(amount)})

    department.allocated_funds = amount
    department.available_funds = amount
    await db.flush()

    await log_event(
        db=db,
        action=AuditAction.BUDGET_SET,
        actor_id=actor.id,
        actor_email=actor.email,
        metadata={"department_id": department.id, "budget": str(amount)}
    )
    return department


async def deduct_funds(
    db: AsyncSession,
    department_id: int,
    amount: Amount,
    actor: Principal,
    description: str = None,
) -> Department:
    """
    Take `amount` out of the department's available funds.

    Raises:
        ValidationError: amount is not positive
        NotFoundError: department missing
        StateError(InsufficientFunds): balance lower than amount (nothing changes)
    """
    value = to_amount(amount)
    if value <= 0:
        raise ValidationError("Amount must be greater than zero", details={"amount": str(value)})

    result = await db.execute(
        update(Department)
        .where(Department.id == department_id, Department.available_funds >= value)
        .values(available_funds=Department.available_funds - value)
    )
    if result.rowcount != 1:
        department = await get_department(db, department_id)
        raise StateError(
            "Insufficient funds",
            reason="InsufficientFunds",
            details={
                "department_id": department_id,
                "available_funds": float(department.available_funds),
                "requested": float(value),
            }
        )

    await log_event(
        db=db,
        action=AuditAction.FUNDS_DEDUCTED,
        actor_id=actor.id,
        actor_email=actor.email,
        metadata={"department_id": department_id, "amount": str(value), "description": description}
    )

    department = await get_department(db, department_id)
    await db.refresh(department)
    logger.info("Department funds deducted", extra={"department_id": department_id, "amount": str(value)})
    return department
