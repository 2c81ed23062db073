"""
Fuel ledger service.

total_cost is always fuel_amount * cost_per_unit: it is recomputed on create
and on every update, never accepted from the caller.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from fleet_backend.app.core.access import Principal, enforce
from fleet_backend.app.core.clock import Clock
from fleet_backend.app.core.exceptions import AppException, NotFoundError, StateError
from fleet_backend.app.models.fuel_record import FuelRecord
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.services import vehicle_lifecycle
from fleet_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet")


async def get_record(db: AsyncSession, record_id: int) -> FuelRecord:
    record = await db.get(FuelRecord, record_id)
    if record is None:
        raise NotFoundError("Fuel record", record_id)
    return record


async def _raise_mileage(db: AsyncSession, vehicle_id: int, odometer_reading: int):
    """Vehicle mileage only moves forward."""
    await db.execute(
        update(Vehicle)
        .where(Vehicle.id == vehicle_id, Vehicle.mileage < odometer_reading)
        .values(mileage=odometer_reading)
    )


async def record_fuel(db: AsyncSession, actor: Principal, data: Dict[str, Any]) -> FuelRecord:
    """Record a fill-up and advance the vehicle's mileage to the odometer reading."""
    vehicle = await vehicle_lifecycle.get_vehicle(db, data["vehicle_id"])

    fields = dict(data)
    if fields.get("department_id") is None:
        fields["department_id"] = vehicle.department_id
    if fields.get("driver_id") is None:
        fields["driver_id"] = actor.id

    record = FuelRecord(**fields, recorded_by_id=actor.id)
    record.recompute_total()
    db.add(record)

    await _raise_mileage(db, vehicle.id, record.odometer_reading)
    await db.flush()
    return record


async def update_fuel(db: AsyncSession, record: FuelRecord, fields: Dict[str, Any]) -> FuelRecord:
    for key, value in fields.items():
        setattr(record, key, value)
    record.recompute_total()
    if "odometer_reading" in fields and record.vehicle_id is not None:
        await _raise_mileage(db, record.vehicle_id, record.odometer_reading)
    await db.flush()
    return record


async def verify(db: AsyncSession, record: FuelRecord, actor: Principal, clock: Clock) -> FuelRecord:
    """
    Mark a record verified by the caller.

    Raises:
        StateError(AlreadyVerified): the record was verified before
    """
    result = await db.execute(
        update(FuelRecord)
        .where(FuelRecord.id == record.id, FuelRecord.is_verified.is_(False))
        .values(is_verified=True, verified_by_id=actor.id, verified_at=clock.now())
    )
    if result.rowcount != 1:
        raise StateError(
            "Fuel record is already verified",
            reason="AlreadyVerified",
            details={"fuel_record_id": record.id}
        )
    await db.refresh(record)

    await log_event(
        db=db,
        action=AuditAction.FUEL_VERIFIED,
        actor_id=actor.id,
        actor_email=actor.email,
        metadata={"fuel_record_id": record.id, "vehicle_id": record.vehicle_id}
    )
    return record


async def sync_fuel_card(
    db: AsyncSession,
    actor: Principal,
    transactions: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Import fuel-card transactions, one commit per transaction.

    Each transaction names its vehicle by registration. Failures are reported
    per item and do not stop the import.
    """
    results = []
    for index, transaction in enumerate(transactions):
        transaction = dict(transaction)
        registration = transaction.pop("vehicle_registration").strip().upper()
        try:
            vehicle_result = await db.execute(select(Vehicle).where(Vehicle.registration == registration))
            vehicle = vehicle_result.scalar_one_or_none()
            if vehicle is None:
                raise NotFoundError("Vehicle", registration)
            enforce(actor, department=vehicle.department_id)

            record = await record_fuel(db, actor, {**transaction, "vehicle_id": vehicle.id})
            await db.commit()
            results.append({"index": index, "success": True, "id": record.id, "vehicle_registration": registration})
        except AppException as exc:
            await db.rollback()
            results.append({
                "index": index,
                "success": False,
                "vehicle_registration": registration,
                "error_code": exc.error_code,
                "message": exc.message,
            })

    logger.info(
        "Fuel card sync finished",
        extra={"total": len(results), "failed": sum(1 for r in results if not r["success"])}
    )
    return results


def _apply_filters(query, vehicle_id: Optional[int], start: Optional[datetime], end: Optional[datetime]):
    if vehicle_id is not None:
        query = query.where(FuelRecord.vehicle_id == vehicle_id)
    if start is not None:
        query = query.where(FuelRecord.fueling_date >= start)
    if end is not None:
        query = query.where(FuelRecord.fueling_date <= end)
    return query


async def summary(
    db: AsyncSession,
    scope=None,
    vehicle_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Totals across fuel records, overall and per fuel type.

    `scope` is a callable restricting the query to the caller's departments.
    """
    base = select(
        FuelRecord.fuel_type,
        func.count(FuelRecord.id),
        func.coalesce(func.sum(FuelRecord.fuel_amount), 0),
        func.coalesce(func.sum(FuelRecord.total_cost), 0),
    ).group_by(FuelRecord.fuel_type)
    base = _apply_filters(base, vehicle_id, start, end)
    if scope is not None:
        base = scope(base)

    rows = (await db.execute(base)).all()

    by_fuel_type = {}
    total_records = 0
    total_amount = 0.0
    total_cost = 0.0
    for fuel_type, count, amount, cost in rows:
        by_fuel_type[fuel_type.value] = {
            "records": count,
            "fuel_amount": float(amount),
            "total_cost": float(cost),
        }
        total_records += count
        total_amount += float(amount)
        total_cost += float(cost)

    return {
        "total_records": total_records,
        "total_fuel_amount": total_amount,
        "total_cost": total_cost,
        "average_cost_per_unit": (total_cost / total_amount) if total_amount else 0.0,
        "by_fuel_type": by_fuel_type,
    }


async def consumption(db: AsyncSession, vehicle_id: int) -> Dict[str, Any]:
    """
    Distance and efficiency for one vehicle from its odometer readings.

    Fuel from the first fill-up is excluded: it was burned before the first
    reading.
    """
    await vehicle_lifecycle.get_vehicle(db, vehicle_id)
    result = await db.execute(
        select(FuelRecord)
        .where(FuelRecord.vehicle_id == vehicle_id)
        .order_by(FuelRecord.odometer_reading, FuelRecord.fueling_date)
    )
    records = result.scalars().all()

    if len(records) < 2:
        return {
            "vehicle_id": vehicle_id,
            "records": len(records),
            "distance": 0,
            "fuel_used": 0.0,
            "efficiency": None,
            "cost_per_distance": None,
        }

    distance = records[-1].odometer_reading - records[0].odometer_reading
    fuel_used = sum(record.fuel_amount for record in records[1:])
    cost = sum(record.total_cost for record in records[1:])
    return {
        "vehicle_id": vehicle_id,
        "records": len(records),
        "distance": distance,
        "fuel_used": fuel_used,
        "efficiency": (distance / fuel_used) if fuel_used else None,
        "cost_per_distance": (cost / distance) if distance else None,
    }
