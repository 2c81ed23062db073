"""
Maintenance service.

Repairs and accident repairs hold their vehicle in MAINTENANCE while the
record is scheduled or in progress. Routine work, inspections and other
records leave the vehicle status alone.
"""

import logging
from typing import Any, Dict, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update

from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock
from fleet_backend.app.core.exceptions import NotFoundError, StateError
from fleet_backend.app.models.maintenance import MaintenanceRecord
from fleet_backend.app.models.trip_enums import MaintenanceStatus
from fleet_backend.app.services import vehicle_lifecycle
from fleet_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet")


def is_blocking(record: MaintenanceRecord) -> bool:
    return record.maintenance_type in vehicle_lifecycle.BLOCKING_MAINTENANCE_TYPES


async def get_record(db: AsyncSession, record_id: int) -> MaintenanceRecord:
    record = await db.get(MaintenanceRecord, record_id)
    if record is None:
        raise NotFoundError("Maintenance record", record_id)
    return record


async def _audit(db: AsyncSession, action: str, actor: Principal, record: MaintenanceRecord):
    await log_event(
        db=db,
        action=action,
        actor_id=actor.id,
        actor_email=actor.email,
        metadata={
            "maintenance_id": record.id,
            "vehicle_id": record.vehicle_id,
            "type": record.maintenance_type.value,
        }
    )


async def _move(
    db: AsyncSession,
    record: MaintenanceRecord,
    expected: Iterable[MaintenanceStatus],
    target: MaintenanceStatus,
    **values
):
    expected = list(expected)
    result = await db.execute(
        update(MaintenanceRecord)
        .where(MaintenanceRecord.id == record.id, MaintenanceRecord.status.in_(expected))
        .values(status=target, **values)
    )
    if result.rowcount != 1:
        raise StateError(
            f"Cannot move maintenance from {record.status.value} to {target.value}",
            reason="IllegalTransition",
            details={"maintenance_id": record.id, "from": record.status.value, "to": target.value}
        )


async def schedule(db: AsyncSession, actor: Principal, data: Dict[str, Any]) -> MaintenanceRecord:
    """
    Create a maintenance record.

    Raises:
        StateError(VehicleUnavailable): a repair was scheduled for a vehicle
            that is in use or retired
    """
    vehicle = await vehicle_lifecycle.get_vehicle(db, data["vehicle_id"])

    fields = dict(data)
    if fields.get("department_id") is None:
        fields["department_id"] = vehicle.department_id
    record = MaintenanceRecord(**fields, status=MaintenanceStatus.SCHEDULED, created_by_id=actor.id)

    if is_blocking(record):
        await vehicle_lifecycle.hold_for_maintenance(db, vehicle.id)

    db.add(record)
    await db.flush()
    await _audit(db, AuditAction.MAINTENANCE_SCHEDULED, actor, record)
    logger.info("Maintenance scheduled", extra={"maintenance_id": record.id, "vehicle_id": vehicle.id})
    return record


async def update_details(db: AsyncSession, record: MaintenanceRecord, fields: Dict[str, Any]) -> MaintenanceRecord:
    """Edit non-status fields. Type and vehicle are fixed once scheduled."""
    for key, value in fields.items():
        setattr(record, key, value)
    await db.flush()
    return record


async def start(db: AsyncSession, record: MaintenanceRecord, actor: Principal) -> MaintenanceRecord:
    """scheduled -> in-progress."""
    await _move(db, record, [MaintenanceStatus.SCHEDULED], MaintenanceStatus.IN_PROGRESS, performed_by_id=actor.id)
    await db.refresh(record)
    await _audit(db, AuditAction.MAINTENANCE_STARTED, actor, record)
    return record


async def complete(
    db: AsyncSession,
    record: MaintenanceRecord,
    actor: Principal,
    clock: Clock,
    completion: Dict[str, Any] = None,
) -> MaintenanceRecord:
    """
    Close a scheduled or in-progress record as completed.

    Returns the vehicle to service (unless another open repair holds it) and
    stamps its service dates.
    """
    completion = {key: value for key, value in (completion or {}).items() if value is not None}
    completion.setdefault("completed_date", clock.now())

    await _move(
        db, record, [MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS], MaintenanceStatus.COMPLETED,
        **completion
    )
    await db.refresh(record)

    if record.vehicle_id is not None:
        if is_blocking(record):
            await vehicle_lifecycle.release_from_maintenance(db, record.vehicle_id, excluding_record_id=record.id)
        vehicle = await vehicle_lifecycle.get_vehicle(db, record.vehicle_id)
        vehicle.last_service_date = record.completed_date.date()
        if record.next_service_due is not None:
            vehicle.next_service_due = record.next_service_due
        if record.mileage is not None and record.mileage > (vehicle.mileage or 0):
            vehicle.mileage = record.mileage
        await db.flush()

    await _audit(db, AuditAction.MAINTENANCE_COMPLETED, actor, record)
    return record


async def cancel(db: AsyncSession, record: MaintenanceRecord, actor: Principal) -> MaintenanceRecord:
    """Cancel an open record; a cancelled repair frees its vehicle like a completed one."""
    await _move(
        db, record, [MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS], MaintenanceStatus.CANCELLED
    )
    await db.refresh(record)

    if record.vehicle_id is not None and is_blocking(record):
        await vehicle_lifecycle.release_from_maintenance(db, record.vehicle_id, excluding_record_id=record.id)

    await _audit(db, AuditAction.MAINTENANCE_CANCELLED, actor, record)
    return record
