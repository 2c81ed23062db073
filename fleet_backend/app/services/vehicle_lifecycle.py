"""
Vehicle lifecycle service.

Every status write is a conditional single-row UPDATE
(`WHERE id = :id AND status IN (:expected)`). Two requests racing for the
same vehicle cannot both win: the loser matches zero rows and fails. Writes
run in the caller's transaction so they commit or roll back together with the
trip or maintenance change that triggered them.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from fleet_backend.app.core.access import Principal, enforce
from fleet_backend.app.core.exceptions import AppException, ConflictError, NotFoundError, StateError
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.vehicle_enums import VehicleStatus
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus, MaintenanceType, MaintenanceStatus
from fleet_backend.app.models.maintenance import MaintenanceRecord
from fleet_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet")

ACTIVE_TRIP_STATUSES = (TripStatus.SCHEDULED, TripStatus.IN_PROGRESS, TripStatus.DELAYED)
OPEN_MAINTENANCE_STATUSES = (MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS)
BLOCKING_MAINTENANCE_TYPES = (MaintenanceType.REPAIR, MaintenanceType.ACCIDENT_REPAIR)


async def get_vehicle(db: AsyncSession, vehicle_id: int) -> Vehicle:
    """Load a vehicle or raise NotFoundError."""
    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle", vehicle_id)
    return vehicle


async def get_by_registration(db: AsyncSession, registration: str) -> Vehicle:
    result = await db.execute(select(Vehicle).where(Vehicle.registration == registration.strip().upper()))
    vehicle = result.scalar_one_or_none()
    if vehicle is None:
        raise NotFoundError("Vehicle", registration)
    return vehicle


async def _ensure_unique_registration(db: AsyncSession, registration: str, exclude_id: Optional[int] = None):
    query = select(Vehicle.id).where(Vehicle.registration == registration)
    if exclude_id is not None:
        query = query.where(Vehicle.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none() is not None:
        raise ConflictError(
            "Registration already exists",
            error_code="ERR_DUPLICATE_REGISTRATION",
            details={"registration": registration}
        )


async def create_vehicle(db: AsyncSession, actor: Principal, data: Dict[str, Any]) -> Vehicle:
    """
    Register a vehicle. New vehicles always start available.

    Raises:
        ConflictError: registration already exists
        ForbiddenError: department outside the caller's scope
    """
    enforce(actor, department=data.get("department_id"))
    await _ensure_unique_registration(db, data["registration"])

    vehicle = Vehicle(**data, status=VehicleStatus.AVAILABLE, created_by_id=actor.id)
    db.add(vehicle)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Registration already exists", error_code="ERR_DUPLICATE_REGISTRATION")

    await log_event(
        db=db,
        action=AuditAction.VEHICLE_CREATED,
        actor_id=actor.id,
        actor_email=actor.email,
        metadata={"vehicle_id": vehicle.id, "registration": vehicle.registration}
    )
    return vehicle


async def batch_create_vehicles(db: AsyncSession, actor: Principal, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Create vehicles one commit at a time, reporting each item's outcome."""
    results = []
    for index, item in enumerate(items):
        try:
            vehicle = await create_vehicle(db, actor, item)
            await db.commit()
            results.append({"index": index, "success": True, "id": vehicle.id, "vehicle_registration": vehicle.registration})
        except AppException as exc:
            await db.rollback()
            results.append({
                "index": index,
                "success": False,
                "vehicle_registration": item.get("registration"),
                "error_code": exc.error_code,
                "message": exc.message,
            })
    return results


async def update_details(db: AsyncSession, vehicle: Vehicle, fields: Dict[str, Any]) -> Vehicle:
    """Edit descriptive fields. Status only changes through the transitions below."""
    fields.pop("status", None)
    if fields.get("registration") and fields["registration"] != vehicle.registration:
        await _ensure_unique_registration(db, fields["registration"], exclude_id=vehicle.id)
    for key, value in fields.items():
        setattr(vehicle, key, value)
    await db.flush()
    return vehicle


async def _current_status(db: AsyncSession, vehicle_id: int) -> Optional[VehicleStatus]:
    result = await db.execute(select(Vehicle.status).where(Vehicle.id == vehicle_id))
    return result.scalar_one_or_none()


async def _transition(
    db: AsyncSession,
    vehicle_id: int,
    expected: Iterable[VehicleStatus],
    target: VehicleStatus
) -> bool:
    """Set status to `target` only if it is currently one of `expected`."""
    result = await db.execute(
        update(Vehicle)
        .where(Vehicle.id == vehicle_id, Vehicle.status.in_(list(expected)))
        .values(status=target)
    )
    changed = result.rowcount == 1
    if changed:
        logger.info(
            "Vehicle status changed",
            extra={"vehicle_id": vehicle_id, "to_status": target.value}
        )
    return changed


async def count_active_trips(
    db: AsyncSession,
    vehicle_id: int,
    excluding_trip_id: Optional[int] = None
) -> int:
    """Trips in scheduled, in-progress or delayed status that reference the vehicle."""
    query = select(func.count(Trip.id)).where(
        Trip.vehicle_id == vehicle_id,
        Trip.status.in_(ACTIVE_TRIP_STATUSES)
    )
    if excluding_trip_id is not None:
        query = query.where(Trip.id != excluding_trip_id)
    result = await db.execute(query)
    return result.scalar()


async def count_open_repairs(
    db: AsyncSession,
    vehicle_id: int,
    excluding_record_id: Optional[int] = None
) -> int:
    """Scheduled or in-progress repair/accident-repair records for the vehicle."""
    query = select(func.count(MaintenanceRecord.id)).where(
        MaintenanceRecord.vehicle_id == vehicle_id,
        MaintenanceRecord.maintenance_type.in_(BLOCKING_MAINTENANCE_TYPES),
        MaintenanceRecord.status.in_(OPEN_MAINTENANCE_STATUSES)
    )
    if excluding_record_id is not None:
        query = query.where(MaintenanceRecord.id != excluding_record_id)
    result = await db.execute(query)
    return result.scalar()


async def _lock_vehicle(db: AsyncSession, vehicle_id: int) -> None:
    """
    Row-lock the vehicle until the transaction ends.

    Release paths take it before counting blocking rows, so a concurrent
    occupy or hold commits first and its rows are counted.
    """
    await db.execute(select(Vehicle.id).where(Vehicle.id == vehicle_id).with_for_update())


async def _raise_unavailable(db: AsyncSession, vehicle_id: int):
    current = await _current_status(db, vehicle_id)
    if current is None:
        raise NotFoundError("Vehicle", vehicle_id)
    raise StateError(
        f"Vehicle is not available (current status: {current.value})",
        reason="VehicleUnavailable",
        details={"vehicle_id": vehicle_id, "status": current.value}
    )


async def occupy(db: AsyncSession, vehicle_id: int) -> None:
    """
    Reserve a vehicle for a trip: available -> in-use.

    Raises:
        StateError(VehicleUnavailable): vehicle is in use, in maintenance or retired
        NotFoundError: vehicle does not exist
    """
    if not await _transition(db, vehicle_id, [VehicleStatus.AVAILABLE], VehicleStatus.IN_USE):
        await _raise_unavailable(db, vehicle_id)


async def release(db: AsyncSession, vehicle_id: int, excluding_trip_id: Optional[int] = None) -> bool:
    """
    Free a vehicle after a trip ends: in-use -> available.

    The vehicle stays in-use while any other active trip references it, and a
    vehicle that was retired or sent to maintenance meanwhile is left alone.

    Returns:
        True if the vehicle became available
    """
    await _lock_vehicle(db, vehicle_id)
    if await count_active_trips(db, vehicle_id, excluding_trip_id):
        logger.info(
            "Vehicle kept in use, other active trips reference it",
            extra={"vehicle_id": vehicle_id}
        )
        return False
    return await _transition(db, vehicle_id, [VehicleStatus.IN_USE], VehicleStatus.AVAILABLE)


async def hold_for_maintenance(db: AsyncSession, vehicle_id: int) -> None:
    """
    Take a vehicle off the road for a repair: available -> maintenance.

    A vehicle already in maintenance (another open repair) is accepted.

    Raises:
        StateError(VehicleUnavailable): vehicle is in use or retired
    """
    if not await _transition(
        db, vehicle_id, [VehicleStatus.AVAILABLE, VehicleStatus.MAINTENANCE], VehicleStatus.MAINTENANCE
    ):
        await _raise_unavailable(db, vehicle_id)


async def release_from_maintenance(
    db: AsyncSession,
    vehicle_id: int,
    excluding_record_id: Optional[int] = None
) -> bool:
    """
    Return a repaired vehicle to service: maintenance -> available.

    Does nothing while another open repair references the vehicle.

    Returns:
        True if the vehicle became available
    """
    await _lock_vehicle(db, vehicle_id)
    if await count_open_repairs(db, vehicle_id, excluding_record_id):
        return False
    return await _transition(db, vehicle_id, [VehicleStatus.MAINTENANCE], VehicleStatus.AVAILABLE)


async def assign(db: AsyncSession, vehicle_id: int) -> None:
    """Admin override without a trip: available -> in-use."""
    await occupy(db, vehicle_id)


async def unassign(db: AsyncSession, vehicle_id: int) -> None:
    """
    Admin override without a trip: in-use -> available.

    Raises:
        StateError(IllegalTransition): vehicle not in use, or an active trip holds it
    """
    active_trips = await count_active_trips(db, vehicle_id)
    if active_trips:
        raise StateError(
            "Vehicle is held by an active trip; complete or cancel the trip instead",
            reason="IllegalTransition",
            details={"vehicle_id": vehicle_id, "active_trips": active_trips}
        )
    if not await _transition(db, vehicle_id, [VehicleStatus.IN_USE], VehicleStatus.AVAILABLE):
        current = await _current_status(db, vehicle_id)
        if current is None:
            raise NotFoundError("Vehicle", vehicle_id)
        raise StateError(
            f"Cannot unassign vehicle in status {current.value}",
            reason="IllegalTransition",
            details={"vehicle_id": vehicle_id, "status": current.value}
        )


async def retire(db: AsyncSession, vehicle_id: int) -> None:
    """Take a vehicle out of service from any status."""
    if not await _transition(db, vehicle_id, list(VehicleStatus), VehicleStatus.OUT_OF_SERVICE):
        raise NotFoundError("Vehicle", vehicle_id)


async def reactivate(db: AsyncSession, vehicle_id: int) -> None:
    """
    Bring a retired vehicle back: out-of-service -> available.

    Raises:
        StateError(IllegalTransition): vehicle is not retired, or trips or
            repairs opened before retirement are still active
    """
    if await count_active_trips(db, vehicle_id) or await count_open_repairs(db, vehicle_id):
        raise StateError(
            "Close the vehicle's active trips and repairs before reactivating it",
            reason="IllegalTransition",
            details={"vehicle_id": vehicle_id}
        )
    if not await _transition(db, vehicle_id, [VehicleStatus.OUT_OF_SERVICE], VehicleStatus.AVAILABLE):
        current = await _current_status(db, vehicle_id)
        if current is None:
            raise NotFoundError("Vehicle", vehicle_id)
        raise StateError(
            f"Only out-of-service vehicles can be reactivated (current status: {current.value})",
            reason="IllegalTransition",
            details={"vehicle_id": vehicle_id, "status": current.value}
        )
