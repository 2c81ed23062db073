"""
Trip lifecycle service.

Transition table:
    scheduled   -> in-progress | completed | cancelled | delayed
    in-progress -> completed | cancelled
    delayed     -> in-progress | completed | cancelled

A scheduled or delayed trip may be closed as completed directly when the
pickup was never recorded.

completed and cancelled are terminal. Entering a terminal status releases the
vehicle (see vehicle_lifecycle.release). Functions flush but never commit; the
endpoint commits once the whole operation has succeeded.
"""

import logging
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update

from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock
from fleet_backend.app.core.exceptions import NotFoundError, StateError, ValidationError
from fleet_backend.app.models.enums import UserStatus
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.models.user import User
from fleet_backend.app.services import vehicle_lifecycle
from fleet_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet")

ALLOWED_TRANSITIONS = {
    TripStatus.SCHEDULED: frozenset({TripStatus.IN_PROGRESS, TripStatus.COMPLETED, TripStatus.CANCELLED, TripStatus.DELAYED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.DELAYED: frozenset({TripStatus.IN_PROGRESS, TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})


def parse_status(value: Any) -> TripStatus:
    """
    Coerce a raw status value.

    Raises:
        ValidationError(InvalidStatus): value is not one of the five trip statuses
    """
    if isinstance(value, TripStatus):
        return value
    try:
        return TripStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid trip status: {value!r}",
            error_code="ERR_INVALID_STATUS",
            details={"reason": "InvalidStatus", "allowed": [s.value for s in TripStatus]}
        )


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


async def get_trip(db: AsyncSession, trip_id: int) -> Trip:
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise NotFoundError("Trip", trip_id)
    return trip


async def get_active_driver(db: AsyncSession, driver_id: int) -> User:
    """Load the driver; inactive or suspended accounts cannot take trips."""
    driver = await db.get(User, driver_id)
    if driver is None:
        raise NotFoundError("Driver", driver_id)
    if driver.status != UserStatus.ACTIVE:
        raise ValidationError(
            "Driver account is not active",
            error_code="ERR_DRIVER_INACTIVE",
            details={"driver_id": driver_id, "status": driver.status.value}
        )
    return driver


async def create_trip(db: AsyncSession, actor: Principal, data: Dict[str, Any]) -> Trip:
    """
    Book a trip and reserve its vehicle (available -> in-use).

    Raises:
        NotFoundError: driver or vehicle missing
        StateError(VehicleUnavailable): vehicle not available
    """
    await get_active_driver(db, data["driver_id"])
    vehicle = await vehicle_lifecycle.get_vehicle(db, data["vehicle_id"])

    await vehicle_lifecycle.occupy(db, vehicle.id)

    fields = dict(data)
    if fields.get("department_id") is None:
        fields["department_id"] = vehicle.department_id

    trip = Trip(**fields, status=TripStatus.SCHEDULED, created_by_id=actor.id)
    db.add(trip)
    await db.flush()

    await log_event(
        db=db,
        action=AuditAction.TRIP_CREATED,
        actor_id=actor.id,
        actor_email=actor.email,
        target_user_id=trip.driver_id,
        metadata={"trip_id": trip.id, "vehicle_id": trip.vehicle_id}
    )

    logger.info("Trip created", extra={"trip_id": trip.id, "vehicle_id": trip.vehicle_id})
    return trip


async def update_status(
    db: AsyncSession,
    trip: Trip,
    new_status: Any,
    clock: Clock,
    actor: Optional[Principal] = None,
) -> Trip:
    """
    Move a trip to `new_status`.

    Entering in-progress stamps actual_pickup_time and entering completed
    stamps actual_return_time. Terminal statuses release the vehicle.

    Raises:
        ValidationError(InvalidStatus): unknown status value
        StateError(IllegalTransition): transition not in the table, or the
            trip changed status concurrently
    """
    target = parse_status(new_status)
    current = trip.status

    if not can_transition(current, target):
        raise StateError(
            f"Cannot change trip status from {current.value} to {target.value}",
            reason="IllegalTransition",
            details={"trip_id": trip.id, "from": current.value, "to": target.value}
        )

    values = {"status": target}
    now = clock.now()
    if target == TripStatus.IN_PROGRESS:
        values["actual_pickup_time"] = now
    elif target == TripStatus.COMPLETED:
        values["actual_return_time"] = now

    result = await db.execute(
        update(Trip).where(Trip.id == trip.id, Trip.status == current).values(**values)
    )
    if result.rowcount != 1:
        raise StateError(
            "Trip status changed concurrently, reload and retry",
            reason="IllegalTransition",
            details={"trip_id": trip.id}
        )

    if target in TERMINAL_STATUSES and trip.vehicle_id is not None:
        await vehicle_lifecycle.release(db, trip.vehicle_id, excluding_trip_id=trip.id)

    if actor is not None:
        await log_event(
            db=db,
            action=AuditAction.TRIP_STATUS_CHANGED,
            actor_id=actor.id,
            actor_email=actor.email,
            target_user_id=trip.driver_id,
            metadata={"trip_id": trip.id, "from": current.value, "to": target.value}
        )

    await db.refresh(trip)
    logger.info(
        "Trip status changed",
        extra={"trip_id": trip.id, "from_status": current.value, "to_status": target.value}
    )
    return trip


async def reassign(
    db: AsyncSession,
    trip: Trip,
    actor: Principal,
    new_driver_id: Optional[int] = None,
    new_vehicle_id: Optional[int] = None,
) -> Trip:
    """
    Give a non-terminal trip a new driver and/or vehicle.

    The new vehicle is reserved with the same conditional update as trip
    creation; the old one is then released.

    Raises:
        ValidationError: nothing to change
        StateError(IllegalTransition): trip already completed or cancelled
        StateError(VehicleUnavailable): new vehicle not available
    """
    if new_driver_id is None and new_vehicle_id is None:
        raise ValidationError("Provide a new driver or a new vehicle")

    if trip.status in TERMINAL_STATUSES:
        raise StateError(
            f"Cannot reassign a {trip.status.value} trip",
            reason="IllegalTransition",
            details={"trip_id": trip.id, "status": trip.status.value}
        )

    changes = {}

    if new_driver_id is not None and new_driver_id != trip.driver_id:
        await get_active_driver(db, new_driver_id)
        changes["driver_id"] = {"from": trip.driver_id, "to": new_driver_id}
        trip.driver_id = new_driver_id

    if new_vehicle_id is not None and new_vehicle_id != trip.vehicle_id:
        await vehicle_lifecycle.occupy(db, new_vehicle_id)
        old_vehicle_id = trip.vehicle_id
        changes["vehicle_id"] = {"from": old_vehicle_id, "to": new_vehicle_id}
        trip.vehicle_id = new_vehicle_id
        await db.flush()
        if old_vehicle_id is not None:
            await vehicle_lifecycle.release(db, old_vehicle_id, excluding_trip_id=trip.id)

    await db.flush()

    await log_event(
        db=db,
        action=AuditAction.TRIP_REASSIGNED,
        actor_id=actor.id,
        actor_email=actor.email,
        target_user_id=trip.driver_id,
        metadata={"trip_id": trip.id, "changes": changes}
    )
    return trip


async def cancel(
    db: AsyncSession,
    trip: Trip,
    clock: Clock,
    actor: Principal,
    reason: Optional[str] = None,
) -> Trip:
    """Cancel a trip, record the reason and free its vehicle."""
    await update_status(db, trip, TripStatus.CANCELLED, clock)

    trip.cancellation_reason = reason
    await db.flush()

    await log_event(
        db=db,
        action=AuditAction.TRIP_CANCELLED,
        actor_id=actor.id,
        actor_email=actor.email,
        target_user_id=trip.driver_id,
        metadata={"trip_id": trip.id, "reason": reason}
    )
    return trip
