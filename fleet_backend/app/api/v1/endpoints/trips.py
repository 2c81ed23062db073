"""
Trip (driver booking) API endpoints.

Booking a trip reserves its vehicle; completing or cancelling it frees the
vehicle again. The driver is emailed after a booking, and a failed email
never fails the booking.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.models.user import User
from fleet_backend.app.schemas.trip import (
    TripCreate, TripStatusUpdate, TripReassign, TripCancel, TripResponse, TripListResponse
)
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.guards import require_capability, department_guard
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services import trip_lifecycle, vehicle_lifecycle
from fleet_backend.app.services.notification_service import EmailNotifier, get_notifier

router = APIRouter(prefix="/trips", tags=["Trips"])

can_manage_trips = require_capability(Capability.TRIP_MANAGEMENT)


async def _load_in_scope(db: AsyncSession, trip_id: int, principal: Principal) -> Trip:
    trip = await trip_lifecycle.get_trip(db, trip_id)
    department_guard.enforce(principal, trip.department_id)
    return trip


async def _page(db: AsyncSession, query, page: int, page_size: int) -> TripListResponse:
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(Trip.scheduled_pickup_time.desc(), Trip.id.desc()).offset(offset).limit(page_size)
    )
    return TripListResponse(
        items=[TripResponse.model_validate(trip) for trip in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier)
):
    """
    Book a trip.

    Fails with 409 VehicleUnavailable unless the vehicle is available; of two
    concurrent bookings for the same vehicle exactly one succeeds.
    """
    vehicle = await vehicle_lifecycle.get_vehicle(db, trip_data.vehicle_id)
    department_guard.enforce(principal, vehicle.department_id)
    if trip_data.department_id is not None:
        department_guard.enforce(principal, trip_data.department_id)

    trip = await trip_lifecycle.create_trip(db, principal, trip_data.model_dump())
    await db.commit()
    await db.refresh(trip)
    await db.refresh(vehicle)

    driver = await db.get(User, trip.driver_id)
    background_tasks.add_task(notifier.notify_trip_booked, driver, trip, vehicle)

    return TripResponse.model_validate(trip)


@router.get("", response_model=TripListResponse)
async def list_trips(
    trip_status: Optional[TripStatus] = Query(None, alias="status", description="Filter by status"),
    driver_id: Optional[int] = Query(None, description="Filter by driver"),
    vehicle_id: Optional[int] = Query(None, description="Filter by vehicle"),
    department_id: Optional[int] = Query(None, description="Filter by department"),
    start: Optional[datetime] = Query(None, description="Scheduled pickup on or after"),
    end: Optional[datetime] = Query(None, description="Scheduled pickup on or before"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db)
):
    """
    List trips within the caller's departments.

    Drivers only see their own trips.
    """
    query = department_guard.apply(select(Trip), Trip.department_id, principal)
    if principal.role == UserRole.DRIVER:
        query = query.where(Trip.driver_id == principal.id)
    if trip_status:
        query = query.where(Trip.status == trip_status)
    if driver_id:
        query = query.where(Trip.driver_id == driver_id)
    if vehicle_id:
        query = query.where(Trip.vehicle_id == vehicle_id)
    if department_id:
        query = query.where(Trip.department_id == department_id)
    if start:
        query = query.where(Trip.scheduled_pickup_time >= start)
    if end:
        query = query.where(Trip.scheduled_pickup_time <= end)

    return await _page(db, query, page, page_size)


@router.get("/my", response_model=TripListResponse)
async def list_my_trips(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db)
):
    """Trips where the caller is the driver."""
    return await _page(db, select(Trip).where(Trip.driver_id == principal.id), page, page_size)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int,
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db)
):
    trip = await _load_in_scope(db, trip_id, principal)
    return TripResponse.model_validate(trip)


@router.put("/{trip_id}/status", response_model=TripResponse)
async def update_trip_status(
    trip_id: int,
    payload: TripStatusUpdate,
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """
    Move a trip through its lifecycle.

    Unknown statuses fail with 400 InvalidStatus, illegal moves with 409.
    """
    trip = await _load_in_scope(db, trip_id, principal)
    trip = await trip_lifecycle.update_status(db, trip, payload.status, clock, actor=principal)
    if payload.actual_cost is not None:
        trip.actual_cost = payload.actual_cost
    await db.commit()
    await db.refresh(trip)
    return TripResponse.model_validate(trip)


@router.put("/{trip_id}/reassign", response_model=TripResponse)
async def reassign_trip(
    trip_id: int,
    payload: TripReassign,
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db)
):
    """Give the trip a new driver and/or vehicle. A new vehicle must be available."""
    trip = await _load_in_scope(db, trip_id, principal)
    if payload.vehicle_id is not None:
        new_vehicle = await vehicle_lifecycle.get_vehicle(db, payload.vehicle_id)
        department_guard.enforce(principal, new_vehicle.department_id)

    trip = await trip_lifecycle.reassign(
        db, trip, principal, new_driver_id=payload.driver_id, new_vehicle_id=payload.vehicle_id
    )
    await db.commit()
    await db.refresh(trip)
    return TripResponse.model_validate(trip)


@router.put("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: int,
    payload: TripCancel,
    principal: Principal = Depends(can_manage_trips),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Cancel a trip and free its vehicle."""
    trip = await _load_in_scope(db, trip_id, principal)
    trip = await trip_lifecycle.cancel(db, trip, clock, principal, reason=payload.reason)
    await db.commit()
    await db.refresh(trip)
    return TripResponse.model_validate(trip)
