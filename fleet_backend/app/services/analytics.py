"""
Analytics service.

Aggregations for the dashboard, system statistics and parking analysis.
Focused on READ-ONLY operations.
"""

from datetime import datetime, time, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock
from fleet_backend.app.core.guards import department_guard
from fleet_backend.app.models.cost import CostRecord
from fleet_backend.app.models.department import Department
from fleet_backend.app.models.enums import UserRole, UserStatus
from fleet_backend.app.models.fuel_record import FuelRecord
from fleet_backend.app.models.maintenance import MaintenanceRecord
from fleet_backend.app.models.parking import ParkingRecord
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.models.user import User
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.vehicle_enums import VehicleStatus
from fleet_backend.app.schemas.admin import DashboardOverview, SystemStats, RecentTrip, ExpiringVehicle
from fleet_backend.app.schemas.parking import ParkingDurationAnalysis, ParkingTypeDuration
from fleet_backend.app.services.vehicle_lifecycle import ACTIVE_TRIP_STATUSES, OPEN_MAINTENANCE_STATUSES

MAINTENANCE_DUE_WINDOW = timedelta(days=7)
INSURANCE_EXPIRY_WINDOW = timedelta(days=30)
RECENT_TRIPS_LIMIT = 5


class AnalyticsService:

    @staticmethod
    async def get_dashboard_overview(db: AsyncSession, principal: Principal, clock: Clock) -> DashboardOverview:
        """Fleet status, trips, drivers and upcoming due dates within the caller's departments."""
        now = clock.now()
        today = now.date()

        # 1. Vehicles by status
        status_query = department_guard.apply(
            select(Vehicle.status, func.count(Vehicle.id)).group_by(Vehicle.status),
            Vehicle.department_id, principal
        )
        counts = {row[0].value: row[1] for row in (await db.execute(status_query)).all()}
        vehicles_by_status = {status.value: counts.get(status.value, 0) for status in VehicleStatus}

        # 2. Trips
        active_query = department_guard.apply(
            select(func.count(Trip.id)).where(Trip.status.in_(ACTIVE_TRIP_STATUSES)),
            Trip.department_id, principal
        )
        active_trips = (await db.execute(active_query)).scalar() or 0

        day_start = datetime.combine(today, time.min, tzinfo=now.tzinfo)
        today_query = department_guard.apply(
            select(func.count(Trip.id)).where(
                Trip.scheduled_pickup_time >= day_start,
                Trip.scheduled_pickup_time < day_start + timedelta(days=1)
            ),
            Trip.department_id, principal
        )
        trips_today = (await db.execute(today_query)).scalar() or 0

        # 3. Drivers
        drivers_query = department_guard.apply(
            select(User.status, func.count(User.id)).where(User.role == UserRole.DRIVER).group_by(User.status),
            User.department_id, principal
        )
        driver_counts = {row[0]: row[1] for row in (await db.execute(drivers_query)).all()}

        # 4. Due dates
        service_query = department_guard.apply(
            select(Vehicle.id, Vehicle.registration, Vehicle.next_service_due).where(
                Vehicle.next_service_due.is_not(None),
                Vehicle.next_service_due <= today + MAINTENANCE_DUE_WINDOW,
                Vehicle.status != VehicleStatus.OUT_OF_SERVICE
            ).order_by(Vehicle.next_service_due),
            Vehicle.department_id, principal
        )
        insurance_query = department_guard.apply(
            select(Vehicle.id, Vehicle.registration, Vehicle.insurance_expiry).where(
                Vehicle.insurance_expiry.is_not(None),
                Vehicle.insurance_expiry <= today + INSURANCE_EXPIRY_WINDOW,
                Vehicle.status != VehicleStatus.OUT_OF_SERVICE
            ).order_by(Vehicle.insurance_expiry),
            Vehicle.department_id, principal
        )

        # 5. Recent trips
        recent_query = department_guard.apply(
            select(Trip).order_by(Trip.created_at.desc(), Trip.id.desc()).limit(RECENT_TRIPS_LIMIT),
            Trip.department_id, principal
        )
        recent = (await db.execute(recent_query)).scalars().all()

        return DashboardOverview(
            total_vehicles=sum(vehicles_by_status.values()),
            vehicles_by_status=vehicles_by_status,
            active_trips=active_trips,
            trips_today=trips_today,
            total_drivers=sum(driver_counts.values()),
            active_drivers=driver_counts.get(UserStatus.ACTIVE, 0),
            maintenance_due_soon=[
                ExpiringVehicle(id=row.id, registration=row.registration, due=row.next_service_due)
                for row in (await db.execute(service_query)).all()
            ],
            insurance_expiring_soon=[
                ExpiringVehicle(id=row.id, registration=row.registration, due=row.insurance_expiry)
                for row in (await db.execute(insurance_query)).all()
            ],
            recent_trips=[
                RecentTrip(
                    id=trip.id,
                    passenger_name=trip.passenger_name,
                    pickup_location=trip.pickup_location,
                    destination=trip.destination,
                    status=trip.status.value,
                    scheduled_pickup_time=trip.scheduled_pickup_time,
                    vehicle_id=trip.vehicle_id,
                    driver_id=trip.driver_id,
                )
                for trip in recent
            ],
        )

    @staticmethod
    async def get_system_stats(db: AsyncSession) -> SystemStats:
        """Get system-wide counts and spend."""

        users_by_role = {
            row[0].value: row[1]
            for row in (await db.execute(select(User.role, func.count(User.id)).group_by(User.role))).all()
        }
        users_by_status = {
            row[0].value: row[1]
            for row in (await db.execute(select(User.status, func.count(User.id)).group_by(User.status))).all()
        }
        trips_by_status = {
            row[0].value: row[1]
            for row in (await db.execute(select(Trip.status, func.count(Trip.id)).group_by(Trip.status))).all()
        }

        vehicles = (await db.execute(select(func.count(Vehicle.id)))).scalar() or 0
        open_maintenance = (await db.execute(
            select(func.count(MaintenanceRecord.id)).where(MaintenanceRecord.status.in_(OPEN_MAINTENANCE_STATUSES))
        )).scalar() or 0

        fuel_cost = (await db.execute(select(func.sum(FuelRecord.total_cost)))).scalar() or 0.0
        recorded_costs = (await db.execute(select(func.sum(CostRecord.amount)))).scalar() or 0.0
        available_funds = (await db.execute(select(func.sum(Department.available_funds)))).scalar() or 0.0

        return SystemStats(
            total_users=sum(users_by_role.values()),
            users_by_role=users_by_role,
            users_by_status=users_by_status,
            total_vehicles=vehicles,
            total_trips=sum(trips_by_status.values()),
            trips_by_status=trips_by_status,
            open_maintenance=open_maintenance,
            total_fuel_cost=float(fuel_cost),
            total_recorded_costs=float(recorded_costs),
            total_available_funds=float(available_funds),
        )

    @staticmethod
    async def get_parking_duration_analysis(
        db: AsyncSession,
        principal: Principal,
        vehicle_id: int = None,
        shuttle_id: int = None,
    ) -> ParkingDurationAnalysis:
        """Duration and cost of closed parking sessions, overall and per parking type."""
        query = select(
            ParkingRecord.parking_type,
            func.count(ParkingRecord.id),
            func.coalesce(func.sum(ParkingRecord.duration_hours), 0),
            func.coalesce(func.max(ParkingRecord.duration_hours), 0),
            func.coalesce(func.sum(ParkingRecord.cost_amount), 0),
        ).where(ParkingRecord.duration_hours.is_not(None)).group_by(ParkingRecord.parking_type)
        if vehicle_id is not None:
            query = query.where(ParkingRecord.vehicle_id == vehicle_id)
        if shuttle_id is not None:
            query = query.where(ParkingRecord.shuttle_id == shuttle_id)
        query = department_guard.apply(query, ParkingRecord.department_id, principal)

        by_type = {}
        sessions = 0
        total_hours = 0.0
        longest = 0.0
        total_cost = 0.0
        for parking_type, count, hours, max_hours, cost in (await db.execute(query)).all():
            by_type[parking_type.value] = ParkingTypeDuration(
                sessions=count,
                total_hours=float(hours),
                average_hours=float(hours) / count if count else 0.0,
                total_cost=float(cost),
            )
            sessions += count
            total_hours += float(hours)
            longest = max(longest, float(max_hours))
            total_cost += float(cost)

        return ParkingDurationAnalysis(
            sessions=sessions,
            total_hours=total_hours,
            average_hours=total_hours / sessions if sessions else 0.0,
            longest_hours=longest,
            total_cost=total_cost,
            by_parking_type=by_type,
        )
