"""
Admin API Schema Definitions.

Pydantic schemas for admin endpoints.
"""

from pydantic import BaseModel
from datetime import date, datetime
from typing import Dict, List, Optional


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_email: Optional[str]
    action: str
    target_user_id: Optional[int]
    target_email: Optional[str]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int


class RecentTrip(BaseModel):
    id: int
    passenger_name: str
    pickup_location: str
    destination: str
    status: str
    scheduled_pickup_time: datetime
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None


class ExpiringVehicle(BaseModel):
    id: int
    registration: str
    due: date


class DashboardOverview(BaseModel):
    """Fleet-at-a-glance numbers for the dashboard."""
    total_vehicles: int
    vehicles_by_status: Dict[str, int]
    active_trips: int
    trips_today: int
    total_drivers: int
    active_drivers: int
    maintenance_due_soon: List[ExpiringVehicle]
    insurance_expiring_soon: List[ExpiringVehicle]
    recent_trips: List[RecentTrip]


class SystemStats(BaseModel):
    """System-wide counts and spend."""
    total_users: int
    users_by_role: Dict[str, int]
    users_by_status: Dict[str, int]
    total_vehicles: int
    total_trips: int
    trips_by_status: Dict[str, int]
    open_maintenance: int
    total_fuel_cost: float
    total_recorded_costs: float
    total_available_funds: float
