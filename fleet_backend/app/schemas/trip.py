"""
Trip (driver booking) schemas.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import List, Optional
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.schemas.common import UtcDatetime


class TripCreate(BaseModel):
    """Booking request. The vehicle must be available."""
    driver_id: int
    vehicle_id: int
    passenger_name: str = Field(..., min_length=1, max_length=200)
    passenger_contact: Optional[str] = Field(default=None, max_length=100)
    pickup_location: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    scheduled_pickup_time: UtcDatetime
    scheduled_return_time: Optional[UtcDatetime] = None
    purpose: Optional[str] = Field(default=None, max_length=500)
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    department_id: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_return_after_pickup(self):
        if self.scheduled_return_time is not None and self.scheduled_return_time <= self.scheduled_pickup_time:
            raise ValueError("scheduled_return_time must be after scheduled_pickup_time")
        return self


class TripStatusUpdate(BaseModel):
    """Raw status string; unknown values are rejected as InvalidStatus (400)."""
    status: str
    actual_cost: Optional[float] = Field(default=None, ge=0)


class TripReassign(BaseModel):
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None


class TripCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class TripResponse(BaseModel):
    id: int
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    department_id: Optional[int] = None
    passenger_name: str
    passenger_contact: Optional[str] = None
    pickup_location: str
    destination: str
    purpose: Optional[str] = None
    scheduled_pickup_time: datetime
    scheduled_return_time: Optional[datetime] = None
    actual_pickup_time: Optional[datetime] = None
    actual_return_time: Optional[datetime] = None
    status: TripStatus
    cancellation_reason: Optional[str] = None
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None
    notes: Optional[str] = None
    created_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    items: List[TripResponse]
    total: int
    page: int
    page_size: int
