"""
Parking record schemas.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Dict, List, Optional
from fleet_backend.app.models.ledger_enums import ParkingType, PaymentStatus
from fleet_backend.app.schemas.common import UtcDatetime


class ParkingCreate(BaseModel):
    """Exactly one of vehicle_id or shuttle_id is required."""
    vehicle_id: Optional[int] = None
    shuttle_id: Optional[int] = None
    location: str = Field(..., min_length=1, max_length=255)
    parking_type: ParkingType = ParkingType.DAILY
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    cost_amount: float = Field(default=0, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=10)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    department_id: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_target_and_times(self):
        if (self.vehicle_id is None) == (self.shuttle_id is None):
            raise ValueError("Provide exactly one of vehicle_id or shuttle_id")
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time cannot be before start_time")
        return self


class ParkingUpdate(BaseModel):
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    parking_type: Optional[ParkingType] = None
    start_time: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None
    cost_amount: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=10)
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class ParkingResponse(BaseModel):
    id: int
    vehicle_id: Optional[int] = None
    shuttle_id: Optional[int] = None
    location: str
    parking_type: ParkingType
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_hours: Optional[float] = None
    cost_amount: float
    currency: str
    payment_status: PaymentStatus
    department_id: Optional[int] = None
    recorded_by_id: Optional[int] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParkingListResponse(BaseModel):
    items: List[ParkingResponse]
    total: int
    page: int
    page_size: int


class ParkingTypeDuration(BaseModel):
    sessions: int
    total_hours: float
    average_hours: float
    total_cost: float


class ParkingDurationAnalysis(BaseModel):
    """Closed sessions only; open sessions have no duration yet."""
    sessions: int
    total_hours: float
    average_hours: float
    longest_hours: float
    total_cost: float
    by_parking_type: Dict[str, ParkingTypeDuration]
