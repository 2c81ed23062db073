"""
Maintenance schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from fleet_backend.app.models.trip_enums import MaintenanceType, MaintenanceStatus
from fleet_backend.app.schemas.common import UtcDatetime


class ReplacedPart(BaseModel):
    name: str = Field(..., min_length=1)
    part_number: Optional[str] = None
    cost: float = Field(default=0, ge=0)


class MaintenanceCreate(BaseModel):
    vehicle_id: int
    maintenance_type: MaintenanceType
    description: str = Field(..., min_length=1)
    scheduled_date: UtcDatetime
    cost: float = Field(default=0, ge=0)
    service_provider: Optional[str] = Field(default=None, max_length=200)
    mileage: Optional[int] = Field(default=None, ge=0)
    parts_replaced: List[ReplacedPart] = Field(default_factory=list)
    next_service_due: Optional[date] = None
    department_id: Optional[int] = None


class MaintenanceUpdate(BaseModel):
    """Editable fields. Vehicle, type and status are fixed here."""
    description: Optional[str] = Field(default=None, min_length=1)
    scheduled_date: Optional[UtcDatetime] = None
    cost: Optional[float] = Field(default=None, ge=0)
    service_provider: Optional[str] = Field(default=None, max_length=200)
    mileage: Optional[int] = Field(default=None, ge=0)
    parts_replaced: Optional[List[ReplacedPart]] = None
    next_service_due: Optional[date] = None


class MaintenanceComplete(BaseModel):
    completed_date: Optional[UtcDatetime] = None
    cost: Optional[float] = Field(default=None, ge=0)
    mileage: Optional[int] = Field(default=None, ge=0)
    parts_replaced: Optional[List[ReplacedPart]] = None
    next_service_due: Optional[date] = None


class MaintenanceResponse(BaseModel):
    id: int
    vehicle_id: Optional[int] = None
    maintenance_type: MaintenanceType
    description: str
    scheduled_date: datetime
    completed_date: Optional[datetime] = None
    status: MaintenanceStatus
    cost: float
    service_provider: Optional[str] = None
    mileage: Optional[int] = None
    parts_replaced: List[ReplacedPart]
    next_service_due: Optional[date] = None
    department_id: Optional[int] = None
    performed_by_id: Optional[int] = None
    created_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MaintenanceListResponse(BaseModel):
    items: List[MaintenanceResponse]
    total: int
    page: int
    page_size: int
