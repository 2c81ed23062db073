"""
Vehicle schemas.

Registration numbers are trimmed and upper-cased on input. Status is never
accepted on create or update: it only changes through the lifecycle actions.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import List, Optional
from fleet_backend.app.models.vehicle_enums import VehicleStatus, VehicleType, FuelType


def normalize_registration(value: str) -> str:
    value = value.strip().upper()
    if not value:
        raise ValueError("Registration cannot be blank")
    return value


class VehicleCreate(BaseModel):
    registration: str = Field(..., min_length=1, max_length=50)
    make: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1900, le=2100)
    color: Optional[str] = Field(default=None, max_length=50)
    vehicle_type: VehicleType
    fuel_type: FuelType
    department_id: Optional[int] = None
    current_location: Optional[str] = Field(default=None, max_length=255)
    last_service_date: Optional[date] = None
    next_service_due: Optional[date] = None
    insurance_expiry: Optional[date] = None
    mileage: int = Field(default=0, ge=0)
    notes: Optional[str] = None

    validate_registration = field_validator("registration")(normalize_registration)


class VehicleBatchCreate(BaseModel):
    vehicles: List[VehicleCreate] = Field(..., min_length=1, max_length=500)


class VehicleUpdate(BaseModel):
    """Detail edits. Status is deliberately absent."""
    registration: Optional[str] = Field(default=None, min_length=1, max_length=50)
    make: Optional[str] = Field(default=None, min_length=1, max_length=100)
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    color: Optional[str] = Field(default=None, max_length=50)
    vehicle_type: Optional[VehicleType] = None
    fuel_type: Optional[FuelType] = None
    department_id: Optional[int] = None
    last_service_date: Optional[date] = None
    next_service_due: Optional[date] = None
    insurance_expiry: Optional[date] = None
    mileage: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @field_validator("registration")
    @classmethod
    def validate_registration(cls, value):
        return normalize_registration(value) if value is not None else value


class VehicleLocationUpdate(BaseModel):
    current_location: str = Field(..., min_length=1, max_length=255)


class VehicleResponse(BaseModel):
    id: int
    registration: str
    make: str
    model: str
    year: int
    color: Optional[str] = None
    vehicle_type: VehicleType
    fuel_type: FuelType
    status: VehicleStatus
    department_id: Optional[int] = None
    current_location: Optional[str] = None
    last_service_date: Optional[date] = None
    next_service_due: Optional[date] = None
    insurance_expiry: Optional[date] = None
    mileage: int
    notes: Optional[str] = None
    created_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    items: List[VehicleResponse]
    total: int
    page: int
    page_size: int
