"""
Fuel ledger schemas.

total_cost is output-only: the server derives it from fuel_amount and
cost_per_unit.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional
from fleet_backend.app.models.vehicle_enums import FuelType
from fleet_backend.app.models.ledger_enums import FuelingType
from fleet_backend.app.schemas.common import UtcDatetime


class FuelCreate(BaseModel):
    vehicle_id: int
    driver_id: Optional[int] = None
    fueling_date: UtcDatetime
    odometer_reading: int = Field(..., ge=0)
    fuel_amount: float = Field(..., gt=0)
    fuel_type: FuelType
    cost_per_unit: float = Field(..., ge=0)
    fueling_location: Optional[str] = Field(default=None, max_length=255)
    fuel_card_number: Optional[str] = Field(default=None, max_length=100)
    receipt_number: Optional[str] = Field(default=None, max_length=100)
    fueling_type: FuelingType = FuelingType.ROUTINE
    notes: Optional[str] = None
    department_id: Optional[int] = None


class FuelUpdate(BaseModel):
    fueling_date: Optional[UtcDatetime] = None
    odometer_reading: Optional[int] = Field(default=None, ge=0)
    fuel_amount: Optional[float] = Field(default=None, gt=0)
    fuel_type: Optional[FuelType] = None
    cost_per_unit: Optional[float] = Field(default=None, ge=0)
    fueling_location: Optional[str] = Field(default=None, max_length=255)
    fuel_card_number: Optional[str] = Field(default=None, max_length=100)
    receipt_number: Optional[str] = Field(default=None, max_length=100)
    fueling_type: Optional[FuelingType] = None
    notes: Optional[str] = None


class FuelResponse(BaseModel):
    id: int
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    fueling_date: datetime
    odometer_reading: int
    fuel_amount: float
    fuel_type: FuelType
    cost_per_unit: float
    total_cost: float
    fueling_location: Optional[str] = None
    fuel_card_number: Optional[str] = None
    receipt_number: Optional[str] = None
    fueling_type: FuelingType
    notes: Optional[str] = None
    department_id: Optional[int] = None
    recorded_by_id: Optional[int] = None
    is_verified: bool
    verified_by_id: Optional[int] = None
    verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FuelListResponse(BaseModel):
    items: List[FuelResponse]
    total: int
    page: int
    page_size: int


class FuelCardTransaction(BaseModel):
    """One transaction from the fuel-card provider export."""
    vehicle_registration: str = Field(..., min_length=1)
    fueling_date: UtcDatetime
    odometer_reading: int = Field(..., ge=0)
    fuel_amount: float = Field(..., gt=0)
    fuel_type: FuelType
    cost_per_unit: float = Field(..., ge=0)
    fueling_location: Optional[str] = None
    fuel_card_number: Optional[str] = None
    receipt_number: Optional[str] = None


class FuelCardSync(BaseModel):
    transactions: List[FuelCardTransaction] = Field(..., min_length=1, max_length=1000)


class FuelTypeTotals(BaseModel):
    records: int
    fuel_amount: float
    total_cost: float


class FuelSummary(BaseModel):
    total_records: int
    total_fuel_amount: float
    total_cost: float
    average_cost_per_unit: float
    by_fuel_type: Dict[str, FuelTypeTotals]


class FuelConsumption(BaseModel):
    vehicle_id: int
    records: int
    distance: int
    fuel_used: float
    efficiency: Optional[float] = None
    cost_per_distance: Optional[float] = None
