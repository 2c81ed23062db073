"""
Accident and cost record schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from fleet_backend.app.schemas.common import UtcDatetime


class AccidentCreate(BaseModel):
    trip_id: Optional[int] = None
    vehicle_id: int
    driver_id: Optional[int] = None
    accident_date: UtcDatetime
    location: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    damage: Optional[str] = None
    status: str = Field(default="reported", max_length=50)


class AccidentResponse(BaseModel):
    id: int
    trip_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    accident_date: datetime
    location: str
    description: str
    damage: Optional[str] = None
    status: str
    reported_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AccidentListResponse(BaseModel):
    items: List[AccidentResponse]
    total: int
    page: int
    page_size: int


class CostCreate(BaseModel):
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    incurred_date: UtcDatetime
    reference: Optional[str] = Field(default=None, max_length=100)
    department_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None


class CostResponse(BaseModel):
    id: int
    amount: float
    category: str
    description: Optional[str] = None
    incurred_date: datetime
    reference: Optional[str] = None
    department_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    recorded_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CostListResponse(BaseModel):
    items: List[CostResponse]
    total: int
    page: int
    page_size: int
