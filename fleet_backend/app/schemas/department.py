"""
Department and subsidiary schemas.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import List, Optional
from fleet_backend.app.models.ledger_enums import SubsidiaryStatus


class SubsidiaryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    address: Optional[str] = Field(default=None, max_length=500)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    status: SubsidiaryStatus = SubsidiaryStatus.ACTIVE


class SubsidiaryResponse(BaseModel):
    id: int
    name: str
    code: str
    address: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    status: SubsidiaryStatus
    created_at: datetime

    class Config:
        from_attributes = True


class SubsidiaryListResponse(BaseModel):
    items: List[SubsidiaryResponse]
    total: int
    page: int
    page_size: int


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    head_id: Optional[int] = None
    subsidiary_id: Optional[int] = None
    budget: float = Field(default=0, ge=0, description="Initial allocated and available funds")


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    head_id: Optional[int] = None
    subsidiary_id: Optional[int] = None


class BudgetUpdate(BaseModel):
    budget: float = Field(..., ge=0)


class FundsDeduction(BaseModel):
    amount: float = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=500)


class DepartmentResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    head_id: Optional[int] = None
    subsidiary_id: Optional[int] = None
    allocated_funds: float
    available_funds: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentListResponse(BaseModel):
    items: List[DepartmentResponse]
    total: int
    page: int
    page_size: int


class BudgetResponse(BaseModel):
    department_id: int
    allocated_funds: float
    available_funds: float
    spent_funds: float
