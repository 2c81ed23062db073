"""
User management schemas.
"""

from pydantic import BaseModel, EmailStr, Field, computed_field, field_validator
from datetime import date, datetime
from typing import Dict, List, Optional
from fleet_backend.app.core.permissions import ALL_CAPABILITIES
from fleet_backend.app.models.enums import UserRole, UserStatus


def _check_capabilities(value: Optional[Dict[str, bool]]) -> Optional[Dict[str, bool]]:
    if value is None:
        return value
    unknown = sorted(set(value) - ALL_CAPABILITIES)
    if unknown:
        raise ValueError(f"Unknown capabilities: {', '.join(unknown)}")
    return value


class UserResponse(BaseModel):
    """
    User as returned by the API. Never includes the password hash.

    is_admin and is_driver are derived from the role.
    """
    id: int
    employee_number: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    grade: Optional[str] = None
    license_number: Optional[str] = None
    license_expiry: Optional[date] = None
    department_id: Optional[int] = None
    role: UserRole
    permissions: Dict[str, bool]
    department_access: List[int]
    subsidiary_access: List[int]
    status: UserStatus
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.SUPER_ADMIN, UserRole.ADMIN)

    @computed_field
    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    """Admin-created user. Without a password the account cannot log in yet."""
    employee_number: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = Field(default=None, min_length=8)
    phone: Optional[str] = Field(default=None, max_length=50)
    grade: Optional[str] = Field(default=None, max_length=50)
    license_number: Optional[str] = Field(default=None, max_length=100)
    license_expiry: Optional[date] = None
    department_id: Optional[int] = None
    role: UserRole = UserRole.USER
    permissions: Optional[Dict[str, bool]] = Field(default=None, description="Overrides on top of role defaults")
    department_access: List[int] = Field(default_factory=list)
    subsidiary_access: List[int] = Field(default_factory=list)

    validate_permissions = field_validator("permissions")(_check_capabilities)


class UserBatchCreate(BaseModel):
    users: List[UserCreate] = Field(..., min_length=1, max_length=500)


class UserUpdate(BaseModel):
    """Admin edit of profile fields. Role, permissions and status have their own endpoints."""
    employee_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    grade: Optional[str] = Field(default=None, max_length=50)
    license_number: Optional[str] = Field(default=None, max_length=100)
    license_expiry: Optional[date] = None
    department_id: Optional[int] = None


class RoleUpdate(BaseModel):
    """Role change; permissions become the role defaults overlaid by `permissions`."""
    role: Optional[UserRole] = None
    permissions: Optional[Dict[str, bool]] = None
    department_access: Optional[List[int]] = None
    subsidiary_access: Optional[List[int]] = None

    validate_permissions = field_validator("permissions")(_check_capabilities)


class StatusUpdate(BaseModel):
    status: UserStatus


class UserListResponse(BaseModel):
    """Schema for list users response."""
    items: List[UserResponse]
    total: int
    page: int
    page_size: int
