"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import date
from typing import Optional
from fleet_backend.app.schemas.user import UserResponse


class UserRegister(BaseModel):
    """
    Schema for self-registration.

    Used by POST /auth/register. The account always gets role `user`; any
    role supplied by the client is ignored.
    """
    employee_number: str = Field(..., min_length=1, max_length=50, description="Unique employee number")
    email: EmailStr = Field(..., description="User email address")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    phone: Optional[str] = Field(default=None, max_length=50)
    department_id: Optional[int] = None


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login. Accepts either email or employee number.
    """
    email: str = Field(..., min_length=1, description="Email or employee number")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by login, register and password change.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserResponse


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    license_number: Optional[str] = Field(default=None, max_length=100)
    license_expiry: Optional[date] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)
