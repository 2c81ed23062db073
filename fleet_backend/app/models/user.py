"""
User database model.

This module defines the User SQLAlchemy model for authentication and
role-based access control.
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Enum, JSON, ForeignKey
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import UserRole, UserStatus, enum_values


class User(Base):
    """
    User model for authentication and user management.

    `role` and `permissions` are the single source of truth for authorization.
    Convenience flags such as is_admin are derived in the response schemas.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    employee_number = Column(String(50), unique=True, index=True, nullable=False)
    # Stored lower-cased, which makes the unique index case-insensitive
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    grade = Column(String(50), nullable=True)

    # Driver licence
    license_number = Column(String(100), nullable=True)
    license_expiry = Column(Date, nullable=True)

    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), index=True, nullable=True)

    # Authorization
    role = Column(Enum(UserRole, name="user_role", values_callable=enum_values), default=UserRole.USER, nullable=False)
    permissions = Column(JSON, nullable=False, default=dict)
    department_access = Column(JSON, nullable=False, default=list)  # Empty = unrestricted
    subsidiary_access = Column(JSON, nullable=False, default=list)
    status = Column(Enum(UserStatus, name="user_status", values_callable=enum_values), default=UserStatus.ACTIVE, nullable=False)

    # Credential (None = cannot log in until a password is set)
    hashed_password = Column(String(255), nullable=True)
    credential_changed_at = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User(id={self.id}, employee_number='{self.employee_number}', email='{self.email}', role='{self.role.value}')>"
