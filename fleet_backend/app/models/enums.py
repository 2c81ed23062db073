"""
User roles and account status enumerations.

Defines the role types for the fleet management system.
"""

import enum


def enum_values(enum_cls):
    """Persist enum values (e.g. "fleet-manager") rather than member names."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        SUPER_ADMIN: Unrestricted system owner; bypasses every permission check
        ADMIN: Administers users, fleet and settings
        FLEET_MANAGER: Runs vehicles, maintenance and fuel for their departments
        DISPATCHER: Books and tracks trips
        DRIVER: Executes trips and records fuel
        VIEWER: Read-only dashboards and analytics
        USER: Self-registered account with minimal access (default role)
    """
    SUPER_ADMIN = "super-admin"
    ADMIN = "admin"
    FLEET_MANAGER = "fleet-manager"
    DISPATCHER = "dispatcher"
    DRIVER = "driver"
    VIEWER = "viewer"
    USER = "user"


class UserStatus(str, enum.Enum):
    """Account status. Only ACTIVE accounts can authenticate."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
