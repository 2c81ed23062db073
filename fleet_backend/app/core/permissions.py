"""
Permission catalog.

Static mapping from role to its default capabilities. Loaded once at import
and never mutated.
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, Union
from fleet_backend.app.models.enums import UserRole


class Capability:
    """Capability names as stored in User.permissions."""
    DASHBOARD = "dashboard"
    USER_MANAGEMENT = "userManagement"
    VEHICLE_MANAGEMENT = "vehicleManagement"
    TRIP_MANAGEMENT = "tripManagement"
    MAINTENANCE_MANAGEMENT = "maintenanceManagement"
    FUEL_MANAGEMENT = "fuelManagement"
    ANALYTICS = "analytics"
    COMPLIANCE = "compliance"
    SYSTEM_SETTINGS = "systemSettings"
    COMMUNICATION = "communication"


ALL_CAPABILITIES: FrozenSet[str] = frozenset({
    Capability.DASHBOARD,
    Capability.USER_MANAGEMENT,
    Capability.VEHICLE_MANAGEMENT,
    Capability.TRIP_MANAGEMENT,
    Capability.MAINTENANCE_MANAGEMENT,
    Capability.FUEL_MANAGEMENT,
    Capability.ANALYTICS,
    Capability.COMPLIANCE,
    Capability.SYSTEM_SETTINGS,
    Capability.COMMUNICATION,
})


ROLE_CAPABILITIES = MappingProxyType({
    UserRole.SUPER_ADMIN: ALL_CAPABILITIES,
    UserRole.ADMIN: ALL_CAPABILITIES,
    UserRole.FLEET_MANAGER: frozenset({
        Capability.DASHBOARD,
        Capability.VEHICLE_MANAGEMENT,
        Capability.TRIP_MANAGEMENT,
        Capability.MAINTENANCE_MANAGEMENT,
        Capability.FUEL_MANAGEMENT,
        Capability.ANALYTICS,
        Capability.COMPLIANCE,
        Capability.COMMUNICATION,
    }),
    UserRole.DISPATCHER: frozenset({
        Capability.DASHBOARD,
        Capability.TRIP_MANAGEMENT,
        Capability.COMMUNICATION,
    }),
    UserRole.DRIVER: frozenset({
        Capability.DASHBOARD,
        Capability.TRIP_MANAGEMENT,
        Capability.FUEL_MANAGEMENT,
    }),
    UserRole.VIEWER: frozenset({
        Capability.DASHBOARD,
        Capability.ANALYTICS,
    }),
    UserRole.USER: frozenset({
        Capability.DASHBOARD,
    }),
})


def _coerce_role(role: Union[UserRole, str, None]):
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def default_capabilities(role: Union[UserRole, str, None]) -> FrozenSet[str]:
    """Capabilities granted to a role. Unknown roles get nothing."""
    resolved = _coerce_role(role)
    if resolved is UserRole.SUPER_ADMIN:
        return ALL_CAPABILITIES
    return ROLE_CAPABILITIES.get(resolved, frozenset())


def default_permissions(role: Union[UserRole, str, None]) -> Dict[str, bool]:
    """
    Full permission map for a role, one entry per capability.

    Unknown roles map every capability to False.
    """
    granted = default_capabilities(role)
    return {capability: capability in granted for capability in sorted(ALL_CAPABILITIES)}


def merge_permissions(role: Union[UserRole, str, None], overrides: Dict[str, bool] = None) -> Dict[str, bool]:
    """Role defaults overlaid by explicit overrides (override wins per capability)."""
    permissions = default_permissions(role)
    for capability, allowed in (overrides or {}).items():
        if capability not in ALL_CAPABILITIES:
            continue
        permissions[capability] = bool(allowed)
    return permissions
