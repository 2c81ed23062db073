"""
Security guards for capability-based and department-scoped access control.

Provides dependencies for protecting endpoints.
"""

from typing import FrozenSet, Optional
from sqlalchemy import or_
from fastapi import Depends
from fleet_backend.app.core.access import Principal, enforce
from fleet_backend.app.core.dependencies import get_current_principal


def require_capability(capability: Optional[str] = None):
    """
    Dependency factory for capability-based access control.

    Usage:
        @router.get("/vehicles")
        async def list_vehicles(
            principal: Principal = Depends(require_capability(Capability.VEHICLE_MANAGEMENT))
        ):
            ...

    Args:
        capability: Capability name the principal must hold; None only checks
            that the account is active

    Returns:
        FastAPI dependency returning the authorized Principal

    Raises:
        AuthError 401 if the account is not active
        ForbiddenError 403 if the capability is missing
    """
    async def capability_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        return enforce(principal, capability)

    return capability_checker


class DepartmentScopeGuard:
    """
    Department scoping for principals with a non-empty department_access.

    Usage:
        department_guard = DepartmentScopeGuard()

        @router.get("/vehicles/{vehicle_id}")
        async def get_vehicle(vehicle_id: int, principal = Depends(...), db = Depends(get_db)):
            vehicle = await load_vehicle(db, vehicle_id)
            department_guard.enforce(principal, vehicle.department_id, Capability.VEHICLE_MANAGEMENT)
            return vehicle
    """

    def enforce(self, principal: Principal, department_id: Optional[int], capability: Optional[str] = None) -> Principal:
        """
        Raise 403 if the department is outside the principal's scope.

        Records without a department are visible to every principal holding
        the capability.
        """
        return enforce(principal, capability, department_id)

    def filter_departments(self, principal: Principal) -> Optional[FrozenSet[int]]:
        """
        Department ids to restrict list queries to.

        Returns None when no filtering is needed (super-admin, or empty
        department_access meaning unrestricted).

        Usage:
            scope = department_guard.filter_departments(principal)
            if scope is not None:
                query = query.where(Vehicle.department_id.in_(scope))
        """
        if not principal.is_department_restricted:
            return None
        return principal.department_access

    def apply(self, query, column, principal: Principal):
        """Restrict a select() to the principal's departments plus unassigned rows."""
        scope = self.filter_departments(principal)
        if scope is None:
            return query
        return query.where(or_(column.in_(scope), column.is_(None)))


department_guard = DepartmentScopeGuard()
