"""
Access decision engine.

`authorize` is a pure function over a Principal snapshot. It is evaluated in
this order:

1. status != Active          -> deny InactiveAccount
2. role == super-admin       -> allow
3. capability not granted    -> deny MissingCapability
4. department out of scope   -> deny DepartmentScope
5. otherwise                 -> allow
"""

from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional
from types import MappingProxyType
from fleet_backend.app.core.exceptions import AuthError, ForbiddenError
from fleet_backend.app.models.enums import UserRole, UserStatus


class DenyReason:
    INACTIVE_ACCOUNT = "InactiveAccount"
    MISSING_CAPABILITY = "MissingCapability"
    DEPARTMENT_SCOPE = "DepartmentScope"


@dataclass(frozen=True)
class Principal:
    """Immutable snapshot of the authenticated user."""
    id: int
    email: str
    role: UserRole
    status: UserStatus
    permissions: Mapping[str, bool]
    department_access: FrozenSet[int] = frozenset()
    subsidiary_access: FrozenSet[int] = frozenset()
    department_id: Optional[int] = None

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            id=user.id,
            email=user.email,
            role=UserRole(user.role),
            status=UserStatus(user.status),
            permissions=MappingProxyType(dict(user.permissions or {})),
            department_access=frozenset(user.department_access or []),
            subsidiary_access=frozenset(user.subsidiary_access or []),
            department_id=user.department_id,
        )

    @property
    def is_super_admin(self) -> bool:
        return self.role is UserRole.SUPER_ADMIN

    @property
    def is_department_restricted(self) -> bool:
        return bool(self.department_access) and not self.is_super_admin


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


def authorize(principal: Principal, capability: Optional[str] = None, department: Optional[int] = None) -> Decision:
    """Decide whether the principal may use `capability` against `department`."""
    if principal.status is not UserStatus.ACTIVE:
        return Decision(False, DenyReason.INACTIVE_ACCOUNT)

    if principal.is_super_admin:
        return ALLOW

    if capability is not None and principal.permissions.get(capability) is not True:
        return Decision(False, DenyReason.MISSING_CAPABILITY)

    if department is not None and principal.department_access and department not in principal.department_access:
        return Decision(False, DenyReason.DEPARTMENT_SCOPE)

    return ALLOW


def enforce(principal: Principal, capability: Optional[str] = None, department: Optional[int] = None) -> Principal:
    """
    Run authorize() and raise on deny.

    Raises:
        AuthError: account is not active
        ForbiddenError: capability missing or department out of scope
    """
    decision = authorize(principal, capability, department)
    if decision.allowed:
        return principal

    if decision.reason == DenyReason.INACTIVE_ACCOUNT:
        raise AuthError("Account is not active", reason=DenyReason.INACTIVE_ACCOUNT)

    if decision.reason == DenyReason.MISSING_CAPABILITY:
        raise ForbiddenError(
            f"Access denied. Required permission: {capability}",
            reason=DenyReason.MISSING_CAPABILITY,
            details={"capability": capability},
        )

    raise ForbiddenError(
        "Access denied. Department is outside your scope",
        reason=DenyReason.DEPARTMENT_SCOPE,
        details={"department_id": department},
    )
