"""
Identity and credential store.

Creates principals, resolves them by email or employee number, manages roles,
permissions and credentials. Password hashing runs in the threadpool so the
event loop keeps serving other requests while bcrypt works.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from fleet_backend.app.core.access import Principal, enforce
from fleet_backend.app.core.clock import Clock
from fleet_backend.app.core.exceptions import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from fleet_backend.app.core.jwt import TokenService
from fleet_backend.app.core.permissions import merge_permissions
from fleet_backend.app.core.security import get_password_hash, verify_password
from fleet_backend.app.models.enums import UserRole, UserStatus
from fleet_backend.app.models.user import User
from fleet_backend.app.services.audit import log_event, log_admin_action, AuditAction

logger = logging.getLogger("fleet")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def find_by_email_or_employee_number(db: AsyncSession, identifier: str) -> Optional[User]:
    """Resolve a login identifier; email matching is case-insensitive."""
    identifier = identifier.strip()
    result = await db.execute(
        select(User).where(
            or_(User.email == identifier.lower(), User.employee_number == identifier)
        )
    )
    return result.scalars().first()


async def _ensure_unique(db: AsyncSession, email: str, employee_number: str, exclude_id: Optional[int] = None):
    query = select(User.email, User.employee_number).where(
        or_(User.email == email, User.employee_number == employee_number)
    )
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    for existing_email, existing_number in result.all():
        if existing_email == email:
            raise ConflictError("Email already registered", error_code="ERR_DUPLICATE_EMAIL", details={"email": email})
        if existing_number == employee_number:
            raise ConflictError(
                "Employee number already registered",
                error_code="ERR_DUPLICATE_EMPLOYEE_NUMBER",
                details={"employee_number": employee_number}
            )


def _ensure_can_grant(actor: Optional[Principal], role: UserRole, target: Optional[User] = None):
    """Only a super-admin may grant the super-admin role or modify a super-admin."""
    if actor is None or actor.is_super_admin:
        return
    if role == UserRole.SUPER_ADMIN or (target is not None and target.role == UserRole.SUPER_ADMIN):
        raise ForbiddenError(
            "Only a super-admin can grant or modify the super-admin role",
            reason="MissingCapability",
            details={"role": UserRole.SUPER_ADMIN.value}
        )


def _ensure_within_scope(
    actor: Optional[Principal],
    department_access: Optional[List[int]],
    subsidiary_access: Optional[List[int]],
):
    """
    A scope-restricted actor may only hand out access inside its own scope.

    An empty list means unrestricted, so it is refused as well.
    """
    if actor is None or actor.is_super_admin:
        return
    checks = (
        ("department_access", "DepartmentScope", department_access, actor.department_access),
        ("subsidiary_access", "SubsidiaryScope", subsidiary_access, actor.subsidiary_access),
    )
    for field, reason, granted, own in checks:
        if granted is None or not own:
            continue
        outside = sorted(set(granted) - own)
        if not granted or outside:
            raise ForbiddenError(
                f"Cannot grant {field} beyond your own scope",
                reason=reason,
                details={"field": field, "outside": outside}
            )


async def set_credential(user: User, plaintext: str, clock: Clock) -> User:
    """
    Store a new password hash and stamp credential_changed_at.

    The stamp is truncated to the millisecond to line up with the token
    `iat_ms` claim; tokens issued before it are rejected as stale.
    """
    user.hashed_password = await run_in_threadpool(get_password_hash, plaintext)
    now = clock.now()
    user.credential_changed_at = now.replace(microsecond=now.microsecond // 1000 * 1000)
    return user


async def verify_credential(user: User, plaintext: str) -> bool:
    if not user.hashed_password:
        return False
    return await run_in_threadpool(verify_password, plaintext, user.hashed_password)


async def create_principal(
    db: AsyncSession,
    fields: Dict[str, Any],
    clock: Clock,
    password: Optional[str] = None,
    role: UserRole = UserRole.USER,
    permission_overrides: Optional[Dict[str, bool]] = None,
    actor: Optional[Principal] = None,
) -> User:
    """
    Create a user with role defaults merged with any permission overrides.

    Raises:
        ConflictError: duplicate email or employee number, or another
            constraint violation (ERR_INTEGRITY, cause in details)
        ForbiddenError: non-super-admin granting super-admin, or access
            granted beyond the actor's own scope
    """
    _ensure_can_grant(actor, role)
    if actor is not None:
        enforce(actor, department=fields.get("department_id"))
        _ensure_within_scope(actor, fields.get("department_access") or [], fields.get("subsidiary_access") or [])

    fields = dict(fields)
    fields["email"] = normalize_email(fields["email"])
    fields["employee_number"] = fields["employee_number"].strip()
    fields["department_access"] = list(fields.get("department_access") or [])
    fields["subsidiary_access"] = list(fields.get("subsidiary_access") or [])

    await _ensure_unique(db, fields["email"], fields["employee_number"])

    user = User(
        **fields,
        role=role,
        permissions=merge_permissions(role, permission_overrides),
    )
    if password:
        await set_credential(user, password, clock)

    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        # A concurrent insert with the same email/number surfaces as the duplicate
        await _ensure_unique(db, fields["email"], fields["employee_number"])
        raise ConflictError(
            "User violates a database constraint",
            error_code="ERR_INTEGRITY",
            details={"cause": str(exc.orig)}
        )

    if actor is not None:
        await log_admin_action(
            db=db,
            admin_id=actor.id,
            admin_email=actor.email,
            action=AuditAction.USER_CREATED,
            target_user_id=user.id,
            target_email=user.email,
            metadata={"role": role.value}
        )

    logger.info("User created", extra={"user_id": user.id, "role": role.value})
    return user


async def register(db: AsyncSession, fields: Dict[str, Any], password: str, clock: Clock) -> User:
    """Self-registration: always role `user` with its default permissions."""
    fields = dict(fields)
    fields.pop("role", None)
    fields.pop("permissions", None)
    user = await create_principal(db, fields, clock, password=password, role=UserRole.USER)
    await log_event(
        db=db,
        action=AuditAction.USER_REGISTERED,
        actor_id=user.id,
        actor_email=user.email,
        target_user_id=user.id,
        target_email=user.email,
    )
    return user


async def batch_create_principals(
    db: AsyncSession,
    items: List[Dict[str, Any]],
    clock: Clock,
    actor: Principal,
) -> List[Dict[str, Any]]:
    """
    Create several users, committing each one on its own.

    A failing item is rolled back and reported; it never affects the others.

    Returns:
        One result per input item: {index, success, id | error_code, message}
    """
    results = []
    for index, item in enumerate(items):
        item = dict(item)
        password = item.pop("password", None)
        role = UserRole(item.pop("role", UserRole.USER))
        overrides = item.pop("permissions", None)
        try:
            user = await create_principal(
                db, item, clock, password=password, role=role,
                permission_overrides=overrides, actor=actor
            )
            await db.commit()
            results.append({"index": index, "success": True, "id": user.id, "email": user.email})
        except (ConflictError, ForbiddenError, ValidationError) as exc:
            await db.rollback()
            results.append({
                "index": index,
                "success": False,
                "email": item.get("email"),
                "error_code": exc.error_code,
                "message": exc.message,
            })
    return results


async def update_role_and_permissions(
    db: AsyncSession,
    user: User,
    actor: Principal,
    role: Optional[UserRole] = None,
    permission_overrides: Optional[Dict[str, bool]] = None,
    department_access: Optional[List[int]] = None,
    subsidiary_access: Optional[List[int]] = None,
) -> User:
    """
    Change a user's role and recompute permissions.

    Final permissions = defaults of the (new) role overlaid by the overrides.
    """
    new_role = role or user.role
    _ensure_can_grant(actor, new_role, target=user)
    _ensure_within_scope(actor, department_access, subsidiary_access)

    previous_role = user.role
    user.role = new_role
    user.permissions = merge_permissions(new_role, permission_overrides)
    if department_access is not None:
        user.department_access = list(department_access)
    if subsidiary_access is not None:
        user.subsidiary_access = list(subsidiary_access)
    await db.flush()

    await log_admin_action(
        db=db,
        admin_id=actor.id,
        admin_email=actor.email,
        action=AuditAction.ROLE_CHANGED,
        target_user_id=user.id,
        target_email=user.email,
        metadata={
            "from_role": previous_role.value,
            "to_role": new_role.value,
            "overrides": permission_overrides or {},
        }
    )
    return user


async def set_status(db: AsyncSession, user: User, status: UserStatus, actor: Principal) -> User:
    """Activate, deactivate or suspend an account. Existing tokens stop working for non-active accounts."""
    _ensure_can_grant(actor, user.role, target=user)
    if user.id == actor.id and status != UserStatus.ACTIVE:
        raise ValidationError("You cannot deactivate your own account", error_code="ERR_SELF_DEACTIVATION")

    previous = user.status
    user.status = status
    await db.flush()

    await log_admin_action(
        db=db,
        admin_id=actor.id,
        admin_email=actor.email,
        action=AuditAction.STATUS_CHANGED,
        target_user_id=user.id,
        target_email=user.email,
        metadata={"from": previous.value, "to": status.value}
    )
    return user


async def update_profile(
    db: AsyncSession,
    user: User,
    fields: Dict[str, Any],
    actor: Optional[Principal] = None,
) -> User:
    """
    Apply profile changes (names, phone, grade, licence, department).

    Without an actor the user is editing their own profile. A super-admin
    profile can only be edited by a super-admin.
    """
    _ensure_can_grant(actor, user.role, target=user)

    if "email" in fields and fields["email"] is not None:
        fields["email"] = normalize_email(fields["email"])
        await _ensure_unique(db, fields["email"], user.employee_number, exclude_id=user.id)
    if "employee_number" in fields and fields["employee_number"] is not None:
        await _ensure_unique(db, user.email, fields["employee_number"], exclude_id=user.id)

    for key, value in fields.items():
        setattr(user, key, value)
    await db.flush()

    await log_event(
        db=db,
        action=AuditAction.USER_UPDATED,
        actor_id=actor.id if actor is not None else user.id,
        actor_email=actor.email if actor is not None else user.email,
        target_user_id=user.id,
        target_email=user.email,
        metadata={"fields": sorted(fields)}
    )
    return user


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
    clock: Clock,
) -> User:
    """
    Replace the password after checking the current one.

    Every token issued before this call becomes stale.

    Raises:
        AuthError: current password is wrong
    """
    if not await verify_credential(user, current_password):
        raise AuthError("Your current password is wrong", reason="InvalidCredentials")

    await set_credential(user, new_password, clock)
    await db.flush()

    await log_event(
        db=db,
        action=AuditAction.PASSWORD_CHANGED,
        actor_id=user.id,
        actor_email=user.email,
        target_user_id=user.id,
        target_email=user.email,
    )
    return user


async def delete_principal(db: AsyncSession, user: User, actor: Principal) -> None:
    """Hard-delete a user. Historical records keep the id as a snapshot (set to NULL by the FK)."""
    _ensure_can_grant(actor, user.role, target=user)
    if user.id == actor.id:
        raise ValidationError("You cannot delete your own account", error_code="ERR_SELF_DELETION")

    await log_admin_action(
        db=db,
        admin_id=actor.id,
        admin_email=actor.email,
        action=AuditAction.USER_DELETED,
        target_user_id=user.id,
        target_email=user.email,
    )
    await db.delete(user)
    await db.flush()


async def authenticate(
    db: AsyncSession,
    identifier: str,
    password: str,
    tokens: TokenService,
    clock: Clock,
) -> Tuple[str, User]:
    """
    Check credentials and issue a session token.

    The password is checked before the account status so an inactive account
    is not revealed to someone without its password.

    Raises:
        AuthError: unknown user, wrong password, no credential, or
            account not Active (reason InactiveAccount)
    """
    user = await find_by_email_or_employee_number(db, identifier)
    if user is None or not await verify_credential(user, password):
        raise AuthError("Invalid email or password", reason="InvalidCredentials")

    if user.status != UserStatus.ACTIVE:
        raise AuthError("Account is not active", reason="InactiveAccount")

    user.last_login = clock.now()
    await db.flush()
    return tokens.issue(user.id), user
