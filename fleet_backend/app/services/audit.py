"""
Audit logging service for tracking security events, admin actions and
lifecycle changes.

Entries are added to the caller's session and flushed; they commit (or roll
back) together with the change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from fleet_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"

    # User management
    USER_CREATED = "USER_CREATED"
    USER_REGISTERED = "USER_REGISTERED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    ROLE_CHANGED = "ROLE_CHANGED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"

    # Vehicle overrides
    VEHICLE_CREATED = "VEHICLE_CREATED"
    VEHICLE_ASSIGNED = "VEHICLE_ASSIGNED"
    VEHICLE_UNASSIGNED = "VEHICLE_UNASSIGNED"
    VEHICLE_RETIRED = "VEHICLE_RETIRED"
    VEHICLE_REACTIVATED = "VEHICLE_REACTIVATED"

    # Trips
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_STATUS_CHANGED = "TRIP_STATUS_CHANGED"
    TRIP_REASSIGNED = "TRIP_REASSIGNED"
    TRIP_CANCELLED = "TRIP_CANCELLED"

    # Maintenance
    MAINTENANCE_SCHEDULED = "MAINTENANCE_SCHEDULED"
    MAINTENANCE_STARTED = "MAINTENANCE_STARTED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    MAINTENANCE_CANCELLED = "MAINTENANCE_CANCELLED"

    # Funds and ledgers
    BUDGET_SET = "BUDGET_SET"
    FUNDS_DEDUCTED = "FUNDS_DEDUCTED"
    FUEL_VERIFIED = "FUEL_VERIFIED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_email: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_email: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log a security, admin or lifecycle event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_email: Email of actor
        target_user_id: ID of user being acted upon (if applicable)
        target_email: Email of target
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Pending AuditLog instance (committed by the caller)
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_email=actor_email,
        action=action,
        target_user_id=target_user_id,
        target_email=target_email,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def log_admin_action(
    db: AsyncSession,
    admin_id: int,
    admin_email: str,
    action: str,
    target_user_id: int,
    target_email: str,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an admin action against another user (create, role change, delete, ...)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=admin_id,
        actor_email=admin_email,
        target_user_id=target_user_id,
        target_email=target_email,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    email: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an authentication event (login success/failure).

    Args:
        db: Database session
        action: AuditAction.LOGIN_SUCCESS or AuditAction.LOGIN_FAILED
        user_id: ID of user attempting login
        email: Email attempting login
        ip_address: IP address of login attempt
        metadata: Additional context (e.g., failure reason)
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_email=email,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_user_id:
        query = query.where(AuditLog.target_user_id == target_user_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


async def get_user_audit_history(
    db: AsyncSession,
    user_id: int,
    limit: int = 50
) -> list[AuditLog]:
    """Audit entries where the user was either actor or target."""
    query = select(AuditLog).where(
        (AuditLog.actor_id == user_id) | (AuditLog.target_user_id == user_id)
    ).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
