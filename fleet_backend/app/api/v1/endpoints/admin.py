"""
Admin API Endpoints.

Dashboard overview, system statistics and the audit trail.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from fleet_backend.app.db.session import get_db
from fleet_backend.app.schemas.admin import AuditTrailResponse, AuditLogResponse, DashboardOverview, SystemStats
from fleet_backend.app.core.access import Principal
from fleet_backend.app.core.clock import Clock, get_clock
from fleet_backend.app.core.guards import require_capability
from fleet_backend.app.core.permissions import Capability
from fleet_backend.app.services.analytics import AnalyticsService
from fleet_backend.app.services.audit import get_audit_trail, get_user_audit_history as get_history

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard", response_model=DashboardOverview)
async def get_dashboard(
    principal: Principal = Depends(require_capability(Capability.DASHBOARD)),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """
    Fleet at a glance for the caller's departments.

    Includes vehicles due for service within 7 days and insurance expiring
    within 30 days.
    """
    return await AnalyticsService.get_dashboard_overview(db, principal, clock)


@router.get("/statistics", response_model=SystemStats)
async def get_statistics(
    principal: Principal = Depends(require_capability(Capability.ANALYTICS)),
    db: AsyncSession = Depends(get_db)
):
    return await AnalyticsService.get_system_stats(db)


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: int = Query(None, description="Filter by target user ID"),
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    principal: Principal = Depends(require_capability(Capability.USER_MANAGEMENT)),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering.

    Returns recent audit logs for security monitoring and compliance.
    """
    logs = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )


@router.get("/users/{user_id}/audit-history", response_model=AuditTrailResponse)
async def get_user_audit_history(
    user_id: int,
    limit: int = Query(50, ge=1, le=500),
    principal: Principal = Depends(require_capability(Capability.USER_MANAGEMENT)),
    db: AsyncSession = Depends(get_db)
):
    """All actions performed by or on the user."""
    logs = await get_history(db=db, user_id=user_id, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
