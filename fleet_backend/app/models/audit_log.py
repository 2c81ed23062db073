"""
Audit Log Database Model.

Tracks security-critical events, admin actions and lifecycle changes.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking security events and admin actions.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED
    - USER_CREATED / USER_DELETED / ROLE_CHANGED / STATUS_CHANGED / PASSWORD_CHANGED
    - VEHICLE_ASSIGNED / VEHICLE_RETIRED / ...
    - TRIP_CREATED / TRIP_STATUS_CHANGED / TRIP_REASSIGNED / TRIP_CANCELLED
    - MAINTENANCE_* / FUNDS_DEDUCTED / FUEL_VERIFIED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions). Plain ids, not foreign
    # keys: entries outlive deleted users.
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Who was the target of the action (for user management actions)
    target_user_id = Column(Integer, index=True, nullable=True)
    target_email = Column(String(255), nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # IP address for login tracking
    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, target={self.target_email})>"
