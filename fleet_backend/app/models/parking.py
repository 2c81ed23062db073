"""
Parking record database model.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, Float, ForeignKey, DateTime, Numeric, Enum
from sqlalchemy.sql import func
from fleet_backend.app.core.clock import as_utc
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.ledger_enums import ParkingType, PaymentStatus


class ParkingRecord(Base):
    """
    Parking session for a vehicle or a shuttle.

    duration_hours is derived from start_time and end_time (None while the
    session is still open).
    """
    __tablename__ = "parking_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="SET NULL"), nullable=True, index=True)
    shuttle_id = Column(Integer, ForeignKey('shuttles.id', ondelete="SET NULL"), nullable=True, index=True)

    location = Column(String(255), nullable=False)
    parking_type = Column(Enum(ParkingType, name="parking_type", values_callable=enum_values), default=ParkingType.DAILY, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    duration_hours = Column(Float, nullable=True)

    cost_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="USD")
    payment_status = Column(Enum(PaymentStatus, name="payment_status", values_callable=enum_values), default=PaymentStatus.PENDING, nullable=False)

    department_id = Column(Integer, ForeignKey('departments.id', ondelete="SET NULL"), nullable=True, index=True)
    recorded_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def recompute_duration(self):
        if self.start_time is None or self.end_time is None:
            self.duration_hours = None
            return
        elapsed = as_utc(self.end_time) - as_utc(self.start_time)
        self.duration_hours = round(elapsed.total_seconds() / 3600, 2)

    def __repr__(self):
        return f"<ParkingRecord(id={self.id}, location='{self.location}', duration_hours={self.duration_hours})>"
