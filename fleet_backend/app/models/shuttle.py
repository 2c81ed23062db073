"""
Shuttle database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Enum, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.vehicle_enums import ShuttleStatus, FuelType


class Shuttle(Base):
    """Staff shuttle. Tracked separately from the bookable vehicle pool."""
    __tablename__ = "shuttles"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_shuttles_capacity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    registration = Column(String(50), unique=True, index=True, nullable=False)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    capacity = Column(Integer, nullable=False)
    fuel_type = Column(Enum(FuelType, name="fuel_type", values_callable=enum_values), nullable=True)
    status = Column(Enum(ShuttleStatus, name="shuttle_status", values_callable=enum_values), default=ShuttleStatus.ACTIVE, nullable=False)
    insurance_expiry = Column(Date, nullable=True)

    department_id = Column(Integer, ForeignKey('departments.id', ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Shuttle(id={self.id}, registration='{self.registration}', capacity={self.capacity})>"
