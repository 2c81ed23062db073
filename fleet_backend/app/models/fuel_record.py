"""
Fuel record database model.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, Float, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.vehicle_enums import FuelType
from fleet_backend.app.models.ledger_enums import FuelingType


class FuelRecord(Base):
    """
    Fuel purchase for a vehicle.

    total_cost is derived: fuel_amount * cost_per_unit. Call recompute_total()
    whenever either factor changes.
    """
    __tablename__ = "fuel_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="SET NULL"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True, index=True)

    fueling_date = Column(DateTime(timezone=True), nullable=False, index=True)
    odometer_reading = Column(Integer, nullable=False)
    fuel_amount = Column(Float, nullable=False)
    fuel_type = Column(Enum(FuelType, name="fuel_type", values_callable=enum_values), nullable=False)
    cost_per_unit = Column(Float, nullable=False)
    total_cost = Column(Float, nullable=False)

    fueling_location = Column(String(255), nullable=True)
    fuel_card_number = Column(String(100), nullable=True)
    receipt_number = Column(String(100), nullable=True)
    fueling_type = Column(Enum(FuelingType, name="fueling_type", values_callable=enum_values), default=FuelingType.ROUTINE, nullable=False)
    notes = Column(Text, nullable=True)

    department_id = Column(Integer, ForeignKey('departments.id', ondelete="SET NULL"), nullable=True, index=True)
    recorded_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)

    # Verification
    is_verified = Column(Boolean, default=False, nullable=False)
    verified_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def recompute_total(self):
        self.total_cost = self.fuel_amount * self.cost_per_unit

    def __repr__(self):
        return f"<FuelRecord(id={self.id}, vehicle_id={self.vehicle_id}, total_cost={self.total_cost})>"
