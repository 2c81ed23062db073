"""
Vehicle database model.

Status changes go through services.vehicle_lifecycle, never direct assignment.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Enum, ForeignKey
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.vehicle_enums import VehicleStatus, VehicleType, FuelType


class Vehicle(Base):
    """
    Fleet vehicle.

    Lifecycle:
    - Created as AVAILABLE
    - AVAILABLE <-> IN_USE (trip booked / trip finished, or admin assign)
    - AVAILABLE <-> MAINTENANCE (repair scheduled / repair closed)
    - any -> OUT_OF_SERVICE (retire), OUT_OF_SERVICE -> AVAILABLE (reactivate)
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    registration = Column(String(50), unique=True, index=True, nullable=False)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(50), nullable=True)
    vehicle_type = Column(Enum(VehicleType, name="vehicle_type", values_callable=enum_values), nullable=False)
    fuel_type = Column(Enum(FuelType, name="fuel_type", values_callable=enum_values), nullable=False)
    status = Column(
        Enum(VehicleStatus, name="vehicle_status", values_callable=enum_values),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
        index=True,
    )

    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), index=True, nullable=True)
    current_location = Column(String(255), nullable=True)

    # Service and compliance dates
    last_service_date = Column(Date, nullable=True)
    next_service_due = Column(Date, nullable=True)
    insurance_expiry = Column(Date, nullable=True)
    mileage = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Vehicle(id={self.id}, registration='{self.registration}', status='{self.status.value}')>"
