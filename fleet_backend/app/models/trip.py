"""
Trip (driver booking) database model.

A trip books a driver and a vehicle for a passenger run. Status changes go
through services.trip_lifecycle, which keeps the vehicle status in step.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Numeric, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    A vehicle may hold at most one trip in an active status
    (scheduled, in-progress or delayed) at a time.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Assignment
    driver_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="SET NULL"), nullable=True, index=True)
    department_id = Column(Integer, ForeignKey('departments.id', ondelete="SET NULL"), nullable=True, index=True)

    # Passenger and route
    passenger_name = Column(String(200), nullable=False)
    passenger_contact = Column(String(100), nullable=True)
    pickup_location = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    purpose = Column(String(500), nullable=True)

    # Schedule
    scheduled_pickup_time = Column(DateTime(timezone=True), nullable=False)
    scheduled_return_time = Column(DateTime(timezone=True), nullable=True)
    actual_pickup_time = Column(DateTime(timezone=True), nullable=True)
    actual_return_time = Column(DateTime(timezone=True), nullable=True)

    # Status
    status = Column(Enum(TripStatus, name="trip_status", values_callable=enum_values), default=TripStatus.SCHEDULED, nullable=False, index=True)
    cancellation_reason = Column(Text, nullable=True)

    # Cost
    estimated_cost = Column(Numeric(12, 2), nullable=True)
    actual_cost = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Trip(id={self.id}, vehicle_id={self.vehicle_id}, driver_id={self.driver_id}, status='{self.status.value}')>"
