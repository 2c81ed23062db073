"""
Accident record database model.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class AccidentRecord(Base):
    """Accident report tied to a trip, vehicle and driver."""
    __tablename__ = "accident_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="SET NULL"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="SET NULL"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True, index=True)

    accident_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    damage = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="reported")

    reported_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AccidentRecord(id={self.id}, vehicle_id={self.vehicle_id}, status='{self.status}')>"
