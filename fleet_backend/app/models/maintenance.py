"""
Maintenance record database model.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Date, Numeric, Enum, JSON
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.trip_enums import MaintenanceType, MaintenanceStatus


class MaintenanceRecord(Base):
    """
    Maintenance record for a vehicle.

    While a repair or accident-repair record is scheduled or in progress the
    vehicle it references is held in MAINTENANCE status.
    """
    __tablename__ = "maintenance_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="SET NULL"), nullable=True, index=True)
    maintenance_type = Column(Enum(MaintenanceType, name="maintenance_type", values_callable=enum_values), nullable=False)
    description = Column(Text, nullable=False)

    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    completed_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(MaintenanceStatus, name="maintenance_status", values_callable=enum_values),
        default=MaintenanceStatus.SCHEDULED,
        nullable=False,
        index=True,
    )

    cost = Column(Numeric(12, 2), nullable=False, default=0)
    service_provider = Column(String(200), nullable=True)
    mileage = Column(Integer, nullable=True)
    parts_replaced = Column(JSON, nullable=False, default=list)  # [{name, part_number, cost}]
    next_service_due = Column(Date, nullable=True)

    department_id = Column(Integer, ForeignKey('departments.id', ondelete="SET NULL"), nullable=True, index=True)
    performed_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<MaintenanceRecord(id={self.id}, vehicle_id={self.vehicle_id}, type='{self.maintenance_type.value}', status='{self.status.value}')>"
