"""
Cost record database model.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Numeric
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class CostRecord(Base):
    """Operating cost booked against a department."""
    __tablename__ = "cost_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    incurred_date = Column(DateTime(timezone=True), nullable=False)
    reference = Column(String(100), nullable=True)

    department_id = Column(Integer, ForeignKey('departments.id', ondelete="SET NULL"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="SET NULL"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)

    recorded_by_id = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<CostRecord(id={self.id}, category='{self.category}', amount={self.amount})>"
