"""
Department database model.

Departments own a budget. `available_funds` only decreases through
deductions and can never go negative.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class Department(Base):
    """Department with allocated and available funds."""
    __tablename__ = "departments"
    __table_args__ = (
        CheckConstraint("available_funds >= 0", name="ck_departments_available_funds_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)

    # use_alter: users.department_id points back at this table
    head_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", use_alter=True), nullable=True)
    subsidiary_id = Column(Integer, ForeignKey("subsidiaries.id", ondelete="SET NULL"), index=True, nullable=True)

    # Budget
    allocated_funds = Column(Numeric(14, 2), nullable=False, default=0)
    available_funds = Column(Numeric(14, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Department(id={self.id}, name='{self.name}', available_funds={self.available_funds})>"
