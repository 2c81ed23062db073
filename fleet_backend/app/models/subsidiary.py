"""
Subsidiary database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import enum_values
from fleet_backend.app.models.ledger_enums import SubsidiaryStatus


class Subsidiary(Base):
    """A company within the group; departments belong to a subsidiary."""
    __tablename__ = "subsidiaries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, index=True, nullable=False)
    address = Column(String(500), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    status = Column(Enum(SubsidiaryStatus, name="subsidiary_status", values_callable=enum_values), default=SubsidiaryStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Subsidiary(id={self.id}, code='{self.code}', name='{self.name}')>"
