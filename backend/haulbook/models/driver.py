"""
Driver model.
"""
from sqlalchemy import Column, String, Boolean, Text
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel


class Driver(BaseModel):
    """Owner-operator driver. Phone and account numbers are stored as digits only."""
    __tablename__ = "drivers"

    name = Column(String(50), nullable=False, index=True)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    vehicle_number = Column(String(20), nullable=False)
    business_name = Column(String(100), nullable=True)
    representative = Column(String(50), nullable=True)
    business_number = Column(String(50), unique=True, nullable=True)
    bank_name = Column(String(50), nullable=True)
    account_number = Column(String(50), nullable=True)
    remarks = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    vehicles = relationship("Vehicle", back_populates="driver")
    charters = relationship("CharterRequest", back_populates="driver")
    fixed_contracts = relationship("FixedContract", back_populates="driver")
    settlements = relationship("Settlement", back_populates="driver")
