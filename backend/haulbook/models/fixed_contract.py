"""
Fixed contract model for recurring routes.
"""
from sqlalchemy import (
    Column, String, Boolean, Integer, Date, Text, JSON, ForeignKey, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel
import enum


class ContractType(str, enum.Enum):
    """How a fixed route is paid (center side) or paid out (driver side)."""
    FIXED_DAILY = "FIXED_DAILY"
    FIXED_MONTHLY = "FIXED_MONTHLY"
    CONSIGNED_MONTHLY = "CONSIGNED_MONTHLY"
    CHARTER_PER_RIDE = "CHARTER_PER_RIDE"


class FixedContract(BaseModel):
    """Recurring route run for a center on fixed weekdays."""
    __tablename__ = "fixed_contracts"

    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    loading_point_id = Column(Integer, ForeignKey("loading_points.id"), nullable=False, index=True)
    route_name = Column(String(100), nullable=False)
    center_contract_type = Column(SQLEnum(ContractType), nullable=False)
    driver_contract_type = Column(SQLEnum(ContractType), nullable=True)
    center_amount = Column(Integer, nullable=False, default=0)
    driver_amount = Column(Integer, nullable=True)
    operating_days = Column(JSON, nullable=False, default=list)  # 0=Sun .. 6=Sat
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    special_conditions = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    driver = relationship("Driver", back_populates="fixed_contracts")
    loading_point = relationship("LoadingPoint", back_populates="fixed_contracts")
