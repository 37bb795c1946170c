"""
Vehicle model.
"""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel
import enum


class VehicleOwnership(str, enum.Enum):
    """Who owns the truck."""
    OWNED = "OWNED"
    LEASED = "LEASED"
    CONTRACTED = "CONTRACTED"


class Vehicle(BaseModel):
    """Truck registered with the company, optionally assigned to a driver."""
    __tablename__ = "vehicles"

    plate_number = Column(String(20), unique=True, nullable=False, index=True)
    vehicle_type = Column(String(50), nullable=False, index=True)
    ownership = Column(SQLEnum(VehicleOwnership), default=VehicleOwnership.OWNED, nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    year = Column(Integer, nullable=True)
    capacity = Column(Numeric(6, 2), nullable=True)  # tons
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    driver = relationship("Driver", back_populates="vehicles")
