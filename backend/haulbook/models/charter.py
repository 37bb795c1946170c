"""
Charter (on-demand trip) request models.
"""
from sqlalchemy import (
    Column, String, Boolean, Integer, Numeric, Date, Text, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel


class CharterRequest(BaseModel):
    """A single priced trip from a center to one or more regions."""
    __tablename__ = "charter_requests"

    loading_point_id = Column(Integer, ForeignKey("loading_points.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    vehicle_type = Column(String(20), nullable=False)
    vehicle_ton = Column(Numeric(5, 2), nullable=False)
    stops = Column(Integer, nullable=False, default=1)

    # Pricing (KRW)
    is_negotiated = Column(Boolean, default=False, nullable=False)
    negotiated_fare = Column(Integer, nullable=True)
    base_fare = Column(Integer, nullable=False, default=0)
    region_fare = Column(Integer, nullable=False, default=0)
    stop_fare = Column(Integer, nullable=False, default=0)
    extra_fare = Column(Integer, nullable=False, default=0)
    total_fare = Column(Integer, nullable=False, default=0)
    is_estimated = Column(Boolean, default=False, nullable=False)  # priced by fallback, not a rate row

    # Assignment
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    driver_fare = Column(Integer, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    loading_point = relationship("LoadingPoint", back_populates="charters")
    driver = relationship("Driver", back_populates="charters")
    destinations = relationship(
        "CharterDestination",
        back_populates="charter",
        cascade="all, delete-orphan",
        order_by="CharterDestination.order",
    )

    @property
    def regions(self):
        return [d.region for d in self.destinations]


class CharterDestination(BaseModel):
    """Ordered drop-off region of a charter (order starts at 1)."""
    __tablename__ = "charter_destinations"
    __table_args__ = (
        UniqueConstraint("charter_id", "order", name="uq_charter_destination_order"),
    )

    charter_id = Column(Integer, ForeignKey("charter_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    region = Column(String(50), nullable=False)
    order = Column(Integer, nullable=False)

    # Relationships
    charter = relationship("CharterRequest", back_populates="destinations")
