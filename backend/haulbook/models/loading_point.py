"""
Loading point (center) model.
"""
from sqlalchemy import Column, String, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel


class LoadingPoint(BaseModel):
    """A pickup location belonging to a center; centers own their fare tables."""
    __tablename__ = "loading_points"
    __table_args__ = (
        UniqueConstraint("center_name", "loading_point_name", name="uq_center_loading_point"),
    )

    center_name = Column(String(100), nullable=False, index=True)
    loading_point_name = Column(String(100), nullable=False)
    lot_address = Column(String(200), nullable=True)
    road_address = Column(String(200), nullable=True)
    manager1 = Column(String(50), nullable=True)
    phone1 = Column(String(20), nullable=True)
    manager2 = Column(String(50), nullable=True)
    phone2 = Column(String(20), nullable=True)
    remarks = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    center_fares = relationship("CenterFare", back_populates="loading_point", cascade="all, delete-orphan")
    charters = relationship("CharterRequest", back_populates="loading_point")
    fixed_contracts = relationship("FixedContract", back_populates="loading_point")
