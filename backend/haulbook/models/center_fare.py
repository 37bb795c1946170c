"""
Center fare model: the per-center rate table used to price charters.
"""
from sqlalchemy import (
    Column, String, Boolean, Integer, ForeignKey, Enum as SQLEnum,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel
import enum


class FareType(str, enum.Enum):
    """BASIC rows price a region; STOP_FEE rows price extra stops/regions."""
    BASIC = "BASIC"
    STOP_FEE = "STOP_FEE"


class CenterFare(BaseModel):
    """
    One rate row for (center, vehicle type, region, fare type).

    BASIC rows always name a region and carry base_fare.
    STOP_FEE rows never name a region and carry extra_stop_fee/extra_region_fee.
    """
    __tablename__ = "center_fares"
    __table_args__ = (
        UniqueConstraint(
            "loading_point_id", "vehicle_type", "region", "fare_type",
            name="uq_center_vehicle_region_type",
        ),
        CheckConstraint(
            "(fare_type = 'BASIC' AND region IS NOT NULL) OR "
            "(fare_type = 'STOP_FEE' AND region IS NULL)",
            name="ck_center_fare_region_by_type",
        ),
    )

    loading_point_id = Column(Integer, ForeignKey("loading_points.id"), nullable=False, index=True)
    vehicle_type = Column(String(20), nullable=False, index=True)
    region = Column(String(50), nullable=True, index=True)
    fare_type = Column(SQLEnum(FareType), nullable=False)
    base_fare = Column(Integer, nullable=True)
    extra_stop_fee = Column(Integer, nullable=True)
    extra_region_fee = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    loading_point = relationship("LoadingPoint", back_populates="center_fares")

    @property
    def center_name(self) -> str:
        return self.loading_point.center_name if self.loading_point else ""
