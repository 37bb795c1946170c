"""
Monthly driver settlement models.
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text, Boolean, ForeignKey,
    Enum as SQLEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from haulbook.db.base import BaseModel
import enum


class SettlementStatus(str, enum.Enum):
    """DRAFT is recalculable; CONFIRMED is locked; PAID is terminal."""
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"


class SettlementItemType(str, enum.Enum):
    """Line item kind."""
    TRIP = "TRIP"
    ADDITION = "ADDITION"
    DEDUCTION = "DEDUCTION"


class Settlement(BaseModel):
    """One settlement per driver per month."""
    __tablename__ = "settlements"
    __table_args__ = (
        UniqueConstraint("driver_id", "year_month", name="uq_settlement_driver_year_month"),
    )

    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    year_month = Column(String(7), nullable=False, index=True)  # YYYY-MM
    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.DRAFT, nullable=False, index=True)

    total_trips = Column(Integer, nullable=False, default=0)
    total_base_fare = Column(Numeric(15, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(15, 2), nullable=False, default=0)
    total_additions = Column(Numeric(15, 2), nullable=False, default=0)
    final_amount = Column(Numeric(15, 2), nullable=False, default=0)
    remarks = Column(Text, nullable=True)

    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    driver = relationship("Driver", back_populates="settlements")
    confirmer = relationship("User", foreign_keys=[confirmed_by])
    items = relationship(
        "SettlementItem",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementItem.date",
    )


class SettlementItem(BaseModel):
    """Per-trip or per-adjustment amount belonging to a settlement."""
    __tablename__ = "settlement_items"

    settlement_id = Column(Integer, ForeignKey("settlements.id", ondelete="CASCADE"), nullable=False, index=True)
    charter_id = Column(Integer, ForeignKey("charter_requests.id", ondelete="SET NULL"), nullable=True)
    type = Column(SQLEnum(SettlementItemType), nullable=False)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    date = Column(Date, nullable=False)
    is_manual = Column(Boolean, default=False, nullable=False)  # survives recalculation

    # Relationships
    settlement = relationship("Settlement", back_populates="items")
