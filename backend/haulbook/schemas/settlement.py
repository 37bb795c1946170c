"""
Pydantic schemas for monthly driver settlements.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, date as dt_date
from decimal import Decimal
from haulbook.core.utils import YEAR_MONTH_PATTERN
from haulbook.models.settlement import SettlementItemType, SettlementStatus
from haulbook.schemas.driver import DriverSummary


def _check_year_month(v: str) -> str:
    if not YEAR_MONTH_PATTERN.match(v or ""):
        raise ValueError("year_month must be in YYYY-MM format")
    return v


class SettlementRequest(BaseModel):
    """Driver and month to calculate, create or finalize."""
    driver_id: int
    year_month: str
    remarks: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("year_month")
    @classmethod
    def check_year_month(cls, v):
        return _check_year_month(v)


class SettlementBulkRequest(BaseModel):
    driver_ids: List[int] = Field(min_length=1)
    year_month: str

    @field_validator("year_month")
    @classmethod
    def check_year_month(cls, v):
        return _check_year_month(v)


class ManualItemCreate(BaseModel):
    """Manual adjustment added to a DRAFT settlement."""
    type: SettlementItemType
    description: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(ge=0)
    date: Optional[dt_date] = None

    @field_validator("type")
    @classmethod
    def no_manual_trips(cls, v):
        if v == SettlementItemType.TRIP:
            raise ValueError("Manual items must be ADDITION or DEDUCTION")
        return v


class SettlementItemData(BaseModel):
    """Computed or stored line item."""
    charter_id: Optional[int] = None
    type: SettlementItemType
    description: str
    amount: Decimal
    date: dt_date
    is_manual: bool = False

    class Config:
        from_attributes = True


class SettlementItemResponse(SettlementItemData):
    id: int


class SettlementCalculation(BaseModel):
    """Result of aggregating a driver's month; nothing is written."""
    driver_id: int
    driver_name: str
    year_month: str
    total_trips: int
    total_base_fare: Decimal
    total_additions: Decimal
    total_deductions: Decimal
    final_amount: Decimal
    items: List[SettlementItemData]


class SettlementPreview(SettlementCalculation):
    existing_status: Optional[SettlementStatus] = None
    warnings: List[str] = []
    can_confirm: bool


class SettlementResponse(BaseModel):
    """Schema for settlement response."""
    id: int
    driver_id: int
    driver: Optional[DriverSummary] = None
    year_month: str
    status: SettlementStatus
    total_trips: int
    total_base_fare: Decimal
    total_additions: Decimal
    total_deductions: Decimal
    final_amount: Decimal
    remarks: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[int] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SettlementDetail(SettlementResponse):
    items: List[SettlementItemResponse] = []


class SettlementBulkResult(BaseModel):
    success: int
    failed: int
    settlements: List[SettlementResponse] = []
    errors: List[dict] = []


class SettlementUpdate(BaseModel):
    remarks: Optional[str] = Field(default=None, max_length=1000)
