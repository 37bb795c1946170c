"""
Pydantic schemas for CenterFare entity and fare calculation.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from haulbook.core.utils import blank_to_none
from haulbook.models.center_fare import FareType


def check_region_matches_fare_type(fare_type: FareType, region: Optional[str], base_fare, extra_stop_fee, extra_region_fee):
    """BASIC rows need a region and a base fare; STOP_FEE rows must not name a region."""
    if fare_type == FareType.BASIC:
        if not region:
            raise ValueError("BASIC fare requires a region")
        if base_fare is None:
            raise ValueError("BASIC fare requires base_fare")
    elif fare_type == FareType.STOP_FEE:
        if region:
            raise ValueError("STOP_FEE fare must not have a region")
        if extra_stop_fee is None or extra_region_fee is None:
            raise ValueError("STOP_FEE fare requires extra_stop_fee and extra_region_fee")


class CenterFareCreate(BaseModel):
    """Schema for center fare creation (also used per row on import)."""
    loading_point_id: int
    vehicle_type: str = Field(min_length=1, max_length=20)
    region: Optional[str] = Field(default=None, max_length=50)
    fare_type: FareType
    base_fare: Optional[int] = Field(default=None, ge=0)
    extra_stop_fee: Optional[int] = Field(default=None, ge=0)
    extra_region_fee: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True

    @field_validator("region", mode="before")
    @classmethod
    def empty_region(cls, v):
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_fare_type(self):
        check_region_matches_fare_type(
            self.fare_type, self.region, self.base_fare, self.extra_stop_fee, self.extra_region_fee
        )
        return self


class CenterFareUpdate(BaseModel):
    """Partial update; the region/fare-type rule is rechecked on the merged row."""
    vehicle_type: Optional[str] = Field(default=None, min_length=1, max_length=20)
    region: Optional[str] = Field(default=None, max_length=50)
    fare_type: Optional[FareType] = None
    base_fare: Optional[int] = Field(default=None, ge=0)
    extra_stop_fee: Optional[int] = Field(default=None, ge=0)
    extra_region_fee: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("region", mode="before")
    @classmethod
    def empty_region(cls, v):
        return blank_to_none(v)


class CenterFareResponse(BaseModel):
    """Schema for center fare response."""
    id: int
    loading_point_id: int
    center_name: str
    vehicle_type: str
    region: Optional[str] = None
    fare_type: FareType
    base_fare: Optional[int] = None
    extra_stop_fee: Optional[int] = None
    extra_region_fee: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CenterFareStats(BaseModel):
    total: int
    active: int
    inactive: int
    basic: int
    stop_fee: int
    centers: int
    by_vehicle_type: Dict[str, int]
    recent: int  # active rows created in the last 30 days


class CenterFareValidateRow(BaseModel):
    loading_point_id: int
    vehicle_type: str
    region: Optional[str] = None
    fare_type: FareType


class CenterFareValidateRequest(BaseModel):
    rows: List[CenterFareValidateRow] = Field(min_length=1)


# Fare calculation

class FareCalculationInput(BaseModel):
    """Pricing request for a charter."""
    center_car_no: Optional[str] = None
    loading_point_id: Optional[int] = None
    vehicle_ton: Decimal = Field(gt=0)
    regions: List[str] = Field(min_length=1)
    stops: int = Field(default=1, ge=1)
    extra_adjustment: int = 0
    strict: Optional[bool] = None

    @model_validator(mode="after")
    def require_center(self):
        if not self.loading_point_id and not (self.center_car_no and self.center_car_no.strip()):
            raise ValueError("center_car_no or loading_point_id is required")
        return self


class AppliedRate(BaseModel):
    id: int
    center_name: str
    vehicle_type: str
    region: Optional[str] = None
    fare_type: FareType
    base_fare: int
    extra_stop_fee: int
    extra_region_fee: int


class FareCalculationResult(BaseModel):
    """Computed fare; breakdown is display text only."""
    base_fare: int
    extra_stop_fare: int
    extra_region_fare: int
    subtotal: int
    extra_adjustment: int
    total_fare: int
    vehicle_type: str
    region: Optional[str] = None
    applied_rate: Optional[AppliedRate] = None
    is_fallback: bool = False
    breakdown: List[str] = []
    warnings: List[str] = []
