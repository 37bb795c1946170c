"""
Pydantic schemas for charter requests.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime, date as dt_date
from decimal import Decimal
from haulbook.core.utils import blank_to_none
from haulbook.schemas.center_fare import FareCalculationResult
from haulbook.schemas.driver import DriverSummary
from haulbook.schemas.loading_point import LoadingPointSummary


class DestinationInput(BaseModel):
    region: str = Field(min_length=1, max_length=50)
    order: int = Field(ge=1)

    @field_validator("region", mode="before")
    @classmethod
    def strip_region(cls, v):
        return v.strip() if isinstance(v, str) else v


class DestinationResponse(BaseModel):
    id: int
    region: str
    order: int

    class Config:
        from_attributes = True


def _check_destinations(destinations: List[DestinationInput]):
    orders = sorted(d.order for d in destinations)
    if orders != list(range(1, len(destinations) + 1)):
        raise ValueError("Destination orders must be 1..n without gaps or duplicates")


class CharterCreate(BaseModel):
    """
    Schema for charter creation.

    Fare fields are computed on the server unless is_negotiated is set,
    in which case negotiated_fare becomes the total.
    """
    loading_point_id: int
    date: dt_date
    vehicle_type: Optional[str] = Field(default=None, max_length=20)
    vehicle_ton: Decimal = Field(gt=0, le=100)
    destinations: List[DestinationInput] = Field(min_length=1)
    stops: Optional[int] = Field(default=None, ge=1)  # defaults to the number of destinations
    is_negotiated: bool = False
    negotiated_fare: Optional[int] = Field(default=None, ge=0)
    extra_fare: int = Field(default=0, ge=0)
    driver_id: Optional[int] = None
    driver_fare: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    strict: Optional[bool] = None

    @field_validator("notes", mode="before")
    @classmethod
    def empty_notes(cls, v):
        return blank_to_none(v)

    @model_validator(mode="after")
    def check_charter(self):
        _check_destinations(self.destinations)
        if self.is_negotiated and self.negotiated_fare is None:
            raise ValueError("negotiated_fare is required when is_negotiated is true")
        return self


class CharterUpdate(BaseModel):
    """Partial update; any pricing input change triggers a reprice."""
    date: Optional[dt_date] = None
    vehicle_ton: Optional[Decimal] = Field(default=None, gt=0, le=100)
    vehicle_type: Optional[str] = Field(default=None, max_length=20)
    destinations: Optional[List[DestinationInput]] = None
    stops: Optional[int] = Field(default=None, ge=1)
    is_negotiated: Optional[bool] = None
    negotiated_fare: Optional[int] = Field(default=None, ge=0)
    extra_fare: Optional[int] = Field(default=None, ge=0)
    driver_id: Optional[int] = None
    driver_fare: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    strict: Optional[bool] = None

    @model_validator(mode="after")
    def check_destinations(self):
        if self.destinations is not None:
            if not self.destinations:
                raise ValueError("At least one destination is required")
            _check_destinations(self.destinations)
        return self


class CharterAssign(BaseModel):
    driver_id: Optional[int] = None
    driver_fare: Optional[int] = Field(default=None, ge=0)


class CharterQuote(BaseModel):
    """Price a prospective charter without saving it."""
    loading_point_id: int
    vehicle_ton: Decimal = Field(gt=0, le=100)
    regions: List[str] = Field(min_length=1)
    stops: Optional[int] = Field(default=None, ge=1)
    extra_adjustment: int = 0
    strict: Optional[bool] = None


class CharterRecalculate(BaseModel):
    ids: List[int] = Field(min_length=1)


class CharterRecalculateResult(BaseModel):
    success: int
    failed: int
    errors: List[dict] = []


class CharterResponse(BaseModel):
    """Schema for charter response."""
    id: int
    loading_point_id: int
    loading_point: Optional[LoadingPointSummary] = None
    date: dt_date
    vehicle_type: str
    vehicle_ton: Decimal
    stops: int
    destinations: List[DestinationResponse] = []
    is_negotiated: bool
    negotiated_fare: Optional[int] = None
    base_fare: int
    region_fare: int
    stop_fare: int
    extra_fare: int
    total_fare: int
    is_estimated: bool
    driver_id: Optional[int] = None
    driver: Optional[DriverSummary] = None
    driver_fare: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CharterCreateResult(BaseModel):
    """Saved charter plus how its fare was derived."""
    charter: CharterResponse
    fare: Optional[FareCalculationResult] = None
