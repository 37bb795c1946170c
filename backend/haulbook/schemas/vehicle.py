"""
Pydantic schemas for Vehicle entity.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from haulbook.models.vehicle import VehicleOwnership
from haulbook.schemas.driver import DriverSummary

PLATE_PATTERN = r"^[가-힣0-9]+$"


class VehicleCreate(BaseModel):
    """Schema for vehicle creation."""
    plate_number: str = Field(min_length=1, max_length=20, pattern=PLATE_PATTERN)
    vehicle_type: str = Field(min_length=1, max_length=50)
    ownership: VehicleOwnership = VehicleOwnership.OWNED
    driver_id: Optional[int] = None
    year: Optional[int] = None
    capacity: Optional[Decimal] = Field(default=None, gt=0, le=100)
    is_active: bool = True

    @field_validator("plate_number", mode="before")
    @classmethod
    def strip_spaces(cls, v):
        return v.replace(" ", "") if isinstance(v, str) else v

    @field_validator("year")
    @classmethod
    def check_year(cls, v):
        if v is not None and not (1980 <= v <= date.today().year + 1):
            raise ValueError("Model year is out of range")
        return v


class VehicleUpdate(BaseModel):
    """Schema for vehicle update."""
    plate_number: Optional[str] = Field(default=None, min_length=1, max_length=20, pattern=PLATE_PATTERN)
    vehicle_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    ownership: Optional[VehicleOwnership] = None
    driver_id: Optional[int] = None
    year: Optional[int] = None
    capacity: Optional[Decimal] = Field(default=None, gt=0, le=100)
    is_active: Optional[bool] = None


class VehicleAssign(BaseModel):
    """Assign (or with null, unassign) a driver."""
    driver_id: Optional[int] = None


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""
    id: int
    plate_number: str
    vehicle_type: str
    ownership: VehicleOwnership
    driver_id: Optional[int] = None
    driver: Optional[DriverSummary] = None
    year: Optional[int] = None
    capacity: Optional[Decimal] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
