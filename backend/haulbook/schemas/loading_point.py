"""
Pydantic schemas for LoadingPoint entity.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from haulbook.core.utils import blank_to_none

OPTIONAL_FIELDS = (
    "lot_address", "road_address", "manager1", "phone1", "manager2", "phone2", "remarks",
)


class LoadingPointBase(BaseModel):
    center_name: str = Field(min_length=1, max_length=100)
    loading_point_name: str = Field(min_length=1, max_length=100)
    lot_address: Optional[str] = Field(default=None, max_length=200)
    road_address: Optional[str] = Field(default=None, max_length=200)
    manager1: Optional[str] = Field(default=None, max_length=50)
    phone1: Optional[str] = Field(default=None, max_length=20)
    manager2: Optional[str] = Field(default=None, max_length=50)
    phone2: Optional[str] = Field(default=None, max_length=20)
    remarks: Optional[str] = Field(default=None, max_length=500)


class LoadingPointCreate(LoadingPointBase):
    """Schema for loading point creation (also used per row on import)."""
    is_active: bool = True

    @field_validator("center_name", "loading_point_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator(*OPTIONAL_FIELDS, mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class LoadingPointUpdate(BaseModel):
    center_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    loading_point_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    lot_address: Optional[str] = Field(default=None, max_length=200)
    road_address: Optional[str] = Field(default=None, max_length=200)
    manager1: Optional[str] = Field(default=None, max_length=50)
    phone1: Optional[str] = Field(default=None, max_length=20)
    manager2: Optional[str] = Field(default=None, max_length=50)
    phone2: Optional[str] = Field(default=None, max_length=20)
    remarks: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator(*OPTIONAL_FIELDS, mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class LoadingPointResponse(LoadingPointBase):
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LoadingPointSummary(BaseModel):
    id: int
    center_name: str
    loading_point_name: str

    class Config:
        from_attributes = True
