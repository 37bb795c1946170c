"""
Pydantic schemas for Driver entity.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from haulbook.core.utils import digits_only, is_valid_phone, blank_to_none

OPTIONAL_TEXT_FIELDS = (
    "business_name", "representative", "business_number", "bank_name", "account_number", "remarks",
)


def _clean_phone(value):
    if value is None:
        return value
    digits = digits_only(value)
    if not is_valid_phone(digits):
        raise ValueError("Invalid phone number (expected 010-0000-0000)")
    return digits


class DriverBase(BaseModel):
    """Fields shared by create and response schemas."""
    name: str = Field(min_length=1, max_length=50)
    phone: str
    vehicle_number: str = Field(min_length=1, max_length=20)
    business_name: Optional[str] = Field(default=None, max_length=100)
    representative: Optional[str] = Field(default=None, max_length=50)
    business_number: Optional[str] = Field(default=None, max_length=50)
    bank_name: Optional[str] = Field(default=None, max_length=50)
    account_number: Optional[str] = Field(default=None, max_length=50)
    remarks: Optional[str] = Field(default=None, max_length=500)


class DriverCreate(DriverBase):
    """Schema for driver creation (also used per row on import)."""
    is_active: bool = True

    @field_validator("name", "vehicle_number", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone", mode="before")
    @classmethod
    def sanitize_phone(cls, v):
        return _clean_phone(v)

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)

    @field_validator("account_number")
    @classmethod
    def sanitize_account(cls, v):
        return digits_only(v) or None if v else v


class DriverUpdate(BaseModel):
    """Schema for driver update; every field optional."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = None
    vehicle_number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    business_name: Optional[str] = Field(default=None, max_length=100)
    representative: Optional[str] = Field(default=None, max_length=50)
    business_number: Optional[str] = Field(default=None, max_length=50)
    bank_name: Optional[str] = Field(default=None, max_length=50)
    account_number: Optional[str] = Field(default=None, max_length=50)
    remarks: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("phone", mode="before")
    @classmethod
    def sanitize_phone(cls, v):
        return _clean_phone(v)

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)

    @field_validator("account_number")
    @classmethod
    def sanitize_account(cls, v):
        return digits_only(v) or None if v else v


class DriverResponse(DriverBase):
    """Schema for driver response."""
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DriverSummary(BaseModel):
    """Compact driver used in autocomplete and nested responses."""
    id: int
    name: str
    phone: str
    vehicle_number: str

    class Config:
        from_attributes = True


class DriverBulkAction(BaseModel):
    ids: List[int] = Field(min_length=1)
    action: str = Field(pattern="^(activate|deactivate|delete)$")


class DriverBulkResult(BaseModel):
    action: str
    affected: int
    skipped: List[dict] = []
