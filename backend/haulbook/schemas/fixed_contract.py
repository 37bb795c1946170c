"""
Pydantic schemas for fixed contracts.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime, date
from haulbook.core.utils import blank_to_none
from haulbook.models.fixed_contract import ContractType
from haulbook.schemas.driver import DriverSummary
from haulbook.schemas.loading_point import LoadingPointSummary


def _check_days(days):
    if days is None:
        return days
    if any(d < 0 or d > 6 for d in days):
        raise ValueError("operating_days must be weekday numbers 0 (Sun) to 6 (Sat)")
    return sorted(set(days))


class FixedContractCreate(BaseModel):
    """Schema for fixed contract creation (also used per row on import)."""
    driver_id: Optional[int] = None
    loading_point_id: int
    route_name: str = Field(min_length=1, max_length=100)
    center_contract_type: ContractType
    driver_contract_type: Optional[ContractType] = None
    center_amount: int = Field(ge=0)
    driver_amount: Optional[int] = Field(default=None, ge=0)
    operating_days: List[int] = []
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    special_conditions: Optional[str] = None
    remarks: Optional[str] = None
    is_active: bool = True

    @field_validator("operating_days")
    @classmethod
    def check_days(cls, v):
        return _check_days(v)

    @field_validator("special_conditions", "remarks", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)

    @model_validator(mode="after")
    def check_period(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class FixedContractUpdate(BaseModel):
    driver_id: Optional[int] = None
    loading_point_id: Optional[int] = None
    route_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    center_contract_type: Optional[ContractType] = None
    driver_contract_type: Optional[ContractType] = None
    center_amount: Optional[int] = Field(default=None, ge=0)
    driver_amount: Optional[int] = Field(default=None, ge=0)
    operating_days: Optional[List[int]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    special_conditions: Optional[str] = None
    remarks: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("operating_days")
    @classmethod
    def check_days(cls, v):
        return _check_days(v)


class FixedContractResponse(BaseModel):
    id: int
    driver_id: Optional[int] = None
    driver: Optional[DriverSummary] = None
    loading_point_id: int
    loading_point: Optional[LoadingPointSummary] = None
    route_name: str
    center_contract_type: ContractType
    driver_contract_type: Optional[ContractType] = None
    center_amount: int
    driver_amount: Optional[int] = None
    operating_days: List[int]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    special_conditions: Optional[str] = None
    remarks: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FixedContractStats(BaseModel):
    """Monthly estimate over active contracts."""
    year_month: str
    total_contracts: int
    active_contracts: int
    inactive_contracts: int
    assigned_contracts: int
    recent_contracts: int  # active contracts created in the last 30 days
    monthly_revenue: int
    monthly_cost: int
    monthly_margin: int
    by_contract_type: dict
