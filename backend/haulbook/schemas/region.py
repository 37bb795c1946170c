"""
Pydantic schemas for region normalization.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime


class RegionNormalizeRequest(BaseModel):
    regions: List[str] = Field(min_length=1)


class RegionNormalizeResult(BaseModel):
    original: str
    normalized: str
    changed: bool


class RegionAliasCreate(BaseModel):
    raw_text: str = Field(min_length=1, max_length=100)
    normalized_text: str = Field(min_length=1, max_length=50)

    @field_validator("raw_text", "normalized_text", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class RegionAliasResponse(BaseModel):
    id: int
    raw_text: str
    normalized_text: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RegionStats(BaseModel):
    total_aliases: int
    active_aliases: int
    distinct_regions: int
    top_regions: List[dict]


class SeedResult(BaseModel):
    added: int
    message: Optional[str] = None
