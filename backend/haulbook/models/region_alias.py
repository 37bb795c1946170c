"""
Region alias table used by region normalization.
"""
from sqlalchemy import Column, String, Boolean
from haulbook.db.base import BaseModel


class RegionAlias(BaseModel):
    """Maps a raw region spelling to its normalized form."""
    __tablename__ = "region_aliases"

    raw_text = Column(String(100), unique=True, nullable=False, index=True)
    normalized_text = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
