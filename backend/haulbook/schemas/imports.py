"""
Schemas for bulk import results.
"""
from pydantic import BaseModel
from typing import List


class ImportRowError(BaseModel):
    row: int  # spreadsheet row number, header is row 1
    message: str


class ImportResult(BaseModel):
    entity: str
    total: int
    created: int
    updated: int
    dry_run: bool = False
    errors: List[ImportRowError] = []
