"""
Shared response envelopes and pagination schemas.
"""
from pydantic import BaseModel
from typing import Generic, List, TypeVar

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: {"ok": true, "data": ...}."""
    ok: bool = True
    data: T


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class Page(BaseModel, Generic[T]):
    """A page of list results."""
    items: List[T]
    pagination: Pagination


class MessageData(BaseModel):
    message: str
