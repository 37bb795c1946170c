"""
Charter request routes.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
from haulbook.db.session import get_db
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.center_fare import FareCalculationResult
from haulbook.schemas.charter import (
    CharterAssign, CharterCreate, CharterCreateResult, CharterQuote, CharterRecalculate,
    CharterRecalculateResult, CharterResponse, CharterUpdate,
)
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import charter_service, export_service
from haulbook.services.fare_calculation_service import recalculate_charter_fares

router = APIRouter(prefix="/charters", tags=["charters"])


@router.get("", response_model=ApiResponse[Page[CharterResponse]])
async def list_charters(
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    is_negotiated: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List charters by center, driver, date range or free text."""
    query = charter_service.list_charters(
        db, search, loading_point_id, driver_id, date_from, date_to, is_negotiated,
        params.sort_by, params.sort_order,
    )
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [CharterResponse.model_validate(c) for c in rows],
        "pagination": pagination,
    })


@router.post("/quote", response_model=ApiResponse[FareCalculationResult])
async def quote_charter(
    data: CharterQuote,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Price a charter without saving it."""
    return format_response(charter_service.quote_charter(db, data))


@router.post("/recalculate", response_model=ApiResponse[CharterRecalculateResult])
async def recalculate_charters(
    data: CharterRecalculate,
    strict: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Reprice stored charters against the current fare table."""
    return format_response(recalculate_charter_fares(db, data.ids, strict))


@router.get("/export")
async def export_charters(
    format: str = Query("xlsx"),
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    charters = charter_service.list_charters(
        db, search, loading_point_id, driver_id, date_from, date_to, sort_by="date"
    ).all()
    content, media_type, filename = export_service.export_rows(
        db, "charters", charters, format, current_user,
        filters={
            "search": search, "loading_point_id": loading_point_id, "driver_id": driver_id,
            "date_from": date_from, "date_to": date_to,
        },
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("", response_model=ApiResponse[CharterCreateResult], status_code=status.HTTP_201_CREATED)
async def create_charter(
    data: CharterCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a priced charter; the fare breakdown and any warnings come back with it."""
    charter, fare = charter_service.create_charter(db, data, current_user)
    return format_response({"charter": CharterResponse.model_validate(charter), "fare": fare})


@router.get("/{charter_id}", response_model=ApiResponse[CharterResponse])
async def get_charter(
    charter_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    charter = charter_service.get_charter(db, charter_id)
    return format_response(CharterResponse.model_validate(charter))


@router.put("/{charter_id}", response_model=ApiResponse[CharterCreateResult])
async def update_charter(
    charter_id: int,
    data: CharterUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    charter, fare = charter_service.update_charter(db, charter_id, data, current_user)
    return format_response({"charter": CharterResponse.model_validate(charter), "fare": fare})


@router.post("/{charter_id}/assign", response_model=ApiResponse[CharterResponse])
async def assign_charter_driver(
    charter_id: int,
    data: CharterAssign,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    charter = charter_service.assign_driver(db, charter_id, data.driver_id, data.driver_fare, current_user)
    return format_response(CharterResponse.model_validate(charter))


@router.delete("/{charter_id}", response_model=ApiResponse[MessageData])
async def delete_charter(
    charter_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    charter_service.delete_charter(db, charter_id, current_user)
    return format_response({"message": "Charter deleted"})
