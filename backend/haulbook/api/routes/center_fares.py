"""
Center fare table routes and the fare calculator.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from haulbook.db.session import get_db
from haulbook.models.center_fare import FareType
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.center_fare import (
    CenterFareCreate, CenterFareResponse, CenterFareStats, CenterFareUpdate,
    CenterFareValidateRequest, FareCalculationInput, FareCalculationResult,
)
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import center_fare_service, export_service
from haulbook.services.fare_calculation_service import calculate_fare

router = APIRouter(prefix="/center-fares", tags=["center-fares"])


@router.get("", response_model=ApiResponse[Page[CenterFareResponse]])
async def list_center_fares(
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    center_name: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    fare_type: Optional[FareType] = None,
    is_active: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = center_fare_service.list_center_fares(
        db, search, loading_point_id, center_name, vehicle_type, fare_type, is_active,
        params.sort_by, params.sort_order,
    )
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [CenterFareResponse.model_validate(f) for f in rows],
        "pagination": pagination,
    })


@router.get("/stats", response_model=ApiResponse[CenterFareStats])
async def center_fare_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return format_response(center_fare_service.get_stats(db))


@router.post("/calculate", response_model=ApiResponse[FareCalculationResult])
async def calculate(
    data: FareCalculationInput,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Price a trip from the fare table.

    Falls back to the tonnage estimate when no rate matches, unless strict
    pricing is requested, in which case a 422 RATE_NOT_FOUND is returned.
    """
    return format_response(calculate_fare(db, data))


@router.post("/validate")
async def validate_center_fares(
    data: CenterFareValidateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Check a batch of rows for duplicates before saving."""
    duplicates = center_fare_service.validate_rows(db, data.rows)
    return format_response({"valid": not duplicates, "duplicates": duplicates})


@router.get("/export")
async def export_center_fares(
    format: str = Query("xlsx"),
    search: Optional[str] = None,
    center_name: Optional[str] = None,
    fare_type: Optional[FareType] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fares = center_fare_service.list_center_fares(
        db, search, None, center_name, None, fare_type, is_active
    ).all()
    content, media_type, filename = export_service.export_rows(
        db, "center-fares", fares, format, current_user,
        filters={"search": search, "center_name": center_name, "fare_type": fare_type, "is_active": is_active},
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("", response_model=ApiResponse[CenterFareResponse], status_code=status.HTTP_201_CREATED)
async def create_center_fare(
    data: CenterFareCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fare = center_fare_service.create_center_fare(db, data, current_user)
    return format_response(CenterFareResponse.model_validate(fare))


@router.get("/{fare_id}", response_model=ApiResponse[CenterFareResponse])
async def get_center_fare(
    fare_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fare = center_fare_service.get_center_fare(db, fare_id)
    return format_response(CenterFareResponse.model_validate(fare))


@router.put("/{fare_id}", response_model=ApiResponse[CenterFareResponse])
async def update_center_fare(
    fare_id: int,
    data: CenterFareUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fare = center_fare_service.update_center_fare(db, fare_id, data, current_user)
    return format_response(CenterFareResponse.model_validate(fare))


@router.patch("/{fare_id}/toggle", response_model=ApiResponse[CenterFareResponse])
async def toggle_center_fare(
    fare_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fare = center_fare_service.toggle_center_fare(db, fare_id, current_user)
    return format_response(CenterFareResponse.model_validate(fare))


@router.delete("/{fare_id}", response_model=ApiResponse[MessageData])
async def delete_center_fare(
    fare_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    center_fare_service.delete_center_fare(db, fare_id, current_user)
    return format_response({"message": "Center fare deleted"})
