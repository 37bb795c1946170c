"""
Loading point (center) routes.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from haulbook.db.session import get_db
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.loading_point import LoadingPointCreate, LoadingPointResponse, LoadingPointUpdate
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import export_service, loading_point_service

router = APIRouter(prefix="/loading-points", tags=["loading-points"])


@router.get("", response_model=ApiResponse[Page[LoadingPointResponse]])
async def list_loading_points(
    search: Optional[str] = None,
    center_name: Optional[str] = None,
    is_active: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = loading_point_service.list_loading_points(
        db, search, center_name, is_active, params.sort_by, params.sort_order
    )
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [LoadingPointResponse.model_validate(lp) for lp in rows],
        "pagination": pagination,
    })


@router.get("/centers", response_model=ApiResponse[List[str]])
async def list_centers(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Distinct active center names for dropdowns."""
    return format_response(loading_point_service.list_center_names(db))


@router.get("/export")
async def export_loading_points(
    format: str = Query("xlsx"),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loading_points = loading_point_service.list_loading_points(db, search, None, is_active).all()
    content, media_type, filename = export_service.export_rows(
        db, "loading-points", loading_points, format, current_user,
        filters={"search": search, "is_active": is_active},
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("", response_model=ApiResponse[LoadingPointResponse], status_code=status.HTTP_201_CREATED)
async def create_loading_point(
    data: LoadingPointCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loading_point = loading_point_service.create_loading_point(db, data, current_user)
    return format_response(LoadingPointResponse.model_validate(loading_point))


@router.get("/{loading_point_id}", response_model=ApiResponse[LoadingPointResponse])
async def get_loading_point(
    loading_point_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loading_point = loading_point_service.get_loading_point(db, loading_point_id)
    return format_response(LoadingPointResponse.model_validate(loading_point))


@router.put("/{loading_point_id}", response_model=ApiResponse[LoadingPointResponse])
async def update_loading_point(
    loading_point_id: int,
    data: LoadingPointUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loading_point = loading_point_service.update_loading_point(db, loading_point_id, data, current_user)
    return format_response(LoadingPointResponse.model_validate(loading_point))


@router.patch("/{loading_point_id}/toggle", response_model=ApiResponse[LoadingPointResponse])
async def toggle_loading_point(
    loading_point_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loading_point = loading_point_service.toggle_loading_point(db, loading_point_id, current_user)
    return format_response(LoadingPointResponse.model_validate(loading_point))


@router.delete("/{loading_point_id}", response_model=ApiResponse[MessageData])
async def delete_loading_point(
    loading_point_id: int,
    hard: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Deactivate, or with ?hard=true delete when no charters or contracts reference it."""
    loading_point_service.delete_loading_point(db, loading_point_id, hard, current_user)
    return format_response({"message": "Loading point deleted" if hard else "Loading point deactivated"})
