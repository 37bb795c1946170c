"""
Driver management routes.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from haulbook.db.session import get_db
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.driver import (
    DriverBulkAction, DriverBulkResult, DriverCreate, DriverResponse, DriverSummary, DriverUpdate,
)
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import driver_service, export_service

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("", response_model=ApiResponse[Page[DriverResponse]])
async def list_drivers(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List drivers with search, status filter, sorting and pagination."""
    query = driver_service.list_drivers(db, search, is_active, params.sort_by, params.sort_order)
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [DriverResponse.model_validate(d) for d in rows],
        "pagination": pagination,
    })


@router.get("/search", response_model=ApiResponse[List[DriverSummary]])
async def search_drivers(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Autocomplete over active drivers."""
    drivers = driver_service.search_drivers(db, q, limit)
    return format_response([DriverSummary.model_validate(d) for d in drivers])


@router.get("/export")
async def export_drivers(
    format: str = Query("xlsx"),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Download the filtered driver list as xlsx or csv."""
    drivers = driver_service.list_drivers(db, search, is_active).all()
    content, media_type, filename = export_service.export_rows(
        db, "drivers", drivers, format, current_user,
        filters={"search": search, "is_active": is_active},
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("/bulk", response_model=ApiResponse[DriverBulkResult])
async def bulk_drivers(
    data: DriverBulkAction,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Activate, deactivate or delete several drivers at once."""
    result = driver_service.bulk_action(db, data.ids, data.action, current_user)
    return format_response(result)


@router.post("", response_model=ApiResponse[DriverResponse], status_code=status.HTTP_201_CREATED)
async def create_driver(
    data: DriverCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Register a driver."""
    driver = driver_service.create_driver(db, data, current_user)
    return format_response(DriverResponse.model_validate(driver))


@router.get("/{driver_id}", response_model=ApiResponse[DriverResponse])
async def get_driver(
    driver_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    driver = driver_service.get_driver(db, driver_id)
    return format_response(DriverResponse.model_validate(driver))


@router.put("/{driver_id}", response_model=ApiResponse[DriverResponse])
async def update_driver(
    driver_id: int,
    data: DriverUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    driver = driver_service.update_driver(db, driver_id, data, current_user)
    return format_response(DriverResponse.model_validate(driver))


@router.patch("/{driver_id}/toggle", response_model=ApiResponse[DriverResponse])
async def toggle_driver(
    driver_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Flip the active flag."""
    driver = driver_service.toggle_driver(db, driver_id, current_user)
    return format_response(DriverResponse.model_validate(driver))


@router.patch("/{driver_id}/activate", response_model=ApiResponse[DriverResponse])
async def activate_driver(
    driver_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Reactivate a soft-deleted driver."""
    driver = driver_service.set_driver_active(db, driver_id, True, current_user)
    return format_response(DriverResponse.model_validate(driver))


@router.delete("/{driver_id}", response_model=ApiResponse[MessageData])
async def delete_driver(
    driver_id: int,
    hard: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Deactivate a driver, or remove it permanently with ?hard=true."""
    driver_service.delete_driver(db, driver_id, hard, current_user)
    message = "Driver permanently deleted" if hard else "Driver deactivated"
    return format_response({"message": message})
