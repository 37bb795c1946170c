"""
Vehicle management routes.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from haulbook.db.session import get_db
from haulbook.models.user import User
from haulbook.models.vehicle import VehicleOwnership
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.vehicle import VehicleAssign, VehicleCreate, VehicleResponse, VehicleUpdate
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import export_service, vehicle_service

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("", response_model=ApiResponse[Page[VehicleResponse]])
async def list_vehicles(
    search: Optional[str] = None,
    ownership: Optional[VehicleOwnership] = None,
    driver_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = vehicle_service.list_vehicles(
        db, search, ownership, driver_id, is_active, params.sort_by, params.sort_order
    )
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [VehicleResponse.model_validate(v) for v in rows],
        "pagination": pagination,
    })


@router.get("/export")
async def export_vehicles(
    format: str = Query("xlsx"),
    search: Optional[str] = None,
    ownership: Optional[VehicleOwnership] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vehicles = vehicle_service.list_vehicles(db, search, ownership, None, is_active).all()
    content, media_type, filename = export_service.export_rows(
        db, "vehicles", vehicles, format, current_user,
        filters={"search": search, "ownership": ownership, "is_active": is_active},
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("", response_model=ApiResponse[VehicleResponse], status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    data: VehicleCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vehicle = vehicle_service.create_vehicle(db, data, current_user)
    return format_response(VehicleResponse.model_validate(vehicle))


@router.get("/{vehicle_id}", response_model=ApiResponse[VehicleResponse])
async def get_vehicle(
    vehicle_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vehicle = vehicle_service.get_vehicle(db, vehicle_id)
    return format_response(VehicleResponse.model_validate(vehicle))


@router.put("/{vehicle_id}", response_model=ApiResponse[VehicleResponse])
async def update_vehicle(
    vehicle_id: int,
    data: VehicleUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vehicle = vehicle_service.update_vehicle(db, vehicle_id, data, current_user)
    return format_response(VehicleResponse.model_validate(vehicle))


@router.post("/{vehicle_id}/assign", response_model=ApiResponse[VehicleResponse])
async def assign_vehicle_driver(
    vehicle_id: int,
    data: VehicleAssign,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Assign a driver to the vehicle; driver_id null unassigns."""
    vehicle = vehicle_service.assign_driver(db, vehicle_id, data.driver_id, current_user)
    return format_response(VehicleResponse.model_validate(vehicle))


@router.patch("/{vehicle_id}/toggle", response_model=ApiResponse[VehicleResponse])
async def toggle_vehicle(
    vehicle_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vehicle = vehicle_service.toggle_vehicle(db, vehicle_id, current_user)
    return format_response(VehicleResponse.model_validate(vehicle))


@router.delete("/{vehicle_id}", response_model=ApiResponse[MessageData])
async def delete_vehicle(
    vehicle_id: int,
    hard: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vehicle_service.delete_vehicle(db, vehicle_id, hard, current_user)
    return format_response({"message": "Vehicle deleted" if hard else "Vehicle deactivated"})
