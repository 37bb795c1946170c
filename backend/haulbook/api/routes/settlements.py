"""
Monthly driver settlement routes.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from haulbook.db.session import get_db
from haulbook.models.settlement import SettlementStatus
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.settlement import (
    ManualItemCreate, SettlementBulkRequest, SettlementBulkResult, SettlementDetail,
    SettlementPreview, SettlementRequest, SettlementResponse, SettlementUpdate,
)
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import export_service, settlement_service

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.get("", response_model=ApiResponse[Page[SettlementResponse]])
async def list_settlements(
    status_filter: Optional[SettlementStatus] = Query(None, alias="status"),
    driver_id: Optional[int] = None,
    year_month: Optional[str] = None,
    search: Optional[str] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = settlement_service.list_settlements(
        db, status_filter, driver_id, year_month, search, params.sort_by, params.sort_order
    )
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [SettlementResponse.model_validate(s) for s in rows],
        "pagination": pagination,
    })


@router.get("/export")
async def export_settlements(
    format: str = Query("xlsx"),
    year_month: Optional[str] = None,
    status_filter: Optional[SettlementStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Download a month's settlements as xlsx or csv."""
    settlements = settlement_service.list_settlements(db, status_filter, None, year_month).all()
    content, media_type, filename = export_service.export_rows(
        db, "settlements", settlements, format, current_user,
        filters={"year_month": year_month, "status": status_filter},
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("/preview", response_model=ApiResponse[SettlementPreview])
async def preview_settlement(
    data: SettlementRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Calculate a driver's month without saving; includes warnings and whether it can be confirmed."""
    return format_response(settlement_service.preview_settlement(db, data.driver_id, data.year_month))


@router.post("", response_model=ApiResponse[SettlementDetail], status_code=status.HTTP_201_CREATED)
async def create_settlement(
    data: SettlementRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create or recalculate the DRAFT settlement for a driver's month."""
    settlement = settlement_service.create_or_update_settlement(
        db, data.driver_id, data.year_month, current_user, data.remarks
    )
    return format_response(SettlementDetail.model_validate(settlement))


@router.post("/bulk", response_model=ApiResponse[SettlementBulkResult])
async def create_bulk_settlements(
    data: SettlementBulkRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = settlement_service.create_bulk_settlements(db, data.driver_ids, data.year_month, current_user)
    result["settlements"] = [SettlementResponse.model_validate(s) for s in result["settlements"]]
    return format_response(result)


@router.post("/finalize", response_model=ApiResponse[SettlementDetail])
async def finalize_settlement(
    data: SettlementRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Calculate and confirm a driver's month.

    Future months give 400 INVALID_MONTH, a month without charters 400 NO_DATA,
    and an already confirmed month 409 ALREADY_CONFIRMED.
    """
    settlement = settlement_service.finalize_settlement(
        db, data.driver_id, data.year_month, current_user, data.remarks
    )
    return format_response(SettlementDetail.model_validate(settlement))


@router.get("/{settlement_id}", response_model=ApiResponse[SettlementDetail])
async def get_settlement(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    settlement = settlement_service.get_settlement(db, settlement_id)
    return format_response(SettlementDetail.model_validate(settlement))


@router.patch("/{settlement_id}", response_model=ApiResponse[SettlementDetail])
async def update_settlement(
    settlement_id: int,
    data: SettlementUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    settlement = settlement_service.update_remarks(db, settlement_id, data.remarks, current_user)
    return format_response(SettlementDetail.model_validate(settlement))


@router.post("/{settlement_id}/confirm", response_model=ApiResponse[SettlementDetail])
async def confirm_settlement(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    settlement = settlement_service.confirm_settlement(db, settlement_id, current_user)
    return format_response(SettlementDetail.model_validate(settlement))


@router.post("/{settlement_id}/reopen", response_model=ApiResponse[SettlementDetail])
async def reopen_settlement(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Move a CONFIRMED settlement back to DRAFT so it can be recalculated."""
    settlement = settlement_service.reopen_settlement(db, settlement_id, current_user)
    return format_response(SettlementDetail.model_validate(settlement))


@router.post("/{settlement_id}/paid", response_model=ApiResponse[SettlementDetail])
async def mark_settlement_paid(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    settlement = settlement_service.mark_paid(db, settlement_id, current_user)
    return format_response(SettlementDetail.model_validate(settlement))


@router.post("/{settlement_id}/items", response_model=ApiResponse[SettlementDetail], status_code=status.HTTP_201_CREATED)
async def add_settlement_item(
    settlement_id: int,
    data: ManualItemCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add a manual addition or deduction to a DRAFT settlement."""
    settlement = settlement_service.add_manual_item(db, settlement_id, data, current_user)
    return format_response(SettlementDetail.model_validate(settlement))


@router.delete("/{settlement_id}", response_model=ApiResponse[MessageData])
async def delete_settlement(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    settlement_service.delete_settlement(db, settlement_id, current_user)
    return format_response({"message": "Settlement deleted"})
