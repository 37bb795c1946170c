"""
Fixed contract routes.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from haulbook.db.session import get_db
from haulbook.models.fixed_contract import ContractType
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, MessageData, Page
from haulbook.schemas.fixed_contract import (
    FixedContractCreate, FixedContractResponse, FixedContractStats, FixedContractUpdate,
)
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import attachment_headers, format_response, paginate
from haulbook.services import export_service, fixed_contract_service

router = APIRouter(prefix="/fixed-contracts", tags=["fixed-contracts"])


@router.get("", response_model=ApiResponse[Page[FixedContractResponse]])
async def list_fixed_contracts(
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    contract_type: Optional[ContractType] = None,
    is_active: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = fixed_contract_service.list_fixed_contracts(
        db, search, loading_point_id, driver_id, contract_type, is_active,
        params.sort_by, params.sort_order,
    )
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [FixedContractResponse.model_validate(c) for c in rows],
        "pagination": pagination,
    })


@router.get("/stats", response_model=ApiResponse[FixedContractStats])
async def fixed_contract_stats(
    year_month: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Estimated revenue, cost and margin of active contracts for a month (default: current)."""
    return format_response(fixed_contract_service.get_stats(db, year_month))


@router.get("/export")
async def export_fixed_contracts(
    format: str = Query("xlsx"),
    search: Optional[str] = None,
    contract_type: Optional[ContractType] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contracts = fixed_contract_service.list_fixed_contracts(db, search, None, None, contract_type, is_active).all()
    content, media_type, filename = export_service.export_rows(
        db, "fixed-contracts", contracts, format, current_user,
        filters={"search": search, "contract_type": contract_type, "is_active": is_active},
    )
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("", response_model=ApiResponse[FixedContractResponse], status_code=status.HTTP_201_CREATED)
async def create_fixed_contract(
    data: FixedContractCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contract = fixed_contract_service.create_fixed_contract(db, data, current_user)
    return format_response(FixedContractResponse.model_validate(contract))


@router.get("/{contract_id}", response_model=ApiResponse[FixedContractResponse])
async def get_fixed_contract(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contract = fixed_contract_service.get_fixed_contract(db, contract_id)
    return format_response(FixedContractResponse.model_validate(contract))


@router.put("/{contract_id}", response_model=ApiResponse[FixedContractResponse])
async def update_fixed_contract(
    contract_id: int,
    data: FixedContractUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contract = fixed_contract_service.update_fixed_contract(db, contract_id, data, current_user)
    return format_response(FixedContractResponse.model_validate(contract))


@router.patch("/{contract_id}/toggle", response_model=ApiResponse[FixedContractResponse])
async def toggle_fixed_contract(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contract = fixed_contract_service.toggle_fixed_contract(db, contract_id, current_user)
    return format_response(FixedContractResponse.model_validate(contract))


@router.delete("/{contract_id}", response_model=ApiResponse[MessageData])
async def delete_fixed_contract(
    contract_id: int,
    hard: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fixed_contract_service.delete_fixed_contract(db, contract_id, hard, current_user)
    return format_response({"message": "Fixed contract deleted" if hard else "Fixed contract deactivated"})
