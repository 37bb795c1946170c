"""
Region normalization and alias table routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from haulbook.db.session import get_db
from haulbook.models.audit_log import AuditAction
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse, Page
from haulbook.schemas.region import (
    RegionAliasCreate, RegionAliasResponse, RegionNormalizeRequest, RegionNormalizeResult, RegionStats, SeedResult,
)
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import format_response, paginate
from haulbook.services import region_normalize_service
from haulbook.services.audit_service import record_audit

router = APIRouter(prefix="/regions", tags=["regions"])


@router.post("/normalize", response_model=ApiResponse[List[RegionNormalizeResult]])
async def normalize(
    data: RegionNormalizeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Normalize free-text region names the way charters store them."""
    results = []
    for raw in data.regions:
        normalized = region_normalize_service.normalize_region(db, raw)
        results.append({"original": raw, "normalized": normalized, "changed": normalized != raw.strip()})
    return format_response(results)


@router.get("/aliases", response_model=ApiResponse[Page[RegionAliasResponse]])
async def list_aliases(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = region_normalize_service.list_aliases(db, search, is_active)
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [RegionAliasResponse.model_validate(a) for a in rows],
        "pagination": pagination,
    })


@router.post("/aliases", response_model=ApiResponse[RegionAliasResponse], status_code=status.HTTP_201_CREATED)
async def add_alias(
    data: RegionAliasCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add or re-point an alias; existing aliases targeting raw_text follow it."""
    alias = region_normalize_service.add_region_alias(db, data.raw_text, data.normalized_text)
    record_audit(
        db, current_user, AuditAction.CREATE, "RegionAlias", alias.id,
        changes={"raw_text": alias.raw_text, "normalized_text": alias.normalized_text},
    )
    db.commit()
    db.refresh(alias)
    return format_response(RegionAliasResponse.model_validate(alias))


@router.post("/aliases/seed", response_model=ApiResponse[SeedResult])
async def seed_aliases(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Load the built-in common aliases (safe to repeat)."""
    added = region_normalize_service.initialize_common_aliases(db)
    record_audit(db, current_user, AuditAction.IMPORT, "RegionAlias", None, context={"source": "seed", "added": added})
    db.commit()
    return format_response({"added": added, "message": f"{added} aliases added"})


@router.get("/stats", response_model=ApiResponse[RegionStats])
async def region_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return format_response(region_normalize_service.get_stats(db))
