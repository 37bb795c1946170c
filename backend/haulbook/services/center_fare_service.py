"""
Center fare (rate table) service.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from haulbook.core.exceptions import ConflictError, NotFoundError, ValidationFailed
from haulbook.core.utils import apply_sorting
from haulbook.models.audit_log import AuditAction
from haulbook.models.center_fare import CenterFare, FareType
from haulbook.models.loading_point import LoadingPoint
from haulbook.models.user import User
from haulbook.schemas.center_fare import (
    CenterFareCreate, CenterFareUpdate, CenterFareValidateRow, check_region_matches_fare_type,
)
from haulbook.services.audit_service import diff_changes, record_audit
from haulbook.services.loading_point_service import get_loading_point
from haulbook.services.region_normalize_service import normalize_region

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("vehicle_type", "region", "fare_type", "base_fare", "created_at", "updated_at")


def get_center_fare(db: Session, fare_id: int) -> CenterFare:
    fare = db.query(CenterFare).filter(CenterFare.id == fare_id).first()
    if not fare:
        raise NotFoundError("Center fare not found")
    return fare


def list_center_fares(
    db: Session,
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    center_name: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    fare_type: Optional[FareType] = None,
    is_active: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    query = db.query(CenterFare).join(LoadingPoint, CenterFare.loading_point_id == LoadingPoint.id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            LoadingPoint.center_name.ilike(term),
            CenterFare.region.ilike(term),
            CenterFare.vehicle_type.ilike(term),
        ))
    if loading_point_id:
        query = query.filter(CenterFare.loading_point_id == loading_point_id)
    if center_name:
        query = query.filter(LoadingPoint.center_name == center_name)
    if vehicle_type:
        query = query.filter(CenterFare.vehicle_type == vehicle_type)
    if fare_type:
        query = query.filter(CenterFare.fare_type == fare_type)
    if is_active is not None:
        query = query.filter(CenterFare.is_active == is_active)
    return apply_sorting(query, CenterFare, sort_by, sort_order, SORTABLE_FIELDS)


def find_duplicate(
    db: Session,
    loading_point_id: int,
    vehicle_type: str,
    region: Optional[str],
    fare_type: FareType,
    exclude_id: Optional[int] = None,
) -> Optional[CenterFare]:
    """Row with the same unique key; NULL regions compare equal here, unlike in SQL."""
    query = db.query(CenterFare).filter(
        CenterFare.loading_point_id == loading_point_id,
        CenterFare.vehicle_type == vehicle_type,
        CenterFare.fare_type == fare_type,
    )
    if region is None:
        query = query.filter(CenterFare.region.is_(None))
    else:
        query = query.filter(CenterFare.region == region)
    if exclude_id:
        query = query.filter(CenterFare.id != exclude_id)
    return query.first()


def _snapshot(fare: CenterFare) -> dict:
    return {
        "loading_point_id": fare.loading_point_id,
        "vehicle_type": fare.vehicle_type,
        "region": fare.region,
        "fare_type": fare.fare_type.value if fare.fare_type else None,
        "base_fare": fare.base_fare,
        "extra_stop_fee": fare.extra_stop_fee,
        "extra_region_fee": fare.extra_region_fee,
        "is_active": fare.is_active,
    }


def create_center_fare(db: Session, data: CenterFareCreate, user: Optional[User] = None) -> CenterFare:
    get_loading_point(db, data.loading_point_id)
    values = data.model_dump()
    if values["region"]:
        values["region"] = normalize_region(db, values["region"])
    if find_duplicate(db, values["loading_point_id"], values["vehicle_type"], values["region"], values["fare_type"]):
        raise ConflictError("A fare for this center, vehicle type and region already exists", code="DUPLICATE")

    fare = CenterFare(**values)
    db.add(fare)
    db.flush()
    record_audit(db, user, AuditAction.CREATE, "CenterFare", fare.id, changes=_snapshot(fare))
    db.commit()
    db.refresh(fare)
    return fare


def update_center_fare(db: Session, fare_id: int, data: CenterFareUpdate, user: Optional[User] = None) -> CenterFare:
    fare = get_center_fare(db, fare_id)
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("region"):
        update_data["region"] = normalize_region(db, update_data["region"])

    merged = {**_snapshot(fare), **update_data}
    merged["fare_type"] = FareType(merged["fare_type"])
    try:
        check_region_matches_fare_type(
            merged["fare_type"], merged["region"], merged["base_fare"],
            merged["extra_stop_fee"], merged["extra_region_fee"],
        )
    except ValueError as e:
        raise ValidationFailed(str(e))
    if find_duplicate(
        db, fare.loading_point_id, merged["vehicle_type"], merged["region"], merged["fare_type"], exclude_id=fare.id
    ):
        raise ConflictError("A fare for this center, vehicle type and region already exists", code="DUPLICATE")

    before = _snapshot(fare)
    for field, value in update_data.items():
        setattr(fare, field, value)
    record_audit(db, user, AuditAction.UPDATE, "CenterFare", fare.id, changes=diff_changes(before, _snapshot(fare)))
    db.commit()
    db.refresh(fare)
    return fare


def toggle_center_fare(db: Session, fare_id: int, user: Optional[User] = None) -> CenterFare:
    fare = get_center_fare(db, fare_id)
    fare.is_active = not fare.is_active
    record_audit(
        db, user, AuditAction.UPDATE, "CenterFare", fare.id,
        changes={"is_active": {"old": not fare.is_active, "new": fare.is_active}},
    )
    db.commit()
    db.refresh(fare)
    return fare


def delete_center_fare(db: Session, fare_id: int, user: Optional[User] = None) -> None:
    """Rates are not referenced by charters (fares are copied), so deletion is physical."""
    fare = get_center_fare(db, fare_id)
    record_audit(db, user, AuditAction.DELETE, "CenterFare", fare.id, changes=_snapshot(fare))
    db.delete(fare)
    db.commit()


def validate_rows(db: Session, rows: List[CenterFareValidateRow]) -> List[dict]:
    """Report rows that already exist or repeat within the batch."""
    duplicates = []
    seen = {}
    for index, row in enumerate(rows):
        region = normalize_region(db, row.region) if row.region else None
        key = (row.loading_point_id, row.vehicle_type, region, row.fare_type)
        if key in seen:
            duplicates.append({"index": index, "reason": "duplicate in request", "duplicate_of": seen[key]})
            continue
        seen[key] = index
        existing = find_duplicate(db, row.loading_point_id, row.vehicle_type, region, row.fare_type)
        if existing:
            duplicates.append({"index": index, "reason": "already exists", "existing_id": existing.id})
    return duplicates


def get_stats(db: Session) -> dict:
    total = db.query(func.count(CenterFare.id)).scalar() or 0
    active_query = db.query(CenterFare).filter(CenterFare.is_active.is_(True))
    active = active_query.count()
    basic = active_query.filter(CenterFare.fare_type == FareType.BASIC).count()
    by_vehicle_type = dict(
        db.query(CenterFare.vehicle_type, func.count(CenterFare.id))
        .filter(CenterFare.is_active.is_(True))
        .group_by(CenterFare.vehicle_type)
        .all()
    )
    centers = (
        db.query(func.count(func.distinct(CenterFare.loading_point_id)))
        .filter(CenterFare.is_active.is_(True))
        .scalar()
        or 0
    )
    recent = active_query.filter(CenterFare.created_at >= datetime.now() - timedelta(days=30)).count()
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "basic": basic,
        "stop_fee": active - basic,
        "centers": centers,
        "by_vehicle_type": by_vehicle_type,
        "recent": recent,
    }
