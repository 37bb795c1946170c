"""
Loading point (center) service.
"""
import logging
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from haulbook.core.exceptions import ConflictError, NotFoundError
from haulbook.core.utils import apply_sorting
from haulbook.models.audit_log import AuditAction
from haulbook.models.charter import CharterRequest
from haulbook.models.fixed_contract import FixedContract
from haulbook.models.loading_point import LoadingPoint
from haulbook.models.user import User
from haulbook.schemas.loading_point import LoadingPointCreate, LoadingPointUpdate
from haulbook.services.audit_service import record_audit

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("center_name", "loading_point_name", "created_at", "updated_at")


def get_loading_point(db: Session, loading_point_id: int) -> LoadingPoint:
    loading_point = db.query(LoadingPoint).filter(LoadingPoint.id == loading_point_id).first()
    if not loading_point:
        raise NotFoundError("Loading point not found")
    return loading_point


def list_loading_points(
    db: Session,
    search: Optional[str] = None,
    center_name: Optional[str] = None,
    is_active: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    query = db.query(LoadingPoint)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            LoadingPoint.center_name.ilike(term),
            LoadingPoint.loading_point_name.ilike(term),
            LoadingPoint.road_address.ilike(term),
            LoadingPoint.lot_address.ilike(term),
        ))
    if center_name:
        query = query.filter(LoadingPoint.center_name == center_name)
    if is_active is not None:
        query = query.filter(LoadingPoint.is_active == is_active)
    return apply_sorting(query, LoadingPoint, sort_by, sort_order, SORTABLE_FIELDS)


def list_center_names(db: Session) -> List[str]:
    """Distinct center names of active loading points."""
    rows = (
        db.query(LoadingPoint.center_name)
        .filter(LoadingPoint.is_active.is_(True))
        .distinct()
        .order_by(LoadingPoint.center_name.asc())
        .all()
    )
    return [row[0] for row in rows]


def _check_unique(db: Session, center_name: str, loading_point_name: str, exclude_id: Optional[int] = None):
    query = db.query(LoadingPoint).filter(
        LoadingPoint.center_name == center_name,
        LoadingPoint.loading_point_name == loading_point_name,
    )
    if exclude_id:
        query = query.filter(LoadingPoint.id != exclude_id)
    if query.first():
        raise ConflictError("This loading point already exists for the center", code="DUPLICATE")


def create_loading_point(db: Session, data: LoadingPointCreate, user: Optional[User] = None) -> LoadingPoint:
    _check_unique(db, data.center_name, data.loading_point_name)
    loading_point = LoadingPoint(**data.model_dump())
    db.add(loading_point)
    db.flush()
    record_audit(db, user, AuditAction.CREATE, "LoadingPoint", loading_point.id, changes=data.model_dump())
    db.commit()
    db.refresh(loading_point)
    return loading_point


def update_loading_point(
    db: Session, loading_point_id: int, data: LoadingPointUpdate, user: Optional[User] = None
) -> LoadingPoint:
    loading_point = get_loading_point(db, loading_point_id)
    update_data = data.model_dump(exclude_unset=True)
    if "center_name" in update_data or "loading_point_name" in update_data:
        _check_unique(
            db,
            update_data.get("center_name", loading_point.center_name),
            update_data.get("loading_point_name", loading_point.loading_point_name),
            exclude_id=loading_point.id,
        )
    for field, value in update_data.items():
        setattr(loading_point, field, value)
    record_audit(db, user, AuditAction.UPDATE, "LoadingPoint", loading_point.id, changes=update_data)
    db.commit()
    db.refresh(loading_point)
    return loading_point


def set_loading_point_active(
    db: Session, loading_point_id: int, is_active: bool, user: Optional[User] = None
) -> LoadingPoint:
    loading_point = get_loading_point(db, loading_point_id)
    if loading_point.is_active != is_active:
        record_audit(
            db, user, AuditAction.UPDATE, "LoadingPoint", loading_point.id,
            changes={"is_active": {"old": loading_point.is_active, "new": is_active}},
        )
        loading_point.is_active = is_active
        db.commit()
        db.refresh(loading_point)
    return loading_point


def toggle_loading_point(db: Session, loading_point_id: int, user: Optional[User] = None) -> LoadingPoint:
    loading_point = get_loading_point(db, loading_point_id)
    return set_loading_point_active(db, loading_point_id, not loading_point.is_active, user)


def delete_loading_point(db: Session, loading_point_id: int, hard: bool = False, user: Optional[User] = None) -> None:
    """Hard delete removes the center's fares too and is refused while charters or contracts use it."""
    loading_point = get_loading_point(db, loading_point_id)
    if not hard:
        set_loading_point_active(db, loading_point_id, False, user)
        return
    in_use = (
        db.query(CharterRequest.id).filter(CharterRequest.loading_point_id == loading_point_id).first()
        or db.query(FixedContract.id).filter(FixedContract.loading_point_id == loading_point_id).first()
    )
    if in_use:
        raise ConflictError("Loading point has charters or contracts; deactivate instead", code="HAS_DEPENDANTS")
    record_audit(db, user, AuditAction.DELETE, "LoadingPoint", loading_point.id, changes={"permanently_deleted": True})
    db.delete(loading_point)
    db.commit()
    logger.info(f"Loading point {loading_point_id} permanently deleted")
