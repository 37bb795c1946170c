"""
Charter request service.
"""
import logging
from datetime import date
from typing import Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.orm import Session
from haulbook.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from haulbook.core.utils import apply_sorting
from haulbook.models.audit_log import AuditAction
from haulbook.models.charter import CharterDestination, CharterRequest
from haulbook.models.driver import Driver
from haulbook.models.loading_point import LoadingPoint
from haulbook.models.settlement import Settlement, SettlementItem, SettlementStatus
from haulbook.models.user import User
from haulbook.schemas.center_fare import FareCalculationInput, FareCalculationResult
from haulbook.schemas.charter import CharterCreate, CharterQuote, CharterUpdate
from haulbook.services.audit_service import record_audit
from haulbook.services.fare_calculation_service import (
    apply_fare, calculate_fare, charter_fare_input, vehicle_type_for_tonnage,
)
from haulbook.services.region_normalize_service import normalize_region

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("date", "total_fare", "driver_fare", "created_at", "updated_at")
PRICING_FIELDS = {"vehicle_ton", "destinations", "stops", "is_negotiated", "negotiated_fare", "extra_fare"}


def get_charter(db: Session, charter_id: int) -> CharterRequest:
    charter = db.query(CharterRequest).filter(CharterRequest.id == charter_id).first()
    if not charter:
        raise NotFoundError("Charter not found")
    return charter


def list_charters(
    db: Session,
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    is_negotiated: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    query = db.query(CharterRequest)
    if search:
        term = f"%{search.strip()}%"
        query = (
            query.join(LoadingPoint, CharterRequest.loading_point_id == LoadingPoint.id)
            .outerjoin(Driver, CharterRequest.driver_id == Driver.id)
            .filter(or_(
                LoadingPoint.center_name.ilike(term),
                LoadingPoint.loading_point_name.ilike(term),
                Driver.name.ilike(term),
                CharterRequest.notes.ilike(term),
                CharterRequest.destinations.any(CharterDestination.region.ilike(term)),
            ))
        )
    if loading_point_id:
        query = query.filter(CharterRequest.loading_point_id == loading_point_id)
    if driver_id:
        query = query.filter(CharterRequest.driver_id == driver_id)
    if date_from:
        query = query.filter(CharterRequest.date >= date_from)
    if date_to:
        query = query.filter(CharterRequest.date <= date_to)
    if is_negotiated is not None:
        query = query.filter(CharterRequest.is_negotiated == is_negotiated)
    return apply_sorting(query, CharterRequest, sort_by, sort_order, SORTABLE_FIELDS)


def _check_center(db: Session, loading_point_id: int) -> LoadingPoint:
    loading_point = db.query(LoadingPoint).filter(LoadingPoint.id == loading_point_id).first()
    if not loading_point:
        raise NotFoundError("Loading point not found")
    if not loading_point.is_active:
        raise BusinessRuleError("Loading point is inactive", code="INACTIVE_CENTER")
    return loading_point


def _check_driver(db: Session, driver_id: Optional[int]) -> None:
    if driver_id is None:
        return
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise NotFoundError("Driver not found")
    if not driver.is_active:
        raise BusinessRuleError("Driver is inactive", code="INACTIVE_DRIVER")


def _set_destinations(db: Session, charter: CharterRequest, destinations) -> None:
    charter.destinations.clear()
    db.flush()
    for destination in sorted(destinations, key=lambda d: d.order):
        charter.destinations.append(
            CharterDestination(region=normalize_region(db, destination.region) or destination.region, order=destination.order)
        )


def _locked_settlement(db: Session, charter_id: int) -> Optional[Settlement]:
    """CONFIRMED or PAID settlement that already includes this charter."""
    return (
        db.query(Settlement)
        .join(SettlementItem, SettlementItem.settlement_id == Settlement.id)
        .filter(
            SettlementItem.charter_id == charter_id,
            Settlement.status.in_([SettlementStatus.CONFIRMED, SettlementStatus.PAID]),
        )
        .first()
    )


def quote_charter(db: Session, data: CharterQuote) -> FareCalculationResult:
    """Price without saving."""
    _check_center(db, data.loading_point_id)
    return calculate_fare(db, FareCalculationInput(
        loading_point_id=data.loading_point_id,
        vehicle_ton=data.vehicle_ton,
        regions=data.regions,
        stops=data.stops or len(data.regions),
        extra_adjustment=data.extra_adjustment,
        strict=data.strict,
    ))


def create_charter(
    db: Session, data: CharterCreate, user: Optional[User] = None
) -> Tuple[CharterRequest, FareCalculationResult]:
    """Validate, price and store a charter with its destinations in one transaction."""
    _check_center(db, data.loading_point_id)
    _check_driver(db, data.driver_id)

    charter = CharterRequest(
        loading_point_id=data.loading_point_id,
        date=data.date,
        vehicle_ton=data.vehicle_ton,
        vehicle_type=data.vehicle_type or vehicle_type_for_tonnage(data.vehicle_ton),
        stops=data.stops or len(data.destinations),
        is_negotiated=data.is_negotiated,
        negotiated_fare=data.negotiated_fare if data.is_negotiated else None,
        extra_fare=data.extra_fare,
        driver_id=data.driver_id,
        driver_fare=data.driver_fare,
        notes=data.notes,
        created_by=user.id if user else None,
    )
    _set_destinations(db, charter, data.destinations)

    # Pricing runs before the charter is added, so a strict-mode failure writes nothing.
    fare = calculate_fare(db, charter_fare_input(charter, data.strict))
    apply_fare(charter, fare)

    db.add(charter)
    db.flush()
    record_audit(
        db, user, AuditAction.CREATE, "CharterRequest", charter.id,
        changes={"total_fare": charter.total_fare, "regions": charter.regions, "driver_id": charter.driver_id},
        context={"is_fallback": fare.is_fallback, "warnings": fare.warnings},
    )
    db.commit()
    db.refresh(charter)
    logger.info(f"Charter {charter.id} created: {charter.total_fare} KRW (fallback={fare.is_fallback})")
    return charter, fare


def update_charter(
    db: Session, charter_id: int, data: CharterUpdate, user: Optional[User] = None
) -> Tuple[CharterRequest, Optional[FareCalculationResult]]:
    charter = get_charter(db, charter_id)
    if _locked_settlement(db, charter.id):
        raise ConflictError("Charter belongs to a confirmed settlement", code="SETTLEMENT_LOCKED")

    update_data = data.model_dump(exclude_unset=True, exclude={"destinations", "strict"})
    if "driver_id" in update_data:
        _check_driver(db, update_data["driver_id"])
    if update_data.get("is_negotiated") and update_data.get("negotiated_fare", charter.negotiated_fare) is None:
        raise BusinessRuleError("negotiated_fare is required when is_negotiated is true")

    for field, value in update_data.items():
        setattr(charter, field, value)
    if not charter.is_negotiated:
        charter.negotiated_fare = None
    if "vehicle_ton" in update_data and "vehicle_type" not in update_data:
        charter.vehicle_type = vehicle_type_for_tonnage(charter.vehicle_ton)
    if data.destinations is not None:
        _set_destinations(db, charter, data.destinations)
        if "stops" not in update_data:
            charter.stops = len(data.destinations)

    fare = None
    if PRICING_FIELDS & data.model_fields_set:
        fare = calculate_fare(db, charter_fare_input(charter, data.strict))
        apply_fare(charter, fare)

    record_audit(db, user, AuditAction.UPDATE, "CharterRequest", charter.id, changes=data.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(charter)
    return charter, fare


def assign_driver(
    db: Session, charter_id: int, driver_id: Optional[int], driver_fare: Optional[int], user: Optional[User] = None
) -> CharterRequest:
    charter = get_charter(db, charter_id)
    if _locked_settlement(db, charter.id):
        raise ConflictError("Charter belongs to a confirmed settlement", code="SETTLEMENT_LOCKED")
    _check_driver(db, driver_id)
    record_audit(
        db, user, AuditAction.UPDATE, "CharterRequest", charter.id,
        changes={
            "driver_id": {"old": charter.driver_id, "new": driver_id},
            "driver_fare": {"old": charter.driver_fare, "new": driver_fare},
        },
    )
    charter.driver_id = driver_id
    charter.driver_fare = driver_fare if driver_id else None
    db.commit()
    db.refresh(charter)
    return charter


def delete_charter(db: Session, charter_id: int, user: Optional[User] = None) -> None:
    charter = get_charter(db, charter_id)
    if _locked_settlement(db, charter.id):
        raise ConflictError("Charter belongs to a confirmed settlement", code="SETTLEMENT_LOCKED")
    record_audit(
        db, user, AuditAction.DELETE, "CharterRequest", charter.id,
        changes={"date": charter.date, "total_fare": charter.total_fare, "driver_id": charter.driver_id},
    )
    db.query(SettlementItem).filter(SettlementItem.charter_id == charter.id).update(
        {SettlementItem.charter_id: None}, synchronize_session=False
    )
    db.delete(charter)
    db.commit()
