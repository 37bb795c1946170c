"""
Settlement service for monthly driver settlements.

A settlement aggregates one driver's charters for one month into line items:

    TRIP       driver fare of each charter (charter fare without the extra
               when no driver fare is set)
    ADDITION   extra fare of a charter, zero-amount note for negotiated charters,
               or a manual adjustment
    DEDUCTION  manual adjustment

    final_amount = total_base_fare + total_additions - total_deductions

DRAFT settlements can be recalculated any number of times with the same
result; manual items are carried over. CONFIRMED settlements are locked.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from haulbook.core.exceptions import AppError, BusinessRuleError, ConflictError, NotFoundError
from haulbook.core.utils import apply_sorting, is_future_month, parse_year_month, year_month_range
from haulbook.models.audit_log import AuditAction
from haulbook.models.charter import CharterRequest
from haulbook.models.driver import Driver
from haulbook.models.settlement import Settlement, SettlementItem, SettlementItemType, SettlementStatus
from haulbook.models.user import User
from haulbook.schemas.settlement import ManualItemCreate, SettlementCalculation, SettlementItemData, SettlementPreview
from haulbook.services.audit_service import record_audit

logger = logging.getLogger(__name__)

LOCKED_STATUSES = (SettlementStatus.CONFIRMED, SettlementStatus.PAID)
SORTABLE_FIELDS = ("year_month", "final_amount", "total_trips", "created_at", "updated_at")


def get_settlement(db: Session, settlement_id: int) -> Settlement:
    settlement = db.query(Settlement).filter(Settlement.id == settlement_id).first()
    if not settlement:
        raise NotFoundError("Settlement not found")
    return settlement


def find_settlement(db: Session, driver_id: int, year_month: str) -> Optional[Settlement]:
    return (
        db.query(Settlement)
        .filter(Settlement.driver_id == driver_id, Settlement.year_month == year_month)
        .first()
    )


def list_settlements(
    db: Session,
    status: Optional[SettlementStatus] = None,
    driver_id: Optional[int] = None,
    year_month: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    query = db.query(Settlement)
    if status:
        query = query.filter(Settlement.status == status)
    if driver_id:
        query = query.filter(Settlement.driver_id == driver_id)
    if year_month:
        parse_year_month(year_month)
        query = query.filter(Settlement.year_month == year_month)
    if search:
        query = query.join(Driver, Settlement.driver_id == Driver.id).filter(Driver.name.ilike(f"%{search.strip()}%"))
    return apply_sorting(query, Settlement, sort_by, sort_order, SORTABLE_FIELDS)


def _charter_description(charter: CharterRequest) -> str:
    center = charter.loading_point.center_name if charter.loading_point else "-"
    return f"Charter: {center} / {charter.vehicle_type} / {' → '.join(charter.regions)}"


def _summarize(driver: Driver, year_month: str, items: List[SettlementItemData]) -> SettlementCalculation:
    total_base = Decimal(0)
    total_additions = Decimal(0)
    total_deductions = Decimal(0)
    for item in items:
        if item.type == SettlementItemType.TRIP:
            total_base += item.amount
        elif item.type == SettlementItemType.ADDITION:
            total_additions += item.amount
        else:
            total_deductions += item.amount
    return SettlementCalculation(
        driver_id=driver.id,
        driver_name=driver.name,
        year_month=year_month,
        total_trips=sum(1 for item in items if item.type == SettlementItemType.TRIP),
        total_base_fare=total_base,
        total_additions=total_additions,
        total_deductions=total_deductions,
        final_amount=total_base + total_additions - total_deductions,
        items=items,
    )


def _trip_amount(charter: CharterRequest) -> int:
    """Driver fare, else the charter fare without its extra (the extra is its own ADDITION)."""
    if charter.driver_fare is not None:
        return charter.driver_fare
    if charter.is_negotiated and charter.negotiated_fare is not None:
        return charter.negotiated_fare
    return (charter.base_fare or 0) + (charter.region_fare or 0) + (charter.stop_fare or 0)


def calculate_monthly_settlement(db: Session, driver_id: int, year_month: str) -> SettlementCalculation:
    """
    Aggregate a driver's month without writing anything.

    Manual items of an existing settlement for the month are included.
    """
    start, end = year_month_range(year_month)
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise NotFoundError(f"Driver not found: {driver_id}")

    charters = (
        db.query(CharterRequest)
        .filter(
            CharterRequest.driver_id == driver_id,
            CharterRequest.date >= start,
            CharterRequest.date <= end,
        )
        .order_by(CharterRequest.date.asc(), CharterRequest.id.asc())
        .all()
    )

    items: List[SettlementItemData] = []
    for charter in charters:
        items.append(SettlementItemData(
            charter_id=charter.id,
            type=SettlementItemType.TRIP,
            description=_charter_description(charter),
            amount=Decimal(_trip_amount(charter)),
            date=charter.date,
        ))
        if charter.is_negotiated:
            items.append(SettlementItemData(
                charter_id=charter.id,
                type=SettlementItemType.ADDITION,
                description=f"Negotiated fare: {charter.notes or 'no reason given'}",
                amount=Decimal(0),
                date=charter.date,
            ))
        if charter.extra_fare and charter.extra_fare > 0:
            items.append(SettlementItemData(
                charter_id=charter.id,
                type=SettlementItemType.ADDITION,
                description=f"Extra fare: {charter.notes or 'waiting/return/handling'}",
                amount=Decimal(charter.extra_fare),
                date=charter.date,
            ))

    existing = find_settlement(db, driver_id, year_month)
    if existing:
        items.extend(SettlementItemData.model_validate(item) for item in existing.items if item.is_manual)

    return _summarize(driver, year_month, items)


def preview_settlement(db: Session, driver_id: int, year_month: str) -> SettlementPreview:
    """
    Calculation plus warnings.

    can_confirm is false when the month is already locked, the driver is
    inactive or there are no trips. Missing driver fares only warn.
    """
    if is_future_month(year_month):
        raise BusinessRuleError("Settlements for future months are not allowed", code="INVALID_MONTH")
    calculation = calculate_monthly_settlement(db, driver_id, year_month)
    existing = find_settlement(db, driver_id, year_month)
    driver = db.query(Driver).filter(Driver.id == driver_id).first()

    warnings = []
    if existing and existing.status in LOCKED_STATUSES:
        warnings.append("A confirmed settlement already exists for this month")
    if not driver.is_active:
        warnings.append("Driver is inactive")
    if calculation.total_trips == 0:
        warnings.append("No charters for this month")
    missing_fare = sum(
        1 for c in driver.charters
        if c.driver_fare is None and c.date.strftime("%Y-%m") == year_month
    )
    if missing_fare:
        warnings.append(f"{missing_fare} charter(s) have no driver fare; charter fare was used")

    blocking = bool(existing and existing.status in LOCKED_STATUSES) or not driver.is_active
    return SettlementPreview(
        **calculation.model_dump(),
        existing_status=existing.status if existing else None,
        warnings=warnings,
        can_confirm=not blocking and calculation.total_trips > 0,
    )


def _write_settlement(
    db: Session, settlement: Optional[Settlement], calculation: SettlementCalculation, user: Optional[User]
) -> Settlement:
    """Replace items and totals of a settlement (created when missing)."""
    if settlement is None:
        settlement = Settlement(
            driver_id=calculation.driver_id,
            year_month=calculation.year_month,
            status=SettlementStatus.DRAFT,
            created_by=user.id if user else None,
        )
        db.add(settlement)
    else:
        settlement.items.clear()
        db.flush()

    settlement.total_trips = calculation.total_trips
    settlement.total_base_fare = calculation.total_base_fare
    settlement.total_additions = calculation.total_additions
    settlement.total_deductions = calculation.total_deductions
    settlement.final_amount = calculation.final_amount
    for item in calculation.items:
        settlement.items.append(SettlementItem(**item.model_dump()))
    db.flush()
    return settlement


def create_or_update_settlement(
    db: Session, driver_id: int, year_month: str, user: Optional[User] = None, remarks: Optional[str] = None
) -> Settlement:
    """Create or recalculate the DRAFT settlement; confirmed months are refused."""
    existing = find_settlement(db, driver_id, year_month)
    if existing and existing.status in LOCKED_STATUSES:
        raise ConflictError("Confirmed settlements cannot be modified", code="ALREADY_CONFIRMED")

    calculation = calculate_monthly_settlement(db, driver_id, year_month)
    settlement = _write_settlement(db, existing, calculation, user)
    if remarks is not None:
        settlement.remarks = remarks
    record_audit(
        db, user, AuditAction.UPDATE if existing else AuditAction.CREATE, "Settlement", settlement.id,
        changes={"final_amount": calculation.final_amount, "total_trips": calculation.total_trips},
        context={"driver_id": driver_id, "year_month": year_month},
    )
    _commit_unique(db)
    db.refresh(settlement)
    return settlement


def finalize_settlement(
    db: Session, driver_id: int, year_month: str, user: Optional[User] = None, remarks: Optional[str] = None
) -> Settlement:
    """Calculate and lock a month in one step."""
    if is_future_month(year_month):
        raise BusinessRuleError("Settlements for future months are not allowed", code="INVALID_MONTH")

    existing = find_settlement(db, driver_id, year_month)
    if existing and existing.status in LOCKED_STATUSES:
        raise ConflictError("Settlement for this month is already confirmed", code="ALREADY_CONFIRMED")

    calculation = calculate_monthly_settlement(db, driver_id, year_month)
    if calculation.total_trips == 0:
        raise BusinessRuleError("No charters to settle for this month", code="NO_DATA")

    previous_status = existing.status.value if existing else "NONE"
    settlement = _write_settlement(db, existing, calculation, user)
    settlement.status = SettlementStatus.CONFIRMED
    settlement.confirmed_at = datetime.now()
    settlement.confirmed_by = user.id if user else None
    if remarks is not None:
        settlement.remarks = remarks
    record_audit(
        db, user, AuditAction.CONFIRM, "Settlement", settlement.id,
        changes={
            "previous_status": previous_status,
            "new_status": SettlementStatus.CONFIRMED.value,
            "final_amount": calculation.final_amount,
        },
        context={"driver_id": driver_id, "year_month": year_month, "total_trips": calculation.total_trips},
    )
    _commit_unique(db, code="ALREADY_CONFIRMED")
    db.refresh(settlement)
    logger.info(
        f"Settlement finalized: driver {driver_id} {year_month} "
        f"{calculation.total_trips} trips, {calculation.final_amount} KRW"
    )
    return settlement


def _commit_unique(db: Session, code: str = "CONFLICT") -> None:
    """Commit; a concurrent writer for the same driver and month loses with 409."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Settlement was modified concurrently", code=code)


def confirm_settlement(db: Session, settlement_id: int, user: Optional[User] = None) -> Settlement:
    settlement = get_settlement(db, settlement_id)
    if settlement.status != SettlementStatus.DRAFT:
        raise ConflictError("Only DRAFT settlements can be confirmed", code="INVALID_STATUS")
    if settlement.total_trips == 0:
        raise BusinessRuleError("No charters to settle for this month", code="NO_DATA")
    settlement.status = SettlementStatus.CONFIRMED
    settlement.confirmed_at = datetime.now()
    settlement.confirmed_by = user.id if user else None
    record_audit(
        db, user, AuditAction.CONFIRM, "Settlement", settlement.id,
        changes={"previous_status": "DRAFT", "new_status": "CONFIRMED", "final_amount": settlement.final_amount},
    )
    db.commit()
    db.refresh(settlement)
    return settlement


def reopen_settlement(db: Session, settlement_id: int, user: Optional[User] = None) -> Settlement:
    """CONFIRMED back to DRAFT; paid settlements stay closed."""
    settlement = get_settlement(db, settlement_id)
    if settlement.status != SettlementStatus.CONFIRMED:
        raise ConflictError("Only CONFIRMED settlements can be reopened", code="INVALID_STATUS")
    settlement.status = SettlementStatus.DRAFT
    settlement.confirmed_at = None
    settlement.confirmed_by = None
    record_audit(
        db, user, AuditAction.UPDATE, "Settlement", settlement.id,
        changes={"previous_status": "CONFIRMED", "new_status": "DRAFT"},
    )
    db.commit()
    db.refresh(settlement)
    return settlement


def mark_paid(db: Session, settlement_id: int, user: Optional[User] = None) -> Settlement:
    settlement = get_settlement(db, settlement_id)
    if settlement.status != SettlementStatus.CONFIRMED:
        raise ConflictError("Only CONFIRMED settlements can be marked as paid", code="INVALID_STATUS")
    settlement.status = SettlementStatus.PAID
    settlement.paid_at = datetime.now()
    record_audit(
        db, user, AuditAction.UPDATE, "Settlement", settlement.id,
        changes={"previous_status": "CONFIRMED", "new_status": "PAID", "final_amount": settlement.final_amount},
    )
    db.commit()
    db.refresh(settlement)
    return settlement


def update_remarks(db: Session, settlement_id: int, remarks: Optional[str], user: Optional[User] = None) -> Settlement:
    settlement = get_settlement(db, settlement_id)
    if settlement.status in LOCKED_STATUSES:
        raise ConflictError("Confirmed settlements cannot be modified", code="ALREADY_CONFIRMED")
    record_audit(db, user, AuditAction.UPDATE, "Settlement", settlement.id,
                 changes={"remarks": {"old": settlement.remarks, "new": remarks}})
    settlement.remarks = remarks
    db.commit()
    db.refresh(settlement)
    return settlement


def add_manual_item(db: Session, settlement_id: int, data: ManualItemCreate, user: Optional[User] = None) -> Settlement:
    """Add an ADDITION or DEDUCTION to a DRAFT settlement and refresh its totals."""
    settlement = get_settlement(db, settlement_id)
    if settlement.status != SettlementStatus.DRAFT:
        raise ConflictError("Items can only be added to DRAFT settlements", code="INVALID_STATUS")
    start, end = year_month_range(settlement.year_month)
    item_date = data.date or end
    if not (start <= item_date <= end):
        raise BusinessRuleError("Item date must fall within the settlement month")

    settlement.items.append(SettlementItem(
        type=data.type,
        description=data.description,
        amount=data.amount,
        date=item_date,
        is_manual=True,
    ))
    db.flush()
    _refresh_totals(settlement)
    record_audit(
        db, user, AuditAction.UPDATE, "Settlement", settlement.id,
        changes={"manual_item": data.model_dump(), "final_amount": settlement.final_amount},
    )
    db.commit()
    db.refresh(settlement)
    return settlement


def _refresh_totals(settlement: Settlement) -> None:
    totals: Dict[SettlementItemType, Decimal] = {t: Decimal(0) for t in SettlementItemType}
    for item in settlement.items:
        totals[item.type] += Decimal(item.amount)
    settlement.total_trips = sum(1 for item in settlement.items if item.type == SettlementItemType.TRIP)
    settlement.total_base_fare = totals[SettlementItemType.TRIP]
    settlement.total_additions = totals[SettlementItemType.ADDITION]
    settlement.total_deductions = totals[SettlementItemType.DEDUCTION]
    settlement.final_amount = (
        totals[SettlementItemType.TRIP] + totals[SettlementItemType.ADDITION] - totals[SettlementItemType.DEDUCTION]
    )


def delete_settlement(db: Session, settlement_id: int, user: Optional[User] = None) -> None:
    settlement = get_settlement(db, settlement_id)
    if settlement.status != SettlementStatus.DRAFT:
        raise ConflictError("Only DRAFT settlements can be deleted", code="INVALID_STATUS")
    record_audit(
        db, user, AuditAction.DELETE, "Settlement", settlement.id,
        changes={"driver_id": settlement.driver_id, "year_month": settlement.year_month},
    )
    db.delete(settlement)
    db.commit()


def create_bulk_settlements(db: Session, driver_ids: List[int], year_month: str, user: Optional[User] = None) -> dict:
    """DRAFT settlements for many drivers; one driver's failure does not stop the rest."""
    settlements = []
    errors = []
    for driver_id in driver_ids:
        try:
            settlements.append(create_or_update_settlement(db, driver_id, year_month, user))
        except AppError as e:
            db.rollback()
            errors.append({"driver_id": driver_id, "code": e.code, "error": e.message})
    logger.info(f"Bulk settlements for {year_month}: {len(settlements)} ok, {len(errors)} failed")
    return {
        "success": len(settlements),
        "failed": len(errors),
        "settlements": settlements,
        "errors": errors,
    }
