"""
Fixed contract service: recurring routes and their monthly estimate.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from haulbook.core.exceptions import BusinessRuleError, NotFoundError
from haulbook.core.utils import apply_sorting, today, year_month_range
from haulbook.models.audit_log import AuditAction
from haulbook.models.driver import Driver
from haulbook.models.fixed_contract import ContractType, FixedContract
from haulbook.models.loading_point import LoadingPoint
from haulbook.models.user import User
from haulbook.schemas.fixed_contract import FixedContractCreate, FixedContractUpdate
from haulbook.services.audit_service import record_audit

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("route_name", "center_amount", "driver_amount", "start_date", "created_at", "updated_at")
DAILY_TYPES = (ContractType.FIXED_DAILY,)
MONTHLY_TYPES = (ContractType.FIXED_MONTHLY, ContractType.CONSIGNED_MONTHLY)


def get_fixed_contract(db: Session, contract_id: int) -> FixedContract:
    contract = db.query(FixedContract).filter(FixedContract.id == contract_id).first()
    if not contract:
        raise NotFoundError("Fixed contract not found")
    return contract


def list_fixed_contracts(
    db: Session,
    search: Optional[str] = None,
    loading_point_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    contract_type: Optional[ContractType] = None,
    is_active: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    query = db.query(FixedContract)
    if search:
        term = f"%{search.strip()}%"
        query = (
            query.join(LoadingPoint, FixedContract.loading_point_id == LoadingPoint.id)
            .outerjoin(Driver, FixedContract.driver_id == Driver.id)
            .filter(or_(
                FixedContract.route_name.ilike(term),
                LoadingPoint.center_name.ilike(term),
                Driver.name.ilike(term),
            ))
        )
    if loading_point_id:
        query = query.filter(FixedContract.loading_point_id == loading_point_id)
    if driver_id:
        query = query.filter(FixedContract.driver_id == driver_id)
    if contract_type:
        query = query.filter(FixedContract.center_contract_type == contract_type)
    if is_active is not None:
        query = query.filter(FixedContract.is_active == is_active)
    return apply_sorting(query, FixedContract, sort_by, sort_order, SORTABLE_FIELDS)


def _check_references(db: Session, loading_point_id: Optional[int], driver_id: Optional[int]):
    if loading_point_id is not None:
        if not db.query(LoadingPoint.id).filter(LoadingPoint.id == loading_point_id).first():
            raise NotFoundError("Loading point not found")
    if driver_id is not None:
        driver = db.query(Driver).filter(Driver.id == driver_id).first()
        if not driver:
            raise NotFoundError("Driver not found")
        if not driver.is_active:
            raise BusinessRuleError("Driver is inactive", code="INACTIVE_DRIVER")


def create_fixed_contract(db: Session, data: FixedContractCreate, user: Optional[User] = None) -> FixedContract:
    _check_references(db, data.loading_point_id, data.driver_id)
    contract = FixedContract(**data.model_dump(), created_by=user.id if user else None)
    db.add(contract)
    db.flush()
    record_audit(db, user, AuditAction.CREATE, "FixedContract", contract.id, changes=data.model_dump())
    db.commit()
    db.refresh(contract)
    return contract


def update_fixed_contract(
    db: Session, contract_id: int, data: FixedContractUpdate, user: Optional[User] = None
) -> FixedContract:
    contract = get_fixed_contract(db, contract_id)
    update_data = data.model_dump(exclude_unset=True)
    _check_references(db, update_data.get("loading_point_id"), update_data.get("driver_id"))
    start = update_data.get("start_date", contract.start_date)
    end = update_data.get("end_date", contract.end_date)
    if start and end and end < start:
        raise BusinessRuleError("end_date must not be before start_date")
    for field, value in update_data.items():
        setattr(contract, field, value)
    record_audit(db, user, AuditAction.UPDATE, "FixedContract", contract.id, changes=update_data)
    db.commit()
    db.refresh(contract)
    return contract


def toggle_fixed_contract(db: Session, contract_id: int, user: Optional[User] = None) -> FixedContract:
    contract = get_fixed_contract(db, contract_id)
    contract.is_active = not contract.is_active
    record_audit(
        db, user, AuditAction.UPDATE, "FixedContract", contract.id,
        changes={"is_active": {"old": not contract.is_active, "new": contract.is_active}},
    )
    db.commit()
    db.refresh(contract)
    return contract


def delete_fixed_contract(db: Session, contract_id: int, hard: bool = False, user: Optional[User] = None) -> None:
    contract = get_fixed_contract(db, contract_id)
    if hard:
        record_audit(db, user, AuditAction.DELETE, "FixedContract", contract.id, changes={"permanently_deleted": True})
        db.delete(contract)
    else:
        contract.is_active = False
        record_audit(db, user, AuditAction.DELETE, "FixedContract", contract.id, changes={"is_active": False})
    db.commit()


def count_operating_days(operating_days: List[int], start: date, end: date) -> int:
    """Days between start and end (inclusive) whose weekday (0=Sun .. 6=Sat) is operated."""
    if not operating_days or end < start:
        return 0
    wanted = set(operating_days)
    count = 0
    current = start
    while current <= end:
        if (current.weekday() + 1) % 7 in wanted:
            count += 1
        current += timedelta(days=1)
    return count


def monthly_amount(contract_type: Optional[ContractType], amount: Optional[int], operating_days: int) -> int:
    """Daily contracts pay per operated day, monthly ones once, per-ride ones are settled per charter."""
    if not contract_type or not amount:
        return 0
    if contract_type in DAILY_TYPES:
        return amount * operating_days
    if contract_type in MONTHLY_TYPES:
        return amount
    return 0


def get_stats(db: Session, year_month: Optional[str] = None) -> dict:
    """Counts plus estimated revenue (center side) and cost (driver side) for a month."""
    year_month = year_month or today().strftime("%Y-%m")
    month_start, month_end = year_month_range(year_month)

    total = db.query(func.count(FixedContract.id)).scalar() or 0
    active_contracts = db.query(FixedContract).filter(FixedContract.is_active.is_(True)).all()
    recent_since = datetime.now() - timedelta(days=30)

    revenue = 0
    cost = 0
    by_type = {}
    for contract in active_contracts:
        key = contract.center_contract_type.value
        by_type[key] = by_type.get(key, 0) + 1

        period_start = max(month_start, contract.start_date) if contract.start_date else month_start
        period_end = min(month_end, contract.end_date) if contract.end_date else month_end
        if period_end < period_start:
            continue
        days = count_operating_days(contract.operating_days or [], period_start, period_end)
        revenue += monthly_amount(contract.center_contract_type, contract.center_amount, days)
        cost += monthly_amount(contract.driver_contract_type, contract.driver_amount, days)

    return {
        "year_month": year_month,
        "total_contracts": total,
        "active_contracts": len(active_contracts),
        "inactive_contracts": total - len(active_contracts),
        "assigned_contracts": sum(1 for c in active_contracts if c.driver_id),
        "recent_contracts": sum(1 for c in active_contracts if c.created_at and c.created_at >= recent_since),
        "monthly_revenue": revenue,
        "monthly_cost": cost,
        "monthly_margin": revenue - cost,
        "by_contract_type": by_type,
    }
