"""
Driver service: CRUD, search and activation for drivers.
"""
import logging
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from haulbook.core.exceptions import ConflictError, NotFoundError
from haulbook.core.utils import apply_sorting, digits_only
from haulbook.models.audit_log import AuditAction
from haulbook.models.charter import CharterRequest
from haulbook.models.driver import Driver
from haulbook.models.fixed_contract import FixedContract
from haulbook.models.settlement import Settlement
from haulbook.models.user import User
from haulbook.schemas.driver import DriverCreate, DriverUpdate
from haulbook.services.audit_service import diff_changes, record_audit

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("name", "vehicle_number", "created_at", "updated_at")


def get_driver(db: Session, driver_id: int) -> Driver:
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise NotFoundError("Driver not found")
    return driver


def list_drivers(
    db: Session,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    """Filtered, sorted query; the caller paginates."""
    query = db.query(Driver)
    if search:
        term = f"%{search.strip()}%"
        conditions = [Driver.name.ilike(term), Driver.vehicle_number.ilike(term)]
        phone_digits = digits_only(search)
        if phone_digits:
            conditions.append(Driver.phone.like(f"%{phone_digits}%"))
        query = query.filter(or_(*conditions))
    if is_active is not None:
        query = query.filter(Driver.is_active == is_active)
    return apply_sorting(query, Driver, sort_by, sort_order, SORTABLE_FIELDS)


def search_drivers(db: Session, q: str, limit: int = 10) -> List[Driver]:
    """Autocomplete over active drivers by name or phone."""
    term = f"%{q.strip()}%"
    conditions = [Driver.name.ilike(term)]
    phone_digits = digits_only(q)
    if phone_digits:
        conditions.append(Driver.phone.like(f"%{phone_digits}%"))
    return (
        db.query(Driver)
        .filter(Driver.is_active.is_(True), or_(*conditions))
        .order_by(Driver.name.asc())
        .limit(limit)
        .all()
    )


def _check_unique(db: Session, phone: Optional[str], business_number: Optional[str], exclude_id: Optional[int] = None):
    if phone:
        query = db.query(Driver).filter(Driver.phone == phone)
        if exclude_id:
            query = query.filter(Driver.id != exclude_id)
        if query.first():
            raise ConflictError("A driver with this phone number already exists", code="DUPLICATE")
    if business_number:
        query = db.query(Driver).filter(Driver.business_number == business_number)
        if exclude_id:
            query = query.filter(Driver.id != exclude_id)
        if query.first():
            raise ConflictError("A driver with this business number already exists", code="DUPLICATE")


def _snapshot(driver: Driver) -> dict:
    return {
        "name": driver.name,
        "phone": driver.phone,
        "vehicle_number": driver.vehicle_number,
        "business_name": driver.business_name,
        "representative": driver.representative,
        "business_number": driver.business_number,
        "bank_name": driver.bank_name,
        "account_number": driver.account_number,
        "remarks": driver.remarks,
        "is_active": driver.is_active,
    }


def create_driver(db: Session, data: DriverCreate, user: Optional[User] = None) -> Driver:
    _check_unique(db, data.phone, data.business_number)
    driver = Driver(**data.model_dump())
    db.add(driver)
    db.flush()
    record_audit(db, user, AuditAction.CREATE, "Driver", driver.id, changes=_snapshot(driver))
    db.commit()
    db.refresh(driver)
    logger.info(f"Driver created: {driver.id} {driver.name}")
    return driver


def update_driver(db: Session, driver_id: int, data: DriverUpdate, user: Optional[User] = None) -> Driver:
    driver = get_driver(db, driver_id)
    update_data = data.model_dump(exclude_unset=True)
    _check_unique(db, update_data.get("phone"), update_data.get("business_number"), exclude_id=driver.id)

    before = _snapshot(driver)
    for field, value in update_data.items():
        setattr(driver, field, value)
    changes = diff_changes(before, _snapshot(driver))
    if changes:
        record_audit(db, user, AuditAction.UPDATE, "Driver", driver.id, changes=changes)
    db.commit()
    db.refresh(driver)
    return driver


def set_driver_active(db: Session, driver_id: int, is_active: bool, user: Optional[User] = None) -> Driver:
    driver = get_driver(db, driver_id)
    if driver.is_active != is_active:
        record_audit(
            db, user, AuditAction.UPDATE, "Driver", driver.id,
            changes={"is_active": {"old": driver.is_active, "new": is_active}},
        )
        driver.is_active = is_active
        db.commit()
        db.refresh(driver)
    return driver


def toggle_driver(db: Session, driver_id: int, user: Optional[User] = None) -> Driver:
    driver = get_driver(db, driver_id)
    return set_driver_active(db, driver_id, not driver.is_active, user)


def has_dependants(db: Session, driver_id: int) -> bool:
    return any(
        db.query(model.id).filter(model.driver_id == driver_id).first() is not None
        for model in (CharterRequest, Settlement, FixedContract)
    )


def delete_driver(db: Session, driver_id: int, hard: bool = False, user: Optional[User] = None) -> None:
    """Soft delete deactivates; hard delete is refused while charters, settlements or contracts reference the driver."""
    driver = get_driver(db, driver_id)
    if not hard:
        set_driver_active(db, driver_id, False, user)
        return
    if has_dependants(db, driver_id):
        raise ConflictError(
            "Driver has charters, settlements or contracts; deactivate instead", code="HAS_DEPENDANTS"
        )
    for vehicle in driver.vehicles:
        vehicle.driver_id = None
    record_audit(db, user, AuditAction.DELETE, "Driver", driver.id, changes={"permanently_deleted": True})
    db.delete(driver)
    db.commit()
    logger.info(f"Driver {driver_id} permanently deleted")


def bulk_action(db: Session, ids: List[int], action: str, user: Optional[User] = None) -> dict:
    """activate / deactivate / delete for many drivers; skipped ids are reported."""
    drivers = db.query(Driver).filter(Driver.id.in_(ids)).all()
    found = {d.id for d in drivers}
    affected = 0
    skipped = [{"id": i, "reason": "not found"} for i in ids if i not in found]

    for driver in drivers:
        if action == "delete":
            if has_dependants(db, driver.id):
                skipped.append({"id": driver.id, "reason": "has dependants"})
                continue
            for vehicle in driver.vehicles:
                vehicle.driver_id = None
            record_audit(db, user, AuditAction.DELETE, "Driver", driver.id, context={"source": "bulk"})
            db.delete(driver)
            affected += 1
        else:
            target = action == "activate"
            if driver.is_active == target:
                continue
            driver.is_active = target
            record_audit(
                db, user, AuditAction.UPDATE, "Driver", driver.id,
                changes={"is_active": {"old": not target, "new": target}}, context={"source": "bulk"},
            )
            affected += 1
    db.commit()
    return {"action": action, "affected": affected, "skipped": skipped}
