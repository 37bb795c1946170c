"""
Vehicle service.
"""
import logging
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from haulbook.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from haulbook.core.utils import apply_sorting
from haulbook.models.audit_log import AuditAction
from haulbook.models.driver import Driver
from haulbook.models.user import User
from haulbook.models.vehicle import Vehicle, VehicleOwnership
from haulbook.schemas.vehicle import VehicleCreate, VehicleUpdate
from haulbook.services.audit_service import record_audit

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("plate_number", "vehicle_type", "year", "created_at", "updated_at")


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise NotFoundError("Vehicle not found")
    return vehicle


def list_vehicles(
    db: Session,
    search: Optional[str] = None,
    ownership: Optional[VehicleOwnership] = None,
    driver_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
):
    query = db.query(Vehicle)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Vehicle.plate_number.ilike(term), Vehicle.vehicle_type.ilike(term)))
    if ownership:
        query = query.filter(Vehicle.ownership == ownership)
    if driver_id:
        query = query.filter(Vehicle.driver_id == driver_id)
    if is_active is not None:
        query = query.filter(Vehicle.is_active == is_active)
    return apply_sorting(query, Vehicle, sort_by, sort_order, SORTABLE_FIELDS)


def _check_driver(db: Session, driver_id: Optional[int]):
    if driver_id is None:
        return
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise NotFoundError("Driver not found")
    if not driver.is_active:
        raise BusinessRuleError("Cannot assign an inactive driver", code="INACTIVE_DRIVER")


def _check_plate(db: Session, plate_number: Optional[str], exclude_id: Optional[int] = None):
    if not plate_number:
        return
    query = db.query(Vehicle).filter(Vehicle.plate_number == plate_number)
    if exclude_id:
        query = query.filter(Vehicle.id != exclude_id)
    if query.first():
        raise ConflictError("A vehicle with this plate number already exists", code="DUPLICATE")


def create_vehicle(db: Session, data: VehicleCreate, user: Optional[User] = None) -> Vehicle:
    _check_plate(db, data.plate_number)
    _check_driver(db, data.driver_id)
    vehicle = Vehicle(**data.model_dump())
    db.add(vehicle)
    db.flush()
    record_audit(db, user, AuditAction.CREATE, "Vehicle", vehicle.id, changes=data.model_dump())
    db.commit()
    db.refresh(vehicle)
    return vehicle


def update_vehicle(db: Session, vehicle_id: int, data: VehicleUpdate, user: Optional[User] = None) -> Vehicle:
    vehicle = get_vehicle(db, vehicle_id)
    update_data = data.model_dump(exclude_unset=True)
    _check_plate(db, update_data.get("plate_number"), exclude_id=vehicle.id)
    if "driver_id" in update_data:
        _check_driver(db, update_data["driver_id"])
    for field, value in update_data.items():
        setattr(vehicle, field, value)
    record_audit(db, user, AuditAction.UPDATE, "Vehicle", vehicle.id, changes=update_data)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def assign_driver(db: Session, vehicle_id: int, driver_id: Optional[int], user: Optional[User] = None) -> Vehicle:
    """Assign a driver, or unassign with None."""
    vehicle = get_vehicle(db, vehicle_id)
    _check_driver(db, driver_id)
    record_audit(
        db, user, AuditAction.UPDATE, "Vehicle", vehicle.id,
        changes={"driver_id": {"old": vehicle.driver_id, "new": driver_id}},
    )
    vehicle.driver_id = driver_id
    db.commit()
    db.refresh(vehicle)
    logger.info(f"Vehicle {vehicle.plate_number} assigned to driver {driver_id}")
    return vehicle


def toggle_vehicle(db: Session, vehicle_id: int, user: Optional[User] = None) -> Vehicle:
    vehicle = get_vehicle(db, vehicle_id)
    vehicle.is_active = not vehicle.is_active
    record_audit(
        db, user, AuditAction.UPDATE, "Vehicle", vehicle.id,
        changes={"is_active": {"old": not vehicle.is_active, "new": vehicle.is_active}},
    )
    db.commit()
    db.refresh(vehicle)
    return vehicle


def delete_vehicle(db: Session, vehicle_id: int, hard: bool = False, user: Optional[User] = None) -> None:
    """Vehicles have no dependants, so hard delete is always allowed."""
    vehicle = get_vehicle(db, vehicle_id)
    if hard:
        record_audit(db, user, AuditAction.DELETE, "Vehicle", vehicle.id, changes={"permanently_deleted": True})
        db.delete(vehicle)
    else:
        vehicle.is_active = False
        record_audit(db, user, AuditAction.DELETE, "Vehicle", vehicle.id, changes={"is_active": False})
    db.commit()
