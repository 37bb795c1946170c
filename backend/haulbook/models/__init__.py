"""Models package - Import all models for SQLAlchemy registration."""
from haulbook.models.user import User
from haulbook.models.driver import Driver
from haulbook.models.vehicle import Vehicle, VehicleOwnership
from haulbook.models.loading_point import LoadingPoint
from haulbook.models.center_fare import CenterFare, FareType
from haulbook.models.charter import CharterRequest, CharterDestination
from haulbook.models.fixed_contract import FixedContract, ContractType
from haulbook.models.settlement import (
    Settlement, SettlementItem, SettlementStatus, SettlementItemType,
)
from haulbook.models.region_alias import RegionAlias
from haulbook.models.audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "Driver",
    "Vehicle",
    "VehicleOwnership",
    "LoadingPoint",
    "CenterFare",
    "FareType",
    "CharterRequest",
    "CharterDestination",
    "FixedContract",
    "ContractType",
    "Settlement",
    "SettlementItem",
    "SettlementStatus",
    "SettlementItemType",
    "RegionAlias",
    "AuditLog",
    "AuditAction",
]
