"""
Bulk import of drivers, vehicles, loading points, center fares and fixed contracts.

Each entity has an ImportSpec: the canonical columns with their header
synonyms, a converter from a spreadsheet record to the entity's create
schema, and an upsert keyed on the entity's natural key.

All rows are validated first. Valid rows are then written in one
transaction, each inside a SAVEPOINT so that a database error on one row
is reported and the remaining rows still go in.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple
from pydantic import BaseModel, ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from haulbook.core.exceptions import AppError, NotFoundError, ValidationFailed
from haulbook.core.utils import digits_only
from haulbook.models.audit_log import AuditAction
from haulbook.models.center_fare import CenterFare, FareType
from haulbook.models.driver import Driver
from haulbook.models.fixed_contract import ContractType, FixedContract
from haulbook.models.loading_point import LoadingPoint
from haulbook.models.user import User
from haulbook.models.vehicle import Vehicle, VehicleOwnership
from haulbook.schemas.center_fare import CenterFareCreate
from haulbook.schemas.driver import DriverCreate
from haulbook.schemas.fixed_contract import FixedContractCreate
from haulbook.schemas.loading_point import LoadingPointCreate
from haulbook.schemas.vehicle import VehicleCreate
from haulbook.services.audit_service import record_audit
from haulbook.services.center_fare_service import find_duplicate
from haulbook.services.region_normalize_service import normalize_region
from haulbook.services.spreadsheet import map_columns_by_synonyms, parse_upload

logger = logging.getLogger(__name__)


@dataclass
class Column:
    field: str
    label: str  # template header
    synonyms: List[str]
    required: bool = False


@dataclass
class ImportSpec:
    entity: str
    columns: List[Column]
    convert: Callable[[Session, Dict[str, str]], BaseModel]
    find_existing: Callable[[Session, Any], Optional[Any]]
    model: Any
    key: Callable[[Any], tuple]  # natural key, used to spot repeated rows in one file
    sample: List[str] = field(default_factory=list)

    @property
    def synonyms(self) -> Dict[str, List[str]]:
        return {c.field: [c.label] + c.synonyms for c in self.columns}

    @property
    def required_fields(self) -> List[str]:
        return [c.field for c in self.columns if c.required]


# Value parsers

WEEKDAYS = {
    "일": 0, "월": 1, "화": 2, "수": 3, "목": 4, "금": 5, "토": 6,
    "일요일": 0, "월요일": 1, "화요일": 2, "수요일": 3, "목요일": 4, "금요일": 5, "토요일": 6,
    "sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6,
}

CONTRACT_TYPES = {
    "고정(일대)": ContractType.FIXED_DAILY,
    "고정일대": ContractType.FIXED_DAILY,
    "일고정": ContractType.FIXED_DAILY,
    "고정(월대)": ContractType.FIXED_MONTHLY,
    "고정월대": ContractType.FIXED_MONTHLY,
    "월고정": ContractType.FIXED_MONTHLY,
    "고정(지입)": ContractType.CONSIGNED_MONTHLY,
    "고정지입": ContractType.CONSIGNED_MONTHLY,
    "월위탁": ContractType.CONSIGNED_MONTHLY,
    "용차운임": ContractType.CHARTER_PER_RIDE,
    "건별용차": ContractType.CHARTER_PER_RIDE,
}

OWNERSHIP = {
    "자차": VehicleOwnership.OWNED,
    "소유": VehicleOwnership.OWNED,
    "리스": VehicleOwnership.LEASED,
    "지입": VehicleOwnership.CONTRACTED,
    "용차": VehicleOwnership.CONTRACTED,
}


def parse_int(value: Optional[str], label: str) -> Optional[int]:
    """'150,000원' -> 150000; blank -> None."""
    if value is None or not str(value).strip():
        return None
    text = re.sub(r"[,\s원₩]", "", str(value))
    try:
        return int(Decimal(text))
    except InvalidOperation:
        raise ValueError(f"{label}: '{value}' is not a number")


def parse_decimal(value: Optional[str], label: str) -> Optional[Decimal]:
    if value is None or not str(value).strip():
        return None
    text = re.sub(r"[,\s]|톤|t$", "", str(value).lower())
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(f"{label}: '{value}' is not a number")


def parse_date(value: Optional[str], label: str) -> Optional[date]:
    if value is None or not str(value).strip():
        return None
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%Y%m%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"{label}: '{value}' is not a date (YYYY-MM-DD)")


def parse_weekdays(value: Optional[str]) -> List[int]:
    """'월,수,금' or '월 수 금' -> [1, 3, 5]."""
    if not value:
        return []
    days = set()
    for token in re.split(r"[,\s/·]+", value.strip()):
        if not token:
            continue
        key = token.lower()
        if key not in WEEKDAYS:
            raise ValueError(f"Unknown weekday '{token}'")
        days.add(WEEKDAYS[key])
    return sorted(days)


def parse_enum(value: Optional[str], enum_cls, aliases: Dict[str, Any], label: str):
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text in aliases:
        return aliases[text]
    try:
        return enum_cls(text.upper())
    except ValueError:
        raise ValueError(f"{label}: unknown value '{value}'")


def vehicle_type_label(value: str) -> str:
    """'2.5' -> '2.5톤'; labels such as '대형' pass through."""
    text = (value or "").strip()
    if re.fullmatch(r"\d+(\.\d+)?", text):
        number = Decimal(text)
        text = f"{number.normalize():f}톤"
    return text


def _find_center(db: Session, center_name: str, loading_point_name: Optional[str] = None) -> LoadingPoint:
    query = db.query(LoadingPoint).filter(func.lower(LoadingPoint.center_name) == center_name.strip().lower())
    if loading_point_name:
        query = query.filter(LoadingPoint.loading_point_name == loading_point_name.strip())
    loading_point = query.order_by(LoadingPoint.id.asc()).first()
    if not loading_point:
        raise NotFoundError(f"Center not found: {center_name}")
    return loading_point


def _find_driver(db: Session, phone: Optional[str], name: Optional[str]) -> Optional[Driver]:
    if phone and digits_only(phone):
        driver = db.query(Driver).filter(Driver.phone == digits_only(phone)).first()
        if not driver:
            raise NotFoundError(f"Driver not found for phone {phone}")
        return driver
    if name:
        drivers = db.query(Driver).filter(Driver.name == name.strip(), Driver.is_active.is_(True)).all()
        if not drivers:
            raise NotFoundError(f"Driver not found: {name}")
        if len(drivers) > 1:
            raise ValueError(f"Several drivers are named {name}; use the phone column")
        return drivers[0]
    return None


# Converters: spreadsheet record -> create schema

def _convert_driver(db: Session, record: Dict[str, str]) -> DriverCreate:
    return DriverCreate(**record)


def _convert_vehicle(db: Session, record: Dict[str, str]) -> VehicleCreate:
    driver = _find_driver(db, record.get("driver_phone"), None)
    return VehicleCreate(
        plate_number=record.get("plate_number"),
        vehicle_type=vehicle_type_label(record.get("vehicle_type", "")),
        ownership=parse_enum(record.get("ownership"), VehicleOwnership, OWNERSHIP, "ownership") or VehicleOwnership.OWNED,
        driver_id=driver.id if driver else None,
        year=parse_int(record.get("year"), "year"),
        capacity=parse_decimal(record.get("capacity"), "capacity"),
    )


def _convert_loading_point(db: Session, record: Dict[str, str]) -> LoadingPointCreate:
    return LoadingPointCreate(**record)


def _convert_center_fare(db: Session, record: Dict[str, str]) -> CenterFareCreate:
    loading_point = _find_center(db, record.get("center_name", ""))
    fare_type_text = (record.get("fare_type") or "").strip()
    fare_type = FareType.BASIC if fare_type_text in ("기본운임", "기본", "BASIC", "basic") else FareType.STOP_FEE
    region = (record.get("region") or "").strip() or None
    return CenterFareCreate(
        loading_point_id=loading_point.id,
        vehicle_type=vehicle_type_label(record.get("vehicle_type", "")),
        region=normalize_region(db, region) if region else None,
        fare_type=fare_type,
        base_fare=parse_int(record.get("base_fare"), "base fare"),
        extra_stop_fee=parse_int(record.get("extra_stop_fee"), "stop fee"),
        extra_region_fee=parse_int(record.get("extra_region_fee"), "region fee"),
    )


def _convert_fixed_contract(db: Session, record: Dict[str, str]) -> FixedContractCreate:
    loading_point = _find_center(db, record.get("center_name", ""), record.get("loading_point_name"))
    driver = _find_driver(db, record.get("driver_phone"), record.get("driver_name"))
    center_type = parse_enum(record.get("center_contract_type"), ContractType, CONTRACT_TYPES, "center contract")
    if not center_type:
        raise ValueError("center contract type is required")
    return FixedContractCreate(
        loading_point_id=loading_point.id,
        driver_id=driver.id if driver else None,
        route_name=record.get("route_name"),
        operating_days=parse_weekdays(record.get("operating_days")),
        center_contract_type=center_type,
        center_amount=parse_int(record.get("center_amount"), "center amount") or 0,
        driver_contract_type=parse_enum(record.get("driver_contract_type"), ContractType, CONTRACT_TYPES, "driver contract"),
        driver_amount=parse_int(record.get("driver_amount"), "driver amount"),
        start_date=parse_date(record.get("start_date"), "start date"),
        end_date=parse_date(record.get("end_date"), "end date"),
        remarks=record.get("remarks"),
    )


# Natural keys

def _existing_driver(db: Session, data: DriverCreate):
    return db.query(Driver).filter(Driver.phone == data.phone).first()


def _existing_vehicle(db: Session, data: VehicleCreate):
    return db.query(Vehicle).filter(Vehicle.plate_number == data.plate_number).first()


def _existing_loading_point(db: Session, data: LoadingPointCreate):
    return (
        db.query(LoadingPoint)
        .filter(LoadingPoint.center_name == data.center_name, LoadingPoint.loading_point_name == data.loading_point_name)
        .first()
    )


def _existing_center_fare(db: Session, data: CenterFareCreate):
    return find_duplicate(db, data.loading_point_id, data.vehicle_type, data.region, data.fare_type)


def _existing_fixed_contract(db: Session, data: FixedContractCreate):
    return (
        db.query(FixedContract)
        .filter(FixedContract.loading_point_id == data.loading_point_id, FixedContract.route_name == data.route_name)
        .first()
    )


IMPORT_SPECS: Dict[str, ImportSpec] = {
    "drivers": ImportSpec(
        entity="drivers",
        columns=[
            Column("name", "성함", ["이름", "기사명", "성명", "name"], required=True),
            Column("phone", "연락처", ["전화번호", "핸드폰", "휴대폰", "phone"], required=True),
            Column("vehicle_number", "차량번호", ["차번호", "번호판", "vehicle", "plate"], required=True),
            Column("business_name", "사업상호", ["회사명", "업체명", "상호명", "company"]),
            Column("representative", "대표자", ["대표자명", "대표", "representative"]),
            Column("business_number", "사업번호", ["사업자번호", "사업자등록번호", "business"]),
            Column("bank_name", "계좌은행", ["은행명", "은행", "bank"]),
            Column("account_number", "계좌번호", ["통장번호", "계좌", "account"]),
            Column("remarks", "특이사항", ["비고", "메모", "remarks", "note"]),
        ],
        convert=_convert_driver,
        find_existing=_existing_driver,
        model=Driver,
        key=lambda d: (d.phone,),
        sample=["홍길동", "010-1234-5678", "서울12가3456", "길동운수", "홍길동", "123-45-67890", "국민은행", "123456789012", ""],
    ),
    "vehicles": ImportSpec(
        entity="vehicles",
        columns=[
            Column("plate_number", "차량번호", ["번호판", "plate"], required=True),
            Column("vehicle_type", "차종", ["차량톤수", "톤급", "vehicle_type", "type"], required=True),
            Column("ownership", "소유구분", ["소유", "ownership"]),
            Column("driver_phone", "기사연락처", ["기사전화번호", "driver_phone"]),
            Column("year", "연식", ["연도", "year"]),
            Column("capacity", "적재량", ["톤수", "capacity"]),
        ],
        convert=_convert_vehicle,
        find_existing=_existing_vehicle,
        model=Vehicle,
        key=lambda d: (d.plate_number,),
        sample=["서울12가3456", "2.5톤", "자차", "010-1234-5678", "2021", "2.5"],
    ),
    "loading-points": ImportSpec(
        entity="loading-points",
        columns=[
            Column("center_name", "센터명", ["센터", "물류센터", "창고명", "center"], required=True),
            Column("loading_point_name", "상차지명", ["상차지", "로딩포인트", "loading"], required=True),
            Column("lot_address", "지번주소", ["지번", "구주소", "lot"]),
            Column("road_address", "도로명주소", ["도로명", "신주소", "road"]),
            Column("manager1", "담당자1", ["관리자1", "manager1"]),
            Column("phone1", "연락처1", ["전화번호1", "phone1"]),
            Column("manager2", "담당자2", ["관리자2", "manager2"]),
            Column("phone2", "연락처2", ["전화번호2", "phone2"]),
            Column("remarks", "비고", ["특이사항", "메모", "remarks"]),
        ],
        convert=_convert_loading_point,
        find_existing=_existing_loading_point,
        model=LoadingPoint,
        key=lambda d: (d.center_name, d.loading_point_name),
        sample=["C센터", "1번 상차지", "경기도 이천시 마장면 1-1", "경기도 이천시 마장로 1", "김담당", "01011112222", "", "", ""],
    ),
    "center-fares": ImportSpec(
        entity="center-fares",
        columns=[
            Column("center_name", "센터명", ["센터", "center"], required=True),
            Column("vehicle_type", "차량톤수", ["차종", "톤수", "vehicle"], required=True),
            Column("region", "지역", ["광역", "region"]),
            Column("fare_type", "요율종류", ["요금종류", "fare_type"], required=True),
            Column("base_fare", "기본운임", ["기본료", "base_fare"]),
            Column("extra_stop_fee", "경유운임", ["경유료", "착지료", "stop_fee"]),
            Column("extra_region_fee", "지역운임", ["지역료", "region_fee"]),
        ],
        convert=_convert_center_fare,
        find_existing=_existing_center_fare,
        model=CenterFare,
        key=lambda d: (d.loading_point_id, d.vehicle_type, d.region, d.fare_type),
        sample=["C센터", "2.5톤", "강남", "기본운임", "120000", "", ""],
    ),
    "fixed-contracts": ImportSpec(
        entity="fixed-contracts",
        columns=[
            Column("center_name", "센터명", ["센터", "center"], required=True),
            Column("loading_point_name", "상차지명", ["상차지", "loading"]),
            Column("route_name", "노선명", ["노선", "코스명", "route"], required=True),
            Column("driver_name", "기사명", ["배정기사명", "배정기사", "driver"]),
            Column("driver_phone", "기사연락처", ["연락처", "driver_phone"]),
            Column("operating_days", "운행요일", ["요일", "운행일", "weekday"], required=True),
            Column("center_contract_type", "센터계약", ["센터계약형태", "계약형태", "center_contract"], required=True),
            Column("center_amount", "센터금액", ["센터단가", "center_amount"]),
            Column("driver_contract_type", "기사계약", ["기사계약형태", "driver_contract"]),
            Column("driver_amount", "기사금액", ["기사단가", "driver_amount"]),
            Column("start_date", "시작일자", ["시작일", "start"]),
            Column("end_date", "종료일자", ["종료일", "end"]),
            Column("remarks", "비고", ["특이사항", "remarks"]),
        ],
        convert=_convert_fixed_contract,
        find_existing=_existing_fixed_contract,
        model=FixedContract,
        key=lambda d: (d.loading_point_id, d.route_name),
        sample=["C센터", "1번 상차지", "이천-강남 A코스", "홍길동", "010-1234-5678", "월,수,금",
                "고정(일대)", "150000", "고정(일대)", "130000", "2025-01-01", "", ""],
    ),
}


def get_spec(entity: str) -> ImportSpec:
    spec = IMPORT_SPECS.get(entity)
    if not spec:
        raise NotFoundError(f"Unknown import entity: {entity}", details={"supported": sorted(IMPORT_SPECS)})
    return spec


def _error_message(error: Exception) -> str:
    if isinstance(error, ValidationError):
        parts = []
        for item in error.errors():
            location = ".".join(str(p) for p in item.get("loc", ()) if p != "__root__")
            message = item.get("msg", "invalid value").removeprefix("Value error, ")
            parts.append(f"{location}: {message}" if location else message)
        return "; ".join(parts)
    if isinstance(error, AppError):
        return error.message
    return str(error)


def _map_records(spec: ImportSpec, headers: List[str], records) -> List[Tuple[int, Dict[str, str]]]:
    mapping = map_columns_by_synonyms(headers, spec.synonyms)
    missing = [c.label for c in spec.columns if c.required and not mapping.get(c.field)]
    if missing:
        raise ValidationFailed(
            f"Missing required columns: {', '.join(missing)}",
            details={"missing": missing, "headers": headers, "mapped": {k: v for k, v in mapping.items() if v}},
        )
    mapped = []
    for row_number, record in records:
        values = {
            field_name: record.get(header, "")
            for field_name, header in mapping.items()
            if header
        }
        mapped.append((row_number, {k: v for k, v in values.items() if v != ""}))
    return mapped


def _upsert(db: Session, spec: ImportSpec, data: BaseModel) -> bool:
    """Insert or update one row; True when created."""
    existing = spec.find_existing(db, data)
    values = data.model_dump()
    if existing:
        for field_name, value in values.items():
            setattr(existing, field_name, value)
        db.flush()
        return False
    db.add(spec.model(**values))
    db.flush()
    return True


def run_import(
    db: Session,
    entity: str,
    filename: Optional[str],
    content: bytes,
    user: Optional[User] = None,
    dry_run: bool = False,
) -> dict:
    """Validate and upsert every row; returns {entity, total, created, updated, dry_run, errors}."""
    spec = get_spec(entity)
    headers, records = parse_upload(filename, content)
    rows = _map_records(spec, headers, records)

    errors = []
    valid: List[Tuple[int, BaseModel]] = []
    seen_keys = set()
    for row_number, record in rows:
        try:
            data = spec.convert(db, record)
        except (ValidationError, ValueError, AppError) as e:
            errors.append({"row": row_number, "message": _error_message(e)})
            continue
        key = spec.key(data)
        if key in seen_keys:
            errors.append({"row": row_number, "message": "Duplicate of an earlier row in this file"})
            continue
        seen_keys.add(key)
        valid.append((row_number, data))

    created = 0
    updated = 0
    for row_number, data in valid:
        if dry_run:
            if spec.find_existing(db, data):
                updated += 1
            else:
                created += 1
            continue
        try:
            with db.begin_nested():
                if _upsert(db, spec, data):
                    created += 1
                else:
                    updated += 1
        except SQLAlchemyError as e:
            logger.warning(f"Import {entity} row {row_number} failed: {e}")
            errors.append({"row": row_number, "message": "Database error: the row conflicts with existing data"})

    errors.sort(key=lambda e: e["row"])
    result = {
        "entity": entity,
        "total": len(rows),
        "created": created,
        "updated": updated,
        "dry_run": dry_run,
        "errors": errors,
    }
    if not dry_run:
        record_audit(
            db, user, AuditAction.IMPORT, spec.model.__name__, None,
            changes={"created": created, "updated": updated, "failed": len(errors)},
            context={"filename": filename, "total": len(rows)},
        )
        db.commit()
    logger.info(f"Import {entity}: {len(rows)} rows, {created} created, {updated} updated, {len(errors)} errors")
    return result

