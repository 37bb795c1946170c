"""
Exports (xlsx / csv) and import templates.
"""
import logging
from typing import Any, Callable, List, Optional, Tuple
from sqlalchemy.orm import Session
from haulbook.core.exceptions import ValidationFailed
from haulbook.core.utils import format_phone, today
from haulbook.models.audit_log import AuditAction
from haulbook.models.user import User
from haulbook.services.audit_service import record_audit
from haulbook.services.import_service import get_spec
from haulbook.services.spreadsheet import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, build_csv, build_xlsx

logger = logging.getLogger(__name__)

WEEKDAY_LABELS = ("일", "월", "화", "수", "목", "금", "토")
EXPORT_FORMATS = ("xlsx", "csv")

ExportColumns = List[Tuple[str, Callable[[Any], Any]]]


def _driver_name(obj) -> str:
    return obj.driver.name if getattr(obj, "driver", None) else ""


def _center_name(obj) -> str:
    return obj.loading_point.center_name if getattr(obj, "loading_point", None) else ""


DRIVER_COLUMNS: ExportColumns = [
    ("성함", lambda d: d.name),
    ("연락처", lambda d: format_phone(d.phone)),
    ("차량번호", lambda d: d.vehicle_number),
    ("사업상호", lambda d: d.business_name),
    ("대표자", lambda d: d.representative),
    ("사업번호", lambda d: d.business_number),
    ("계좌은행", lambda d: d.bank_name),
    ("계좌번호", lambda d: d.account_number),
    ("특이사항", lambda d: d.remarks),
    ("상태", lambda d: "활성" if d.is_active else "비활성"),
]

VEHICLE_COLUMNS: ExportColumns = [
    ("차량번호", lambda v: v.plate_number),
    ("차종", lambda v: v.vehicle_type),
    ("소유구분", lambda v: v.ownership),
    ("기사명", _driver_name),
    ("기사연락처", lambda v: format_phone(v.driver.phone) if v.driver else ""),
    ("연식", lambda v: v.year),
    ("적재량", lambda v: v.capacity),
    ("상태", lambda v: "활성" if v.is_active else "비활성"),
]

LOADING_POINT_COLUMNS: ExportColumns = [
    ("센터명", lambda p: p.center_name),
    ("상차지명", lambda p: p.loading_point_name),
    ("지번주소", lambda p: p.lot_address),
    ("도로명주소", lambda p: p.road_address),
    ("담당자1", lambda p: p.manager1),
    ("연락처1", lambda p: p.phone1),
    ("담당자2", lambda p: p.manager2),
    ("연락처2", lambda p: p.phone2),
    ("비고", lambda p: p.remarks),
    ("상태", lambda p: "활성" if p.is_active else "비활성"),
]

CENTER_FARE_COLUMNS: ExportColumns = [
    ("센터명", lambda f: f.center_name),
    ("차량톤수", lambda f: f.vehicle_type),
    ("지역", lambda f: f.region),
    ("요율종류", lambda f: "기본운임" if f.fare_type.value == "BASIC" else "경유운임"),
    ("기본운임", lambda f: f.base_fare),
    ("경유운임", lambda f: f.extra_stop_fee),
    ("지역운임", lambda f: f.extra_region_fee),
    ("상태", lambda f: "활성" if f.is_active else "비활성"),
]

CHARTER_COLUMNS: ExportColumns = [
    ("일자", lambda c: c.date),
    ("센터명", _center_name),
    ("차종", lambda c: c.vehicle_type),
    ("톤수", lambda c: c.vehicle_ton),
    ("목적지", lambda c: " → ".join(c.regions)),
    ("착지수", lambda c: c.stops),
    ("기본운임", lambda c: c.base_fare),
    ("지역운임", lambda c: c.region_fare),
    ("경유운임", lambda c: c.stop_fare),
    ("추가운임", lambda c: c.extra_fare),
    ("협의여부", lambda c: "Y" if c.is_negotiated else "N"),
    ("총운임", lambda c: c.total_fare),
    ("추정여부", lambda c: "Y" if c.is_estimated else "N"),
    ("기사명", _driver_name),
    ("기사운임", lambda c: c.driver_fare),
    ("비고", lambda c: c.notes),
]

FIXED_CONTRACT_COLUMNS: ExportColumns = [
    ("센터명", _center_name),
    ("상차지명", lambda c: c.loading_point.loading_point_name if c.loading_point else ""),
    ("노선명", lambda c: c.route_name),
    ("기사명", _driver_name),
    ("기사연락처", lambda c: format_phone(c.driver.phone) if c.driver else ""),
    ("운행요일", lambda c: ",".join(WEEKDAY_LABELS[d] for d in sorted(c.operating_days or []))),
    ("센터계약", lambda c: c.center_contract_type),
    ("센터금액", lambda c: c.center_amount),
    ("기사계약", lambda c: c.driver_contract_type),
    ("기사금액", lambda c: c.driver_amount),
    ("시작일자", lambda c: c.start_date),
    ("종료일자", lambda c: c.end_date),
    ("비고", lambda c: c.remarks),
]

SETTLEMENT_COLUMNS: ExportColumns = [
    ("정산월", lambda s: s.year_month),
    ("기사명", _driver_name),
    ("연락처", lambda s: format_phone(s.driver.phone) if s.driver else ""),
    ("상태", lambda s: s.status),
    ("운행건수", lambda s: s.total_trips),
    ("기본운임", lambda s: s.total_base_fare),
    ("추가", lambda s: s.total_additions),
    ("공제", lambda s: s.total_deductions),
    ("지급액", lambda s: s.final_amount),
    ("확정일시", lambda s: s.confirmed_at),
    ("지급일시", lambda s: s.paid_at),
    ("계좌은행", lambda s: s.driver.bank_name if s.driver else ""),
    ("계좌번호", lambda s: s.driver.account_number if s.driver else ""),
]

EXPORT_COLUMNS = {
    "drivers": DRIVER_COLUMNS,
    "vehicles": VEHICLE_COLUMNS,
    "loading-points": LOADING_POINT_COLUMNS,
    "center-fares": CENTER_FARE_COLUMNS,
    "charters": CHARTER_COLUMNS,
    "fixed-contracts": FIXED_CONTRACT_COLUMNS,
    "settlements": SETTLEMENT_COLUMNS,
}


def export_rows(
    db: Session,
    entity: str,
    items: List[Any],
    export_format: str = "xlsx",
    user: Optional[User] = None,
    filters: Optional[dict] = None,
) -> Tuple[bytes, str, str]:
    """Render items; returns (content, media type, filename)."""
    if export_format not in EXPORT_FORMATS:
        raise ValidationFailed("format must be xlsx or csv")
    columns = EXPORT_COLUMNS[entity]
    headers = [label for label, _ in columns]
    rows = [[getter(item) for _, getter in columns] for item in items]

    filename = f"{entity}_{today().strftime('%Y%m%d')}.{export_format}"
    if export_format == "csv":
        content, media_type = build_csv(headers, rows), CSV_MEDIA_TYPE
    else:
        content, media_type = build_xlsx(headers, rows, sheet_title=entity), XLSX_MEDIA_TYPE

    record_audit(
        db, user, AuditAction.EXPORT, entity, None,
        context={"format": export_format, "count": len(items), "filters": filters or {}},
    )
    db.commit()
    logger.info(f"Exported {len(items)} {entity} as {export_format}")
    return content, media_type, filename


def build_template(entity: str) -> Tuple[bytes, str, str]:
    """Import template: header row plus one sample row."""
    spec = get_spec(entity)
    headers = [column.label for column in spec.columns]
    rows = [spec.sample] if spec.sample else []
    return build_xlsx(headers, rows, sheet_title=entity), XLSX_MEDIA_TYPE, f"{entity}_template.xlsx"
