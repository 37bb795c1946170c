"""
Utility functions for the application.
"""
from typing import Any, Dict, Optional, Tuple
from datetime import date, datetime
import calendar
import math
import re
from zoneinfo import ZoneInfo

from haulbook.core.config import settings
from haulbook.core.exceptions import ValidationFailed

YEAR_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def format_response(data: Any) -> Dict[str, Any]:
    """Wrap data in the success envelope."""
    return {"ok": True, "data": data}


def format_error(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    """Build the error envelope."""
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error}


def paginate(query, page: int, limit: int) -> Tuple[list, Dict[str, Any]]:
    """Apply offset/limit to a query and return (rows, pagination block)."""
    page = max(page, 1)
    limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    total_pages = math.ceil(total / limit) if total else 0
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def today() -> date:
    """Today's date in the business timezone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def parse_year_month(year_month: str) -> Tuple[int, int]:
    """Split 'YYYY-MM' into (year, month)."""
    if not year_month or not YEAR_MONTH_PATTERN.match(year_month):
        raise ValidationFailed("year_month must be in YYYY-MM format")
    year, month = year_month.split("-")
    return int(year), int(month)


def year_month_range(year_month: str) -> Tuple[date, date]:
    """First and last calendar day of the month."""
    year, month = parse_year_month(year_month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def is_future_month(year_month: str, reference: Optional[date] = None) -> bool:
    """True when year_month is after the month containing reference (default today)."""
    year, month = parse_year_month(year_month)
    reference = reference or today()
    return (year, month) > (reference.year, reference.month)


def digits_only(value: Optional[str]) -> str:
    """Strip everything but digits (phone and account numbers are stored this way)."""
    if not value:
        return ""
    return re.sub(r"[^\d]", "", str(value))


def is_valid_phone(value: str) -> bool:
    """Mobile numbers are 010 + 8 digits; landlines 9 to 11 digits."""
    digits = digits_only(value)
    if len(digits) == 11 and digits.startswith("010"):
        return True
    return 9 <= len(digits) <= 11


def format_phone(value: Optional[str]) -> str:
    """Display form of a stored phone number."""
    digits = digits_only(value)
    if len(digits) == 11:
        return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return digits


def blank_to_none(value: Any) -> Any:
    """Empty strings coming from forms and spreadsheets become NULL."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def apply_sorting(query, model, sort_by: Optional[str], sort_order: str = "desc", allowed: Tuple[str, ...] = ()):
    """Order a query by a whitelisted column, newest first by default."""
    column_name = sort_by if sort_by in allowed else "created_at"
    column = getattr(model, column_name)
    ordered = column.asc() if sort_order == "asc" else column.desc()
    return query.order_by(ordered, model.id.desc())


def attachment_headers(filename: str) -> Dict[str, str]:
    """Content-Disposition for file downloads."""
    return {"Content-Disposition": f'attachment; filename="{filename}"'}
