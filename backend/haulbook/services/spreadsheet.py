"""
Spreadsheet reading and writing shared by imports and exports.

Uploads are read into lists of {header: text} dicts (csv via the csv module,
xlsx via openpyxl). Header names are matched to canonical fields through
synonym lists. Written cells are guarded against formula injection.
"""
import csv
import enum
import io
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from haulbook.core.exceptions import ValidationFailed

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
SUPPORTED_EXTENSIONS = ("csv", "xlsx")
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def file_extension(filename: Optional[str]) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def cell_to_text(value: Any) -> str:
    """Spreadsheet cell as trimmed text; whole floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _rows_to_dicts(rows: List[List[Any]]) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
    if not rows:
        raise ValidationFailed("The file is empty")
    headers = [cell_to_text(h) for h in rows[0]]
    if not any(headers):
        raise ValidationFailed("The header row is empty")

    records = []
    for index, row in enumerate(rows[1:], start=2):
        values = [cell_to_text(v) for v in row]
        if not any(values):
            continue
        record = {header: (values[i] if i < len(values) else "") for i, header in enumerate(headers) if header}
        records.append((index, record))
    return headers, records


def parse_csv(content: bytes) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("cp949")
    return _rows_to_dicts(list(csv.reader(io.StringIO(text))))


def parse_xlsx(content: bytes) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValidationFailed(f"Could not read the Excel file: {e}")
    try:
        sheet = workbook.worksheets[0] if workbook.worksheets else None
        if sheet is None:
            raise ValidationFailed("The Excel file has no worksheet")
        rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    return _rows_to_dicts(rows)


def parse_upload(filename: Optional[str], content: bytes) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
    """Headers and (row number, record) pairs; the header is row 1 and blank rows are skipped."""
    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise ValidationFailed("Only .csv and .xlsx files are supported")
    if not content:
        raise ValidationFailed("The file is empty")
    if extension == "csv":
        return parse_csv(content)
    return parse_xlsx(content)


def clean_header(value: str) -> str:
    """Lower-case letters, digits and Hangul only."""
    return re.sub(r"[^a-z0-9가-힣]", "", (value or "").lower())


def map_columns_by_synonyms(headers: Sequence[str], synonyms: Dict[str, List[str]]) -> Dict[str, Optional[str]]:
    """
    {canonical: actual header or None}.

    Each synonym is tried as an exact match first, then as a substring of a
    header. A header is used for at most one canonical field.
    """
    cleaned = {clean_header(h): h for h in headers if h}
    used = set()
    mapped: Dict[str, Optional[str]] = {}
    for canonical, options in synonyms.items():
        found = None
        for option in options:
            option_clean = clean_header(option)
            if not option_clean:
                continue
            if option_clean in cleaned and cleaned[option_clean] not in used:
                found = cleaned[option_clean]
                break
            for header_clean, original in cleaned.items():
                if original not in used and option_clean in header_clean:
                    found = original
                    break
            if found:
                break
        if found:
            used.add(found)
        mapped[canonical] = found
    return mapped


def sanitize_cell(value: Any) -> Any:
    """Prefix text that a spreadsheet would evaluate as a formula."""
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return f"'{value}"
    return value


def _export_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, enum.Enum):
        return value.value
    return sanitize_cell(value)


def build_xlsx(headers: List[str], rows: List[List[Any]], sheet_title: str = "Sheet1") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title[:31]

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    for col, header in enumerate(headers, 1):
        cell = sheet.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
        sheet.column_dimensions[get_column_letter(col)].width = max(12, len(header) * 2 + 4)

    for row_index, row in enumerate(rows, 2):
        for col, value in enumerate(row, 1):
            sheet.cell(row=row_index, column=col, value=_export_value(value))

    sheet.freeze_panes = "A2"
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_csv(headers: List[str], rows: List[List[Any]]) -> bytes:
    """UTF-8 with BOM so Excel opens Hangul correctly."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_export_value(v) for v in row])
    return buffer.getvalue().encode("utf-8-sig")
