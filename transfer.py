"""
Import/export transforms between staff records and external files.

Exports: spreadsheet (xlsx), report document (docx), JSON.
Imports: JSON (the service's own export) and xlsx. Column headers are matched
loosely so both "Batch No" and "batchNo" land on the same field.
"""
import json
import re
from datetime import date, datetime
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional
from zipfile import BadZipFile

import pydantic
from docx import Document
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel, Field

from errors import ParseError
from schemas import Staff, StaffIn, batch_key, clean_text

EXPORT_COLUMNS = [
    ("SL", "sl"),
    ("Batch No", "batchNo"),
    ("Name", "name"),
    ("Department", "department"),
    ("Company", "company"),
    ("Visa Type", "visaType"),
    ("Card No", "cardNo"),
    ("Issue Date", "issueDate"),
    ("Expire Date", "expireDate"),
    ("Phone", "phone"),
    ("Status", "status"),
    ("Hotel", "hotel"),
    ("Salary", "salary"),
    ("Passport Expire Date", "passportExpireDate"),
    ("Photo", "photo"),
    ("Remark", "remark"),
]

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "json": "application/json",
}

REPORT_TITLE = "Staff Management Report"


def header_key(header: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(header).lower())


def _field_lookup() -> Dict[str, str]:
    lookup = {header_key(h): field for h, field in EXPORT_COLUMNS}
    for name, info in StaffIn.model_fields.items():
        alias = info.alias or name
        lookup.setdefault(header_key(alias), alias)
    return lookup


FIELD_BY_KEY = _field_lookup()


def canonical_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Re-key a loosely-typed row onto the camelCase staff fields, dropping unknown columns."""
    out: Dict[str, Any] = {}
    for header, value in row.items():
        field = FIELD_BY_KEY.get(header_key(header))
        if field is None:
            continue
        if _blank(out.get(field)):
            out[field] = value
    return out


def _rows(staff: Iterable[Staff]) -> List[List[Any]]:
    rows = []
    for person in staff:
        data = person.model_dump(mode="json", by_alias=True)
        rows.append([data.get(field) for _, field in EXPORT_COLUMNS])
    return rows


def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ------------------- Export -------------------

def export_xlsx(staff: Iterable[Staff]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Staff"
    ws.append([h for h, _ in EXPORT_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in _rows(staff):
        ws.append(row)

    for idx, (header, _) in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = max(10, len(header) + 4)
    ws.freeze_panes = "A2"

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def export_docx(staff: Iterable[Staff], generated_at: Optional[datetime] = None) -> bytes:
    generated_at = generated_at or datetime.now()
    rows = _rows(staff)

    doc = Document()
    doc.add_heading(REPORT_TITLE, level=1)
    doc.add_paragraph(f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M')}")

    table = doc.add_table(rows=1, cols=len(EXPORT_COLUMNS))
    table.style = "Table Grid"
    for cell, (header, _) in zip(table.rows[0].cells, EXPORT_COLUMNS):
        cell.text = header
    for row in rows:
        cells = table.add_row().cells
        for cell, value in zip(cells, row):
            cell.text = _display(value)

    bio = BytesIO()
    doc.save(bio)
    return bio.getvalue()


def export_json(staff: Iterable[Staff]) -> bytes:
    data = [person.model_dump(mode="json", by_alias=True) for person in staff]
    return json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")


def export_filename(kind: str, today: Optional[date] = None) -> str:
    stamp = (today or date.today()).isoformat()
    if kind == "docx":
        return f"staff_report_{stamp}.docx"
    return f"staff_data_{stamp}.{kind}"


# ------------------- Import -------------------

def parse_json_rows(content: bytes) -> List[Dict[str, Any]]:
    try:
        data = json.loads(content)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError("Error importing JSON file. Please check the file format.") from e
    # accept the API envelope as well as a bare list
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        data = data["data"]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ParseError("Import file must contain a list of staff records")
    return [canonical_row(item) for item in data]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_xlsx_rows(content: bytes) -> List[Dict[str, Any]]:
    try:
        wb = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
        raise ParseError("Error importing Excel file. Please check the file format.") from e

    try:
        if not wb.worksheets:
            return []
        rows = wb.worksheets[0].iter_rows(values_only=True)
        headers = next(rows, None)
        if not headers:
            return []
        out = []
        for values in rows:
            if all(_blank(v) for v in values):
                continue
            record = {str(h): v for h, v in zip(headers, values) if h is not None}
            out.append(canonical_row(record))
        return out
    finally:
        wb.close()


def parse_rows(filename: str, content: bytes) -> List[Dict[str, Any]]:
    """Dispatch on the file extension; only .json and .xlsx are understood."""
    name = (filename or "").lower()
    if name.endswith(".json"):
        return parse_json_rows(content)
    if name.endswith(".xlsx"):
        return parse_xlsx_rows(content)
    raise ParseError("Unsupported import file type. Use .json or .xlsx")


class ImportPlan(BaseModel):
    accepted: List[StaffIn] = Field(default_factory=list)
    duplicates: List[str] = Field(default_factory=list)
    invalid: List[int] = Field(default_factory=list)


def plan_import(rows: Iterable[Dict[str, Any]], existing_batches: Iterable[str]) -> ImportPlan:
    """
    Split import rows into accepted records, duplicate batch numbers and invalid rows.

    A batch number is a duplicate when it matches (case-insensitively) one
    already in the store or one accepted earlier in the same file. Rows that
    fail normalization or have no name are reported by 1-based row number.
    """
    seen = {batch_key(b) for b in existing_batches if batch_key(b)}
    plan = ImportPlan()
    for number, row in enumerate(rows, start=1):
        batch = clean_text(row.get("batchNo"))
        key = batch.lower()
        if key and key in seen:
            plan.duplicates.append(batch)
            continue
        try:
            record = StaffIn.model_validate(row)
        except pydantic.ValidationError:
            plan.invalid.append(number)
            continue
        if not record.name:
            plan.invalid.append(number)
            continue
        if key:
            seen.add(key)
        plan.accepted.append(record)
    return plan
