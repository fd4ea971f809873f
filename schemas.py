"""
Database Schemas for the Hotel Staff Records service

Each Pydantic model represents a MongoDB collection document or a request
body. Stored and wire field names are camelCase ("batchNo", "visaType"),
Python attributes are snake_case.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

VisaType = Literal["Employment", "Visit"]
StaffStatus = Literal["Working", "Jobless", "Exited"]
VacationStatus = Literal["Pending", "Approved", "Rejected", "Ongoing", "Completed", "Cancelled"]
BulkAction = Literal["delete", "updateHotel", "updateStatus"]

STAFF_STATUSES = ("Working", "Jobless", "Exited")
VACATION_STATUSES = ("Pending", "Approved", "Rejected", "Ongoing", "Completed", "Cancelled")

DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%m/%d/%Y")


def parse_date(value: Any) -> Optional[date]:
    """Accept date/datetime objects, blanks, or YYYY-MM-DD, DD-MM-YYYY, DD/MM/YYYY, MM/DD/YYYY."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    # ISO timestamps coming back from JSON exports
    if "T" in s:
        s = s.split("T", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognised date {value!r}")


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    # spreadsheets hand numeric cells (phone, card no) back as floats
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def batch_key(batch_no: Optional[str]) -> str:
    """Comparison key for batch numbers: trimmed and case-folded, "" when unset."""
    return (batch_no or "").strip().lower()


def check_date_order(start: Optional[date], end: Optional[date]) -> None:
    if start and end and end < start:
        raise ValueError("endDate must be on or after startDate")


def inclusive_days(start: Optional[date], end: Optional[date]) -> int:
    if not start or not end:
        return 0
    return (end - start).days + 1


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StaffBase(CamelModel):
    batch_no: str = Field("", description="Human-entered batch code, unique when set")
    name: str = Field("", description="Full name")
    designation: str = ""
    department: str = ""
    hotel: str = ""
    company: str = ""
    visa_type: Optional[VisaType] = None
    status: StaffStatus = "Working"
    card_no: str = ""
    phone: str = ""
    photo: str = Field("", description="Photo URL")
    remark: str = ""
    issue_date: Optional[date] = None
    expire_date: Optional[date] = None
    passport_expire_date: Optional[date] = None
    salary: float = Field(0, ge=0)

    @field_validator(
        "batch_no", "name", "designation", "department", "hotel", "company",
        "card_no", "phone", "photo", "remark",
        mode="before",
    )
    @classmethod
    def _text(cls, v):
        return clean_text(v)

    @field_validator("issue_date", "expire_date", "passport_expire_date", mode="before")
    @classmethod
    def _dates(cls, v):
        return parse_date(v)

    @field_validator("visa_type", mode="before")
    @classmethod
    def _visa(cls, v):
        return clean_text(v) or None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return clean_text(v) or "Working"

    @field_validator("salary", mode="before")
    @classmethod
    def _salary(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v


class StaffIn(StaffBase):
    """
    Create/update payload and normalized import row.
    ``sl`` is assigned by the store when omitted.
    """
    sl: Optional[int] = None

    @field_validator("sl", mode="before")
    @classmethod
    def _sl(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, float):
            return int(v)
        return v


class Staff(StaffBase):
    """
    Staff records collection schema
    Collection name: "staff"
    """
    object_id: Optional[str] = Field(None, alias="_id")
    legacy_id: Optional[int] = Field(None, alias="id")
    sl: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("object_id", mode="before")
    @classmethod
    def _oid(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v

    @property
    def identity(self) -> str:
        return self.object_id or str(self.legacy_id)


class VacationBase(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: str = ""
    status: VacationStatus = "Pending"
    salary_hold: float = Field(0, ge=0)
    salary_advance: float = Field(0, ge=0)
    salary_note: str = ""
    emergency_contact: str = ""
    destination: str = ""
    approved_by: str = ""
    approved_date: Optional[date] = None
    rejection_reason: str = ""
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    actual_days: Optional[int] = None

    @field_validator(
        "start_date", "end_date", "approved_date", "actual_start_date", "actual_end_date",
        mode="before",
    )
    @classmethod
    def _dates(cls, v):
        return parse_date(v)


class VacationIn(VacationBase):
    staff_id: str = Field(..., description="Staff identity: ObjectId string or legacy numeric id")

    @field_validator("staff_id", mode="before")
    @classmethod
    def _staff_id(cls, v):
        return clean_text(v)

    @model_validator(mode="after")
    def _order(self):
        check_date_order(self.start_date, self.end_date)
        return self


class VacationUpdate(CamelModel):
    """Partial update: only the fields sent are changed, any status may follow any other."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None
    status: Optional[VacationStatus] = None
    salary_hold: Optional[float] = Field(None, ge=0)
    salary_advance: Optional[float] = Field(None, ge=0)
    salary_note: Optional[str] = None
    emergency_contact: Optional[str] = None
    destination: Optional[str] = None
    approved_by: Optional[str] = None
    approved_date: Optional[date] = None
    rejection_reason: Optional[str] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    actual_days: Optional[int] = None

    @field_validator(
        "start_date", "end_date", "approved_date", "actual_start_date", "actual_end_date",
        mode="before",
    )
    @classmethod
    def _dates(cls, v):
        return parse_date(v)


class Vacation(VacationBase):
    """
    Vacation requests collection schema
    Collection name: "vacations"
    """
    object_id: Optional[str] = Field(None, alias="_id")
    legacy_id: Optional[int] = Field(None, alias="id")
    staff_id: str = ""
    staff_name: str = ""
    staff_batch: str = ""
    request_date: Optional[date] = None
    total_days: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("object_id", mode="before")
    @classmethod
    def _oid(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v

    @field_validator("staff_id", mode="before")
    @classmethod
    def _staff_id(cls, v):
        return clean_text(v)

    @field_validator("request_date", mode="before")
    @classmethod
    def _request_date(cls, v):
        return parse_date(v)


class NamedValueIn(BaseModel):
    """Body for hotels, companies and departments. Collections: "hotels", "companies", "departments"."""
    name: str = ""


class BulkRequest(BaseModel):
    action: BulkAction
    ids: List[str] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("ids", mode="before")
    @classmethod
    def _ids(cls, v):
        if v is None:
            return []
        return [str(i) for i in v]
