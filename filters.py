"""
Filtering and statistics over an in-memory staff list.

Every predicate is independent and combined with AND. An empty value means
"no constraint". Results keep the relative order of the input.
"""
from datetime import date, timedelta
from typing import Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from schemas import Staff, parse_date

View = Literal["active", "archive", "all"]
ExpiryBucket = Literal["", "expired", "expiring", "valid"]

EXPIRING_WINDOW_DAYS = 30


class StaffFilter(BaseModel):
    view: View = "active"
    search: str = ""
    visa_type: str = ""
    hotel: str = ""
    company: str = ""
    status: str = ""
    expire_bucket: ExpiryBucket = ""
    passport_bucket: ExpiryBucket = ""
    department: str = ""
    salary_min: Optional[float] = Field(None, ge=0)
    salary_max: Optional[float] = Field(None, ge=0)
    passport_expire_date: Optional[date] = None
    card_no: str = ""

    # blank form inputs mean "no constraint"
    @field_validator("salary_min", "salary_max", mode="before")
    @classmethod
    def _blank_number(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("passport_expire_date", mode="before")
    @classmethod
    def _date(cls, v):
        return parse_date(v)


def expiry_bucket(value: Optional[date], today: date) -> Optional[str]:
    """Classify a date as expired (today or earlier), expiring (within 30 days) or valid; None when unset."""
    if value is None:
        return None
    if value <= today:
        return "expired"
    if value <= today + timedelta(days=EXPIRING_WINDOW_DAYS):
        return "expiring"
    return "valid"


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def _matches_view(person: Staff, view: str) -> bool:
    if view == "archive":
        return person.status == "Exited"
    if view == "active":
        return person.status != "Exited"
    return True


def _matches_search(person: Staff, term: str) -> bool:
    if not term:
        return True
    return any(
        _contains(value, term)
        for value in (person.name, person.phone, person.designation, person.batch_no)
    )


def matches(person: Staff, criteria: StaffFilter, today: date) -> bool:
    if not _matches_view(person, criteria.view):
        return False
    if not _matches_search(person, criteria.search):
        return False
    if criteria.visa_type and (person.visa_type or "") != criteria.visa_type:
        return False
    if criteria.hotel and person.hotel != criteria.hotel:
        return False
    if criteria.company and person.company != criteria.company:
        return False
    if criteria.status and person.status != criteria.status:
        return False
    if criteria.expire_bucket and expiry_bucket(person.expire_date, today) != criteria.expire_bucket:
        return False
    if criteria.passport_bucket and expiry_bucket(person.passport_expire_date, today) != criteria.passport_bucket:
        return False
    if criteria.department and not _contains(person.department, criteria.department):
        return False
    if criteria.salary_min is not None and person.salary < criteria.salary_min:
        return False
    if criteria.salary_max is not None and person.salary > criteria.salary_max:
        return False
    if criteria.passport_expire_date and person.passport_expire_date != criteria.passport_expire_date:
        return False
    if criteria.card_no and not _contains(person.card_no, criteria.card_no):
        return False
    return True


def filter_staff(
    staff: Iterable[Staff],
    criteria: Optional[StaffFilter] = None,
    today: Optional[date] = None,
) -> List[Staff]:
    criteria = criteria or StaffFilter()
    today = today or date.today()
    return [person for person in staff if matches(person, criteria, today)]


def staff_stats(staff: Iterable[Staff]) -> Dict[str, int]:
    """Headcounts shown on the staff page; visa counts only include non-exited staff."""
    staff = list(staff)
    active = [s for s in staff if s.status != "Exited"]
    return {
        "totalStaff": len(active),
        "workingStaff": sum(1 for s in staff if s.status == "Working"),
        "joblessStaff": sum(1 for s in staff if s.status == "Jobless"),
        "exitedStaff": sum(1 for s in staff if s.status == "Exited"),
        "employmentVisa": sum(1 for s in active if s.visa_type == "Employment"),
        "visitVisa": sum(1 for s in active if s.visa_type == "Visit"),
    }
