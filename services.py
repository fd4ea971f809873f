"""
Mutation and validation logic over the document store.

Functions take the pymongo ``Database`` as their first argument and raise
``errors.StaffServiceError`` subclasses; they never touch HTTP concerns.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from database import (
    COMPANIES,
    DEPARTMENTS,
    HOTELS,
    STAFF,
    VACATIONS,
    create_document,
    find_by_identity,
    get_documents,
    legacy_id,
    utcnow,
)
from errors import ConflictError, NotFoundError, ValidationError
from schemas import (
    STAFF_STATUSES,
    Staff,
    StaffIn,
    Vacation,
    VacationIn,
    VacationUpdate,
    batch_key,
    check_date_order,
    clean_text,
    inclusive_days,
)
from transfer import plan_import

logger = logging.getLogger(__name__)

DUPLICATE_BATCH = "Batch number already exists. Please use a unique batch number."

NAMED_COLLECTIONS = {
    HOTELS: "Hotel",
    COMPANIES: "Company",
    DEPARTMENTS: "Department",
}


def to_staff(doc: Dict[str, Any]) -> Staff:
    return Staff.model_validate({**doc, "id": legacy_id(doc)})


def to_vacation(doc: Dict[str, Any]) -> Vacation:
    return Vacation.model_validate({**doc, "id": legacy_id(doc)})


def _require(db: Database, collection_name: str, identifier: Any, label: str) -> Dict[str, Any]:
    doc = find_by_identity(db, collection_name, identifier)
    if not doc:
        raise NotFoundError(f"{label} not found")
    return doc


# ------------------- Staff -------------------

def find_duplicate_batch(
    docs: Iterable[Dict[str, Any]],
    batch_no: Optional[str],
    exclude_id: Optional[ObjectId] = None,
) -> Optional[Dict[str, Any]]:
    """Return the first document sharing ``batch_no`` (case-insensitive); blank batches never clash."""
    key = batch_key(batch_no)
    if not key:
        return None
    for doc in docs:
        if exclude_id is not None and doc.get("_id") == exclude_id:
            continue
        if batch_key(doc.get("batchNo")) == key:
            return doc
    return None


def _batch_docs(db: Database) -> List[Dict[str, Any]]:
    return list(db[STAFF].find({}, {"batchNo": 1}))


def next_sl(db: Database) -> int:
    last = db[STAFF].find_one({}, sort=[("sl", -1)])
    if not last:
        return 1
    return max(last.get("sl") or 0, 0) + 1


def _staff_document(payload: StaffIn) -> Dict[str, Any]:
    return payload.model_dump(mode="json", by_alias=True, exclude={"sl"})


def _validate_staff(db: Database, payload: StaffIn, exclude_id: Optional[ObjectId] = None) -> None:
    if not payload.name:
        raise ValidationError("Name is required")
    if find_duplicate_batch(_batch_docs(db), payload.batch_no, exclude_id=exclude_id):
        raise ValidationError(DUPLICATE_BATCH, {"batchNo": payload.batch_no})


def list_staff(db: Database) -> List[Staff]:
    return [to_staff(d) for d in get_documents(db, STAFF, sort=[("sl", 1)])]


def get_staff(db: Database, identifier: Any) -> Staff:
    return to_staff(_require(db, STAFF, identifier, "Staff member"))


def create_staff(db: Database, payload: StaffIn) -> Staff:
    _validate_staff(db, payload)
    doc = _staff_document(payload)
    doc["sl"] = next_sl(db)
    inserted_id = create_document(db, STAFF, doc)
    logger.info("Staff member created: %s (sl=%s)", inserted_id, doc["sl"])
    return to_staff(db[STAFF].find_one({"_id": ObjectId(inserted_id)}))


def update_staff(db: Database, identifier: Any, payload: StaffIn) -> Staff:
    existing = _require(db, STAFF, identifier, "Staff member")
    _validate_staff(db, payload, exclude_id=existing["_id"])
    updates = _staff_document(payload)
    if payload.sl is not None:
        updates["sl"] = payload.sl
    updates["updatedAt"] = utcnow()
    db[STAFF].update_one({"_id": existing["_id"]}, {"$set": updates})
    logger.info("Staff member updated: %s", existing["_id"])
    return to_staff(db[STAFF].find_one({"_id": existing["_id"]}))


def delete_staff(db: Database, identifier: Any) -> int:
    existing = _require(db, STAFF, identifier, "Staff member")
    result = db[STAFF].delete_one({"_id": existing["_id"]})
    logger.info("Staff member deleted: %s", existing["_id"])
    return result.deleted_count


def bulk_update(db: Database, action: str, ids: Iterable[Any], data: Optional[Dict[str, Any]] = None) -> int:
    """
    Apply one action to every staff record in ``ids``.

    Unknown ids are skipped. Returns the number of records deleted or
    modified.
    """
    data = data or {}
    if action == "updateHotel":
        hotel = clean_text(data.get("hotel"))
        if not hotel:
            raise ValidationError("Hotel is required")
        changes = {"hotel": hotel}
    elif action == "updateStatus":
        status = clean_text(data.get("status"))
        if status not in STAFF_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(STAFF_STATUSES)}")
        changes = {"status": status}
    elif action == "delete":
        changes = None
    else:
        raise ValidationError("Invalid bulk action")

    object_ids = []
    for identifier in ids:
        doc = find_by_identity(db, STAFF, identifier)
        if doc and doc["_id"] not in object_ids:
            object_ids.append(doc["_id"])
    if not object_ids:
        return 0

    query = {"_id": {"$in": object_ids}}
    if changes is None:
        count = db[STAFF].delete_many(query).deleted_count
    else:
        changes["updatedAt"] = utcnow()
        count = db[STAFF].update_many(query, {"$set": changes}).modified_count
    logger.info("Bulk %s applied to %d staff members", action, count)
    return count


def import_staff(db: Database, rows: List[Dict[str, Any]], confirm: bool = False) -> Dict[str, Any]:
    """
    Insert parsed import rows as new staff records.

    Nothing is written when every row is skipped, or when some rows would be
    skipped and the caller has not confirmed.
    """
    existing = [d.get("batchNo") for d in _batch_docs(db)]
    plan = plan_import(rows, existing)
    details = {"duplicates": plan.duplicates, "invalid": plan.invalid, "validCount": len(plan.accepted)}

    if not plan.accepted:
        if plan.duplicates:
            raise ValidationError(
                f"Import failed: all {len(plan.duplicates)} staff members have duplicate batch numbers",
                details,
            )
        raise ValidationError("Import file contains no valid staff records", details)

    skipped = len(plan.duplicates) + len(plan.invalid)
    if skipped and not confirm:
        raise ConflictError(
            f"{skipped} staff members will be skipped. "
            f"Confirm to import the remaining {len(plan.accepted)} valid staff members.",
            details,
        )

    running = next_sl(db) - 1
    for record in plan.accepted:
        doc = _staff_document(record)
        doc["sl"] = record.sl or running + 1
        running = max(running, doc["sl"])
        create_document(db, STAFF, doc)

    logger.info(
        "Imported %d staff members (%d duplicates, %d invalid rows skipped)",
        len(plan.accepted), len(plan.duplicates), len(plan.invalid),
    )
    return {"imported": len(plan.accepted), "skipped": plan.duplicates, "invalid": plan.invalid}


# ------------------- Hotels / companies / departments -------------------

def _label(kind: str) -> str:
    try:
        return NAMED_COLLECTIONS[kind]
    except KeyError:
        raise NotFoundError(f"Unknown collection {kind}") from None


def list_names(db: Database, kind: str) -> List[str]:
    _label(kind)
    return [d["name"] for d in get_documents(db, kind) if d.get("name")]


def add_name(db: Database, kind: str, name: Any) -> str:
    label = _label(kind)
    name = clean_text(name)
    if not name:
        raise ValidationError(f"{label} name is required")
    if db[kind].find_one({"name": name}):
        raise ConflictError(f"{label} already exists")
    create_document(db, kind, {"name": name})
    logger.info("%s added: %s", label, name)
    return name


def delete_name(db: Database, kind: str, name: str) -> str:
    label = _label(kind)
    result = db[kind].delete_one({"name": name})
    if result.deleted_count == 0:
        raise NotFoundError(f"{label} not found")
    logger.info("%s deleted: %s", label, name)
    return name


def store_stats(db: Database) -> Dict[str, Any]:
    staff = db[STAFF]
    return {
        "staff": {
            "total": staff.count_documents({}),
            "working": staff.count_documents({"status": "Working"}),
            "jobless": staff.count_documents({"status": "Jobless"}),
            "exited": staff.count_documents({"status": "Exited"}),
        },
        "hotels": db[HOTELS].count_documents({}),
        "companies": db[COMPANIES].count_documents({}),
        "departments": db[DEPARTMENTS].count_documents({}),
    }


# ------------------- Vacations -------------------

def list_vacations(db: Database, status: str = "", staff_name: str = "") -> List[Vacation]:
    vacations = [to_vacation(d) for d in get_documents(db, VACATIONS)]
    if status:
        vacations = [v for v in vacations if v.status == status]
    if staff_name:
        needle = staff_name.lower()
        vacations = [v for v in vacations if needle in v.staff_name.lower()]
    return vacations


def get_vacation(db: Database, identifier: Any) -> Vacation:
    return to_vacation(_require(db, VACATIONS, identifier, "Vacation request"))


def create_vacation(db: Database, payload: VacationIn) -> Vacation:
    staff = to_staff(_require(db, STAFF, payload.staff_id, "Staff member"))
    last = db[VACATIONS].find_one({"id": {"$exists": True}}, sort=[("id", -1)])
    doc = payload.model_dump(mode="json", by_alias=True)
    doc.update({
        "id": (last["id"] if last else 0) + 1,
        "staffId": staff.identity,
        "staffName": staff.name,
        "staffBatch": staff.batch_no,
        "requestDate": date.today().isoformat(),
        "totalDays": inclusive_days(payload.start_date, payload.end_date),
    })
    inserted_id = create_document(db, VACATIONS, doc)
    logger.info("Vacation request %s created for %s", doc["id"], staff.name)
    return to_vacation(db[VACATIONS].find_one({"_id": ObjectId(inserted_id)}))


def update_vacation(db: Database, identifier: Any, payload: VacationUpdate) -> Vacation:
    existing = _require(db, VACATIONS, identifier, "Vacation request")
    current = to_vacation(existing)
    changes = payload.model_dump(exclude_unset=True)
    start = changes.get("start_date", current.start_date)
    end = changes.get("end_date", current.end_date)
    try:
        check_date_order(start, end)
    except ValueError as e:
        raise ValidationError(str(e))

    updates = payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
    updates["totalDays"] = inclusive_days(start, end)
    updates["updatedAt"] = utcnow()
    db[VACATIONS].update_one({"_id": existing["_id"]}, {"$set": updates})
    logger.info("Vacation request updated: %s", existing["_id"])
    return to_vacation(db[VACATIONS].find_one({"_id": existing["_id"]}))


def delete_vacation(db: Database, identifier: Any) -> int:
    existing = _require(db, VACATIONS, identifier, "Vacation request")
    result = db[VACATIONS].delete_one({"_id": existing["_id"]})
    logger.info("Vacation request deleted: %s", existing["_id"])
    return result.deleted_count


def vacation_stats(db: Database) -> Dict[str, Any]:
    vacations = [to_vacation(d) for d in get_documents(db, VACATIONS)]

    def count(status: str) -> int:
        return sum(1 for v in vacations if v.status == status)

    return {
        "totalRequests": len(vacations),
        "pendingRequests": count("Pending"),
        "approvedRequests": count("Approved"),
        "ongoingVacations": count("Ongoing"),
        "completedVacations": count("Completed"),
        "rejectedRequests": count("Rejected"),
        "cancelledRequests": count("Cancelled"),
        "totalDaysRequested": sum(v.total_days for v in vacations),
        "totalSalaryHeld": sum(v.salary_hold for v in vacations),
        "totalAdvanceGiven": sum(v.salary_advance for v in vacations),
    }
