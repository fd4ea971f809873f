"""
MongoDB access for the staff records service.

The client is created lazily by pymongo, so importing this module never
touches the network. Routes receive the database through ``get_db`` which
tests override with an in-memory replacement.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "staff_management")

client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
db = client[DATABASE_NAME]

STAFF = "staff"
VACATIONS = "vacations"
HOTELS = "hotels"
COMPANIES = "companies"
DEPARTMENTS = "departments"

STAFF_INDEXES = ["name", "batchNo", "department", "hotel", "status"]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a document stamped with createdAt/updatedAt and return its id as a string."""
    now = utcnow()
    doc = dict(data)
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def legacy_id(doc: Dict[str, Any]) -> Optional[int]:
    """Numeric id kept for older clients: the stored ``id`` or one derived from ``_id``."""
    if doc.get("id") is not None:
        return doc["id"]
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        return int(str(_id)[-6:], 16)
    return None


def find_by_identity(database: Database, collection_name: str, identifier: Any) -> Optional[Dict[str, Any]]:
    """
    Look a document up by its ObjectId string or by a legacy numeric id.

    Numeric ids match a stored ``id`` field first, then the id derived from
    ``_id`` so that ids handed out by ``legacy_id`` resolve as well.
    """
    collection = database[collection_name]
    key = str(identifier).strip()
    if ObjectId.is_valid(key):
        return collection.find_one({"_id": ObjectId(key)})
    try:
        numeric = int(key)
    except ValueError:
        return None
    doc = collection.find_one({"id": numeric})
    if doc:
        return doc
    for candidate in collection.find({"id": {"$exists": False}}):
        if legacy_id(candidate) == numeric:
            return candidate
    return None


def ensure_indexes(database: Database) -> None:
    try:
        staff = database[STAFF]
        for field in STAFF_INDEXES:
            staff.create_index([(field, ASCENDING)])
        for name in (HOTELS, COMPANIES, DEPARTMENTS):
            database[name].create_index([("name", ASCENDING)])
        logger.info("Database indexes ensured on %s", database.name)
    except PyMongoError as e:
        logger.warning("Index creation failed: %s", e)
