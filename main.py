import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
import pydantic
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import services
from database import COMPANIES, DEPARTMENTS, HOTELS, ensure_indexes, get_db
from errors import StaffServiceError, ValidationError
from filters import StaffFilter, filter_staff, staff_stats
from schemas import BulkRequest, NamedValueIn, StaffIn, VacationIn, VacationUpdate
from transfer import MEDIA_TYPES, export_docx, export_filename, export_json, export_xlsx, parse_rows

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "2.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db())
    yield


app = FastAPI(title="Staff Management API", version=API_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------- Envelope -------------------

def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def ok(data: Any = None, message: str = "Success") -> dict:
    return {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data, by_alias=True),
        "timestamp": timestamp(),
    }


def fail(status_code: int, error: str, details: Any = None) -> JSONResponse:
    body = {"success": False, "error": error, "timestamp": timestamp()}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(StaffServiceError)
async def service_error_handler(request: Request, exc: StaffServiceError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return fail(exc.status_code, exc.message, exc.details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return fail(404, f"Route {request.method} {request.url.path} not found")
    return fail(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return fail(422, "Invalid request", exc.errors())


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return fail(503, "Database unavailable")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return fail(500, "Internal server error")

# ------------------- Health -------------------
@app.get("/")
def read_root():
    return ok({"version": API_VERSION}, "Staff Management API Server is running")


@app.get("/health")
def health(db: Database = Depends(get_db)):
    try:
        db.command("ping")
    except PyMongoError as e:
        logger.warning("Health check failed: %s", e)
        return fail(503, "Database connection failed")
    return ok({"status": "healthy", "database": "connected"}, "System is healthy")


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return ok(response, "Server is running and accessible")

# ------------------- Staff -------------------

def staff_filter_params(
    view: Literal["active", "archive", "all"] = Query("active"),
    search: str = Query(""),
    visa_type: str = Query("", alias="visaType"),
    hotel: str = Query(""),
    company: str = Query(""),
    status: str = Query(""),
    expire_bucket: Literal["", "expired", "expiring", "valid"] = Query("", alias="filterExpireDate"),
    passport_bucket: Literal["", "expired", "expiring", "valid"] = Query("", alias="filterPassportExpireDate"),
    department: str = Query(""),
    salary_min: str = Query("", alias="salaryMin"),
    salary_max: str = Query("", alias="salaryMax"),
    passport_expire_date: str = Query("", alias="passportExpireDate"),
    card_no: str = Query("", alias="cardNo"),
) -> StaffFilter:
    try:
        return StaffFilter(
            view=view,
            search=search,
            visa_type=visa_type,
            hotel=hotel,
            company=company,
            status=status,
            expire_bucket=expire_bucket,
            passport_bucket=passport_bucket,
            department=department,
            salary_min=salary_min,
            salary_max=salary_max,
            passport_expire_date=passport_expire_date,
            card_no=card_no,
        )
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid filter", e.errors(include_url=False, include_context=False)) from None


@app.get("/staff")
def list_staff(db: Database = Depends(get_db)):
    staff = services.list_staff(db)
    logger.info("Fetched %d staff members", len(staff))
    return ok(staff)


@app.get("/staff/filter")
def filter_staff_route(criteria: StaffFilter = Depends(staff_filter_params), db: Database = Depends(get_db)):
    staff = filter_staff(services.list_staff(db), criteria)
    return ok({"staff": staff, "stats": staff_stats(staff)})


@app.get("/staff/export")
def export_staff(
    file_format: Literal["xlsx", "docx", "json"] = Query("xlsx", alias="format"),
    criteria: StaffFilter = Depends(staff_filter_params),
    db: Database = Depends(get_db),
):
    staff = filter_staff(services.list_staff(db), criteria)
    if file_format == "xlsx":
        content = export_xlsx(staff)
    elif file_format == "docx":
        content = export_docx(staff)
    else:
        content = export_json(staff)
    filename = export_filename(file_format)
    logger.info("Exported %d staff members as %s", len(staff), file_format)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[file_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/staff/import")
def import_staff(
    file: UploadFile = File(...),
    confirm: bool = Query(False),
    db: Database = Depends(get_db),
):
    rows = parse_rows(file.filename, file.file.read())
    result = services.import_staff(db, rows, confirm=confirm)
    message = f"Successfully imported {result['imported']} staff members"
    if result["skipped"]:
        message += f" ({len(result['skipped'])} duplicates skipped)"
    return ok(result, message)


@app.post("/staff/bulk")
def bulk_staff(payload: BulkRequest, db: Database = Depends(get_db)):
    count = services.bulk_update(db, payload.action, payload.ids, payload.data)
    if payload.action == "delete":
        return ok({"deletedCount": count}, f"Deleted {count} staff members")
    field = "hotel" if payload.action == "updateHotel" else "status"
    return ok({"modifiedCount": count}, f"Updated {field} for {count} staff members")


@app.get("/staff/{staff_id}")
def get_staff(staff_id: str, db: Database = Depends(get_db)):
    return ok(services.get_staff(db, staff_id))


@app.post("/staff")
def create_staff(payload: StaffIn, db: Database = Depends(get_db)):
    return ok(services.create_staff(db, payload), "Staff member created successfully")


@app.put("/staff/{staff_id}")
def update_staff(staff_id: str, payload: StaffIn, db: Database = Depends(get_db)):
    return ok(services.update_staff(db, staff_id, payload), "Staff member updated successfully")


@app.delete("/staff/{staff_id}")
def delete_staff(staff_id: str, db: Database = Depends(get_db)):
    count = services.delete_staff(db, staff_id)
    return ok({"deletedCount": count}, "Staff member deleted successfully")

# ------------------- Hotels / Companies / Departments -------------------

def _add_named(db: Database, kind: str, payload: NamedValueIn):
    name = services.add_name(db, kind, payload.name)
    return ok({"name": name}, f"{services.NAMED_COLLECTIONS[kind]} added successfully")


def _delete_named(db: Database, kind: str, name: str):
    services.delete_name(db, kind, name)
    return ok({"name": name}, f"{services.NAMED_COLLECTIONS[kind]} deleted successfully")


@app.get("/hotels")
def list_hotels(db: Database = Depends(get_db)):
    return ok(services.list_names(db, HOTELS))


@app.post("/hotels")
def add_hotel(payload: NamedValueIn, db: Database = Depends(get_db)):
    return _add_named(db, HOTELS, payload)


@app.delete("/hotels/{name}")
def delete_hotel(name: str, db: Database = Depends(get_db)):
    return _delete_named(db, HOTELS, name)


@app.get("/companies")
def list_companies(db: Database = Depends(get_db)):
    return ok(services.list_names(db, COMPANIES))


@app.post("/companies")
def add_company(payload: NamedValueIn, db: Database = Depends(get_db)):
    return _add_named(db, COMPANIES, payload)


@app.delete("/companies/{name}")
def delete_company(name: str, db: Database = Depends(get_db)):
    return _delete_named(db, COMPANIES, name)


@app.get("/departments")
def list_departments(db: Database = Depends(get_db)):
    return ok(services.list_names(db, DEPARTMENTS))


@app.post("/departments")
def add_department(payload: NamedValueIn, db: Database = Depends(get_db)):
    return _add_named(db, DEPARTMENTS, payload)


@app.delete("/departments/{name}")
def delete_department(name: str, db: Database = Depends(get_db)):
    return _delete_named(db, DEPARTMENTS, name)

# ------------------- Stats -------------------
@app.get("/stats")
def stats(db: Database = Depends(get_db)):
    return ok(services.store_stats(db))

# ------------------- Vacations -------------------
@app.get("/vacations")
def list_vacations(
    status: str = Query(""),
    staff_name: str = Query("", alias="staffName"),
    db: Database = Depends(get_db),
):
    vacations = services.list_vacations(db, status=status, staff_name=staff_name)
    logger.info("Fetched %d vacation requests", len(vacations))
    return ok(vacations)


@app.get("/vacations/stats")
def vacation_stats(db: Database = Depends(get_db)):
    return ok(services.vacation_stats(db))


@app.post("/vacations")
def create_vacation(payload: VacationIn, db: Database = Depends(get_db)):
    return ok(services.create_vacation(db, payload), "Vacation request created successfully")


@app.get("/vacations/{vacation_id}")
def get_vacation(vacation_id: str, db: Database = Depends(get_db)):
    return ok(services.get_vacation(db, vacation_id))


@app.put("/vacations/{vacation_id}")
def update_vacation(vacation_id: str, payload: VacationUpdate, db: Database = Depends(get_db)):
    return ok(services.update_vacation(db, vacation_id, payload), "Vacation request updated successfully")


@app.delete("/vacations/{vacation_id}")
def delete_vacation(vacation_id: str, db: Database = Depends(get_db)):
    count = services.delete_vacation(db, vacation_id)
    return ok({"deletedCount": count}, "Vacation request deleted successfully")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
