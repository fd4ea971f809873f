import inspect
import json
from datetime import date, timedelta
from io import BytesIO

from fastapi.routing import APIRoute
from openpyxl import load_workbook

import main
from main import API_VERSION


def create(client, **body):
    response = client.post("/staff", json=body)
    assert response.status_code == 200, response.text
    return response.json()["data"]


def test_root_and_unknown_route(client):
    body = client.get("/").json()
    assert body["success"] is True
    assert body["data"] == {"version": API_VERSION}
    assert set(body) == {"success", "message", "data", "timestamp"}

    response = client.get("/nowhere")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Route GET /nowhere not found"
    assert "timestamp" in body


def test_create_staff_envelope(client):
    response = client.post("/staff", json={"name": "Alice", "batchNo": "A1", "visaType": "Employment"})
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Staff member created successfully"
    assert body["data"]["_id"]
    assert body["data"]["sl"] == 1
    assert body["data"]["batchNo"] == "A1"
    assert body["data"]["status"] == "Working"


def test_create_validation_errors_leave_store_unchanged(client):
    response = client.post("/staff", json={"name": ""})
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Name is required",
        "timestamp": response.json()["timestamp"],
    }

    create(client, name="Alice", batchNo="B1")
    response = client.post("/staff", json={"name": "Bob", "batchNo": "b1"})
    assert response.status_code == 400
    assert "Batch number already exists" in response.json()["error"]
    assert len(client.get("/staff").json()["data"]) == 1


def test_invalid_enum_is_rejected(client):
    response = client.post("/staff", json={"name": "Alice", "status": "Retired"})
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["details"]


def test_get_update_delete_by_either_identity(client):
    alice = create(client, name="Alice", batchNo="A1")

    assert client.get(f"/staff/{alice['_id']}").json()["data"]["name"] == "Alice"
    assert client.get(f"/staff/{alice['id']}").json()["data"]["_id"] == alice["_id"]

    response = client.put(f"/staff/{alice['id']}", json={"name": "Alice B", "batchNo": "A1", "salary": 3000})
    assert response.json()["data"]["salary"] == 3000
    assert response.json()["data"]["name"] == "Alice B"

    assert client.delete(f"/staff/{alice['_id']}").json()["data"] == {"deletedCount": 1}
    response = client.delete(f"/staff/{alice['_id']}")
    assert response.status_code == 404
    assert response.json()["error"] == "Staff member not found"


def test_bulk_endpoint(client):
    ids = [create(client, name=n)["_id"] for n in ("A", "B", "C")]

    response = client.post("/staff/bulk", json={"action": "updateStatus", "ids": ids[:2], "data": {"status": "Exited"}})
    assert response.json()["data"] == {"modifiedCount": 2}
    assert response.json()["message"] == "Updated status for 2 staff members"

    response = client.post("/staff/bulk", json={"action": "delete", "ids": [ids[2], "64b000000000000000000000"]})
    assert response.json()["data"] == {"deletedCount": 1}

    response = client.post("/staff/bulk", json={"action": "explode", "ids": ids})
    assert response.status_code == 422


def test_filter_endpoint(client):
    soon = (date.today() + timedelta(days=10)).isoformat()
    create(client, name="Alice", batchNo="A1", hotel="H1", expireDate=soon)
    create(client, name="Bob", status="Exited")

    data = client.get("/staff/filter", params={"filterExpireDate": "expiring"}).json()["data"]
    assert [s["name"] for s in data["staff"]] == ["Alice"]
    assert data["stats"]["totalStaff"] == 1

    data = client.get("/staff/filter", params={"filterExpireDate": "expired"}).json()["data"]
    assert data["staff"] == []

    data = client.get("/staff/filter", params={"view": "archive"}).json()["data"]
    assert [s["name"] for s in data["staff"]] == ["Bob"]


def test_filter_endpoint_treats_blank_inputs_as_unconstrained(client):
    create(client, name="Alice", salary=2000, passportExpireDate="2027-01-01")

    blank = {"salaryMin": "", "salaryMax": "", "passportExpireDate": "", "search": ""}
    response = client.get("/staff/filter", params=blank)
    assert response.status_code == 200
    assert [s["name"] for s in response.json()["data"]["staff"]] == ["Alice"]

    response = client.get("/staff/export", params=dict(blank, format="json"))
    assert [s["name"] for s in response.json()] == ["Alice"]

    params = {"salaryMin": "1500", "passportExpireDate": "01/01/2027"}
    data = client.get("/staff/filter", params=params).json()["data"]
    assert [s["name"] for s in data["staff"]] == ["Alice"]
    assert client.get("/staff/filter", params={"salaryMin": "2500"}).json()["data"]["staff"] == []

    response = client.get("/staff/filter", params={"salaryMin": "lots"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid filter"


def test_export_endpoints(client):
    create(client, name="Alice", batchNo="A1")
    create(client, name="Bob", status="Exited")

    response = client.get("/staff/export", params={"format": "xlsx"})
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert "staff_data_" in response.headers["content-disposition"]
    ws = load_workbook(BytesIO(response.content)).active
    assert ws.max_row == 2
    assert ws.cell(2, 3).value == "Alice"

    response = client.get("/staff/export", params={"format": "json", "view": "all"})
    assert [s["name"] for s in response.json()] == ["Alice", "Bob"]

    response = client.get("/staff/export", params={"format": "docx"})
    assert "staff_report_" in response.headers["content-disposition"]


def test_import_endpoint_requires_confirmation_for_duplicates(client):
    create(client, name="Existing", batchNo="B2")
    rows = [
        {"name": "Row One", "batchNo": "B1"},
        {"name": "Row Two", "batchNo": "B2"},
        {"name": "Row Three", "batchNo": "B3"},
    ]
    files = {"file": ("staff.json", json.dumps(rows).encode(), "application/json")}

    response = client.post("/staff/import", files=files)
    assert response.status_code == 409
    assert response.json()["details"]["duplicates"] == ["B2"]
    assert len(client.get("/staff").json()["data"]) == 1

    response = client.post("/staff/import", params={"confirm": "true"}, files=files)
    body = response.json()
    assert body["data"] == {"imported": 2, "skipped": ["B2"], "invalid": []}
    assert body["message"] == "Successfully imported 2 staff members (1 duplicates skipped)"
    names = [s["name"] for s in client.get("/staff").json()["data"]]
    assert names == ["Existing", "Row One", "Row Three"]


def test_routes_run_in_threadpool():
    # pymongo and openpyxl block, so no route may be a coroutine
    api_routes = [r for r in main.app.routes if isinstance(r, APIRoute)]
    assert any(r.path == "/staff/import" for r in api_routes)
    for route in api_routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path


def test_import_endpoint_reads_xlsx_upload(client):
    xlsx = main.export_xlsx([])
    response = client.post("/staff/import", files={"file": ("empty.xlsx", xlsx)})
    assert response.status_code == 400
    assert response.json()["error"] == "Import file contains no valid staff records"


def test_import_endpoint_rejects_malformed_file(client):
    files = {"file": ("staff.json", b"{oops", "application/json")}
    response = client.post("/staff/import", files=files)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_named_value_endpoints(client):
    assert client.post("/hotels", json={"name": "Grand Plaza"}).json()["data"] == {"name": "Grand Plaza"}
    assert client.post("/hotels", json={"name": "Grand Plaza"}).status_code == 409
    assert client.post("/companies", json={"name": " "}).status_code == 400
    client.post("/departments", json={"name": "Kitchen"})

    assert client.get("/hotels").json()["data"] == ["Grand Plaza"]
    assert client.get("/departments").json()["data"] == ["Kitchen"]

    assert client.delete("/hotels/Grand%20Plaza").json()["message"] == "Hotel deleted successfully"
    assert client.delete("/hotels/Grand%20Plaza").status_code == 404
    assert client.get("/hotels").json()["data"] == []


def test_stats_endpoint(client):
    create(client, name="A")
    create(client, name="B", status="Jobless")
    client.post("/companies", json={"name": "Acme"})
    data = client.get("/stats").json()["data"]
    assert data["staff"] == {"total": 2, "working": 1, "jobless": 1, "exited": 0}
    assert data["companies"] == 1


def test_vacation_endpoints(client):
    alice = create(client, name="Alice", batchNo="A1")
    body = {"staffId": alice["id"], "startDate": "2025-07-01", "endDate": "2025-07-05", "destination": "Cairo"}
    vacation = client.post("/vacations", json=body).json()["data"]
    assert vacation["staffName"] == "Alice"
    assert vacation["staffBatch"] == "A1"
    assert vacation["totalDays"] == 5
    assert vacation["id"] == 1

    bad = dict(body, endDate="2025-06-01")
    assert client.post("/vacations", json=bad).status_code == 422

    response = client.put(f"/vacations/{vacation['id']}", json={"status": "Approved", "approvedBy": "HR"})
    assert response.json()["data"]["status"] == "Approved"
    assert response.json()["data"]["approvedBy"] == "HR"

    assert [v["status"] for v in client.get("/vacations").json()["data"]] == ["Approved"]
    assert client.get("/vacations/stats").json()["data"]["approvedRequests"] == 1
    assert client.get(f"/vacations/{vacation['_id']}").json()["data"]["destination"] == "Cairo"

    assert client.delete(f"/vacations/{vacation['_id']}").json()["data"] == {"deletedCount": 1}
    assert client.get(f"/vacations/{vacation['_id']}").status_code == 404
