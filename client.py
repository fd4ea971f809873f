"""
Client-side state for staff screens.

``StaffStore`` keeps a snapshot of everything the staff pages show and
re-fetches it wholesale after each successful mutation. When the service
cannot be reached the store drops to an empty offline state instead of
blocking the caller.
"""
import logging
import os
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import requests

from filters import StaffFilter, filter_staff, staff_stats
from schemas import Staff

logger = logging.getLogger(__name__)

DEFAULT_API_URL = os.getenv("STAFF_API_URL", "http://localhost:8000")


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class StaffStore:
    def __init__(self, base_url: Optional[str] = None, session=None, timeout: float = 10):
        self.base_url = (base_url or DEFAULT_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.staff: List[Staff] = []
        self.hotels: List[str] = []
        self.companies: List[str] = []
        self.departments: List[str] = []
        self.offline = False

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError("Unable to reach the staff service") from e
        try:
            payload = response.json()
        except ValueError:
            raise ApiError(f"Unexpected response from the staff service ({response.status_code})",
                           response.status_code) from None
        if response.status_code >= 400 or not payload.get("success", False):
            raise ApiError(payload.get("error") or "Request failed", response.status_code, payload.get("details"))
        return payload.get("data")

    # ------------------- Reads -------------------

    def refresh(self) -> bool:
        """Replace the snapshot with fresh data; on failure fall back to empty offline state."""
        try:
            staff = self._request("GET", "/staff")
            hotels = self._request("GET", "/hotels")
            companies = self._request("GET", "/companies")
            departments = self._request("GET", "/departments")
        except ApiError as e:
            logger.warning("Staff service unavailable, using offline state: %s", e.message)
            self.staff, self.hotels, self.companies, self.departments = [], [], [], []
            self.offline = True
            return False
        self.staff = [Staff.model_validate(item) for item in staff or []]
        self.hotels = list(hotels or [])
        self.companies = list(companies or [])
        self.departments = list(departments or [])
        self.offline = False
        return True

    def filtered(self, criteria: Optional[StaffFilter] = None) -> List[Staff]:
        return filter_staff(self.staff, criteria)

    def stats(self) -> Dict[str, int]:
        return staff_stats(self.staff)

    def find(self, identifier: Any) -> Optional[Staff]:
        key = str(identifier)
        for person in self.staff:
            if person.object_id == key or str(person.legacy_id) == key:
                return person
        return None

    # ------------------- Mutations -------------------

    def _mutate(self, method: str, path: str, **kwargs) -> Any:
        data = self._request(method, path, **kwargs)
        self.refresh()
        return data

    def add_staff(self, record: Dict[str, Any]) -> Staff:
        return Staff.model_validate(self._mutate("POST", "/staff", json=record))

    def update_staff(self, identifier: Any, record: Dict[str, Any]) -> Staff:
        return Staff.model_validate(self._mutate("PUT", f"/staff/{identifier}", json=record))

    def delete_staff(self, identifier: Any) -> None:
        self._mutate("DELETE", f"/staff/{identifier}")

    def bulk(self, action: str, ids: Iterable[Any], data: Optional[Dict[str, Any]] = None) -> int:
        body = {"action": action, "ids": [str(i) for i in ids], "data": data or {}}
        result = self._mutate("POST", "/staff/bulk", json=body)
        return result.get("deletedCount", result.get("modifiedCount", 0))

    def bulk_delete(self, ids: Iterable[Any]) -> int:
        return self.bulk("delete", ids)

    def bulk_update_hotel(self, ids: Iterable[Any], hotel: str) -> int:
        return self.bulk("updateHotel", ids, {"hotel": hotel})

    def bulk_update_status(self, ids: Iterable[Any], status: str) -> int:
        return self.bulk("updateStatus", ids, {"status": status})

    def add_name(self, kind: str, name: str) -> None:
        self._mutate("POST", f"/{kind}", json={"name": name})

    def delete_name(self, kind: str, name: str) -> None:
        self._mutate("DELETE", f"/{kind}/{quote(name, safe='')}")

    def import_file(self, filename: str, content: bytes, confirm: bool = False) -> Dict[str, Any]:
        files = {"file": (filename, content)}
        return self._mutate("POST", "/staff/import", files=files, params={"confirm": str(confirm).lower()})
