"""
Backend client
==============

Thin wrapper over the REST backend that persists configuration and monthly
reports. Every user-scoped endpoint lives under
`{base_url}/user/{user_id}`:

    GET  /config                      -> {"data": {"diseases": [...], "locations": [...]}}
    POST /config
    GET  /reports                     -> {reportKey: MonthlyRecord, ...}
    GET  /report/{disease}/{monthId}  -> {"exists": bool, "data": {...} | null}
    POST /report

Errors raise `BackendError` (`SessionExpiredError` on HTTP 401), except in
`fetch_store`, where any failure simply yields an empty record store.
"""

from __future__ import annotations
from typing import Any, Dict, Optional
import logging

import requests

from .config import Settings
from .errors import BackendError, SessionExpiredError
from .models import MonthlyRecord
from .registry import ConfigRegistry
from .store import MonthlyRecordStore

logger = logging.getLogger(__name__)


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        user_id: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or Settings.API_BASE_URL).rstrip("/")
        self.user_id = user_id or Settings.USER_ID
        self.token = token if token is not None else Settings.AUTH_TOKEN
        self.timeout = timeout or Settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()

    def headers(self) -> Dict[str, str]:
        h = {"Content-Type": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    def request(self, method: str, endpoint: str, payload: Any = None, user_scoped: bool = True) -> Any:
        prefix = f"/user/{self.user_id}" if user_scoped else ""
        url = f"{self.base_url}{prefix}{endpoint}"
        try:
            resp = self.session.request(
                method, url, json=payload, headers=self.headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise BackendError(f"{method} {url} failed: {e}") from e
        if resp.status_code == 401:
            self.token = None
            raise SessionExpiredError("Session expired. Please login again.")
        try:
            body = resp.json()
        except ValueError as e:
            raise BackendError(f"{method} {url}: invalid JSON (HTTP {resp.status_code})") from e
        if isinstance(body, dict) and body.get("error"):
            raise BackendError(f"{method} {url}: {body['error']}")
        if not resp.ok:
            raise BackendError(f"{method} {url}: HTTP {resp.status_code}")
        return body

    # ---------------- Session ----------------
    def login(self, username: str, password: str) -> Dict[str, Any]:
        data = self.request(
            "POST", "/login", {"username": username, "password": password}, user_scoped=False
        )
        if data.get("success"):
            self.token = data.get("token")
            self.user_id = data.get("user_id") or self.user_id
        return data

    def logout(self) -> None:
        try:
            self.request("POST", "/logout", user_scoped=False)
        finally:
            self.token = None

    # ---------------- Config ----------------
    def get_config(self) -> ConfigRegistry:
        return ConfigRegistry.from_payload(self.request("GET", "/config"))

    def save_config(self, registry: ConfigRegistry) -> None:
        result = self.request("POST", "/config", registry.to_payload())
        if not (isinstance(result, dict) and result.get("success")):
            raise BackendError("Unknown config save error.")

    # ---------------- Reports ----------------
    def get_report(self, disease: str, month_id: str) -> Optional[MonthlyRecord]:
        """The saved report for one disease and month, or None."""
        result = self.request("GET", f"/report/{disease}/{month_id}")
        if not isinstance(result, dict) or not result.get("exists"):
            return None
        return MonthlyRecord(
            month_id=month_id,
            disease=disease,
            reporter_id=self.user_id,
            data=result.get("data") or {},
        )

    def save_report(self, record: MonthlyRecord) -> None:
        result = self.request("POST", "/report", record.to_payload())
        if not (isinstance(result, dict) and result.get("success")):
            raise BackendError("Unknown save error.")

    def get_all_reports(self) -> MonthlyRecordStore:
        return MonthlyRecordStore.from_payload(self.request("GET", "/reports"))

    def fetch_store(self) -> MonthlyRecordStore:
        """Like `get_all_reports`, but a failure yields an empty store."""
        try:
            store = self.get_all_reports()
        except BackendError as e:
            logger.error("Error fetching data for reports: %s", e)
            return MonthlyRecordStore.empty()
        logger.info("%d monthly records cached for reporting.", len(store))
        return store
