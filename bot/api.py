import os
from pathlib import Path

import requests
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[1] / ".env", override=True)

API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
API_TIMEOUT_SECONDS = 10


class LedgerApiError(Exception):
    """Ledger API answered with an error, or could not be reached (code ``unavailable``)."""

    def __init__(self, code: str, message: str = "", status_code: int | None = None):
        self.code = code
        self.message = message or code
        self.status_code = status_code
        super().__init__(self.message)


def _raise_for_api_error(r: requests.Response) -> None:
    if r.ok:
        return
    code = "unavailable" if r.status_code >= 500 else "error"
    message = r.reason or ""
    try:
        detail = r.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, dict):
        code = detail.get("code") or code
        message = detail.get("message") or message
    raise LedgerApiError(code, message, status_code=r.status_code)


def _request(method: str, path: str, json: dict | None = None) -> dict:
    try:
        r = requests.request(method, f"{API_BASE_URL}{path}", json=json, timeout=API_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise LedgerApiError("unavailable", str(exc)) from exc
    _raise_for_api_error(r)
    return r.json()


def api_get(path: str) -> dict:
    return _request("GET", path)


def api_post(path: str, json: dict) -> dict:
    return _request("POST", path, json=json)


def register_profile(employee_id: str, chat_user_id: str) -> dict:
    return api_post("/api/profiles", {"employee_id": employee_id, "chat_user_id": chat_user_id})


def fetch_profile(chat_user_id: str) -> dict:
    return api_get(f"/api/profiles/{chat_user_id}")


def record_scan(chat_user_id: str, scan_type: str = "bot") -> dict:
    return api_post(f"/api/profiles/{chat_user_id}/scans", {"scan_type": scan_type})
