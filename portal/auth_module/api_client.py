"""Thin ``requests`` wrapper around the mood-tracking REST backend."""

import logging
from typing import Any

import requests
from pydantic import ValidationError

from .config import settings
from .models import UserType
from .schemas import LoginData, LoginEnvelope


logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error. Please try again."

LOGIN_ENDPOINTS = {
    UserType.ADMIN: "/auth/login",
    UserType.STUDENT: "/student-auth/login",
    UserType.SCHOOL: "/school-auth/login",
    UserType.PARENT: "/parent-auth/login",
}

REGISTER_ENDPOINTS = {
    UserType.SCHOOL: "/school-auth/register",
    UserType.STUDENT: "/student-auth/register",
}

RESOURCES = frozenset(
    {"students", "teachers", "divisions", "academicyears", "documents", "notifications", "classes", "schools"}
)


class BackendError(Exception):
    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: requests.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    message = body.get("message") or body.get("detail")
    if not message:
        return default
    # Validation-pipe backends send one message per failed constraint.
    if isinstance(message, (list, tuple)):
        return "; ".join(str(item) for item in message) or default
    return message if isinstance(message, str) else str(message)


class BackendClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.api_timeout_seconds
        self.session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        default_error: str = "Request failed",
    ) -> Any:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, params=params, json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error(f"Backend {method} {path} failed: {exc}")
            raise BackendError(None, NETWORK_ERROR_MESSAGE) from exc

        if not response.ok:
            message = _error_message(response, default_error)
            logger.warning(f"Backend {method} {path} returned {response.status_code}: {message}")
            raise BackendError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(response.status_code, "Malformed response from server") from exc

    def _login_data(self, body: Any) -> LoginData:
        try:
            return LoginEnvelope.model_validate(body).data
        except ValidationError as exc:
            raise BackendError(None, "Malformed login response from server") from exc

    def login(self, user_type: UserType, email: str, password: str) -> LoginData:
        body = self._request(
            "POST",
            LOGIN_ENDPOINTS[user_type],
            json={"email": email, "password": password},
            default_error="Login failed",
        )
        return self._login_data(body)

    def register(self, user_type: UserType, payload: dict[str, Any]) -> LoginData:
        if user_type not in REGISTER_ENDPOINTS:
            raise ValueError(f"Registration is not available for {user_type.value} accounts")
        body = self._request("POST", REGISTER_ENDPOINTS[user_type], json=payload, default_error="Registration failed")
        return self._login_data(body)

    def list_records(self, resource: str, *, token: str | None = None, params: dict[str, Any] | None = None) -> list[dict]:
        if resource not in RESOURCES:
            raise ValueError(f"Unknown resource: {resource}")
        body = self._request("GET", f"/{resource}", token=token, params=params)
        if isinstance(body, dict) and isinstance(body.get("data"), list):
            body = body["data"]
        return [record for record in body or [] if isinstance(record, dict)]

    def create_record(self, resource: str, payload: dict[str, Any], *, token: str | None = None) -> dict:
        return self._request("POST", f"/{resource}", token=token, json=payload) or {}

    def update_record(self, resource: str, record_id: Any, payload: dict[str, Any], *, token: str | None = None) -> dict:
        return self._request("PUT", f"/{resource}/{record_id}", token=token, json=payload) or {}

    def delete_record(self, resource: str, record_id: Any, *, token: str | None = None) -> None:
        self._request("DELETE", f"/{resource}/{record_id}", token=token)

    def school_stats(self, *, token: str | None = None) -> dict:
        body = self._request("GET", "/schools/dashboard/stats", token=token)
        return body if isinstance(body, dict) else {}

    def student_mood_logs(
        self, student_id: Any, *, token: str | None = None, date_from: str | None = None
    ) -> list[dict]:
        params: dict[str, Any] = {"studentId": student_id, "status": "true"}
        if date_from:
            params["dateFrom"] = date_from
        body = self._request("GET", "/student-mood-logs", token=token, params=params)
        if isinstance(body, dict) and isinstance(body.get("data"), list):
            body = body["data"]
        return [log for log in body or [] if isinstance(log, dict)]
