"""HTTP access to the check-in, count and registration endpoints."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from event_checkin.models import EventDay, RegistrationRecord, RegistrationToken, ScanOutcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_SUCCESS_MESSAGE = "Checked in"
DEFAULT_FAILURE_MESSAGE = "Scan failed"


class TransportError(RuntimeError):
    """Raised when the remote service could not give a usable answer."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RegistrationRejected(RuntimeError):
    """Raised when the registration service refuses a submission."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def _build_session(headers: Optional[dict[str, str]]) -> requests.Session:
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    if headers:
        session.headers.update(headers)
    return session


def _json_body(response: requests.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise TransportError(
            f"Unexpected response from server (HTTP {response.status_code}).",
            status_code=response.status_code,
        ) from exc
    if not isinstance(body, dict):
        raise TransportError(
            f"Unexpected response from server (HTTP {response.status_code}).",
            status_code=response.status_code,
        )
    return body


def _message_from(body: dict[str, Any], fallback: str) -> str:
    message = body.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return fallback


class CheckinClient:
    """Day-scoped mark-present and attendance count calls."""

    def __init__(
        self,
        base_url: str,
        *,
        path_template: str = "/api/registers/{day}",
        token_field: str = "regNum",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._path_template = path_template
        self._token_field = token_field
        self._timeout = timeout
        self._session = session or _build_session(headers)

    def url_for(self, day: EventDay) -> str:
        return f"{self._base_url}{self._path_template.format(day=day.key)}"

    def mark_present(self, day: EventDay, token: RegistrationToken) -> ScanOutcome:
        url = self.url_for(day)
        try:
            response = self._session.post(url, json={self._token_field: token}, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if response.status_code >= 500:
            body = self._try_json(response)
            raise TransportError(
                _message_from(body, f"Server error (HTTP {response.status_code})."),
                status_code=response.status_code,
            )

        body = _json_body(response)
        if 200 <= response.status_code < 300:
            return ScanOutcome.accepted(
                _message_from(body, DEFAULT_SUCCESS_MESSAGE),
                token=token,
                day=day,
                status_code=response.status_code,
            )
        return ScanOutcome.rejected(
            _message_from(body, DEFAULT_FAILURE_MESSAGE),
            token=token,
            day=day,
            status_code=response.status_code,
        )

    def fetch_count(self, day: EventDay) -> int:
        url = self.url_for(day)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if not response.ok:
            raise TransportError(
                f"Count request failed (HTTP {response.status_code}).",
                status_code=response.status_code,
            )

        body = _json_body(response)
        count = body.get("count")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise TransportError(f"Invalid count in response: {count!r}", status_code=response.status_code)
        return count

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _try_json(response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


class RegistrationClient:
    def __init__(
        self,
        base_url: str,
        *,
        path: str = "/api/registers",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{path}"
        self._timeout = timeout
        self._session = session or _build_session(headers)

    def submit(self, record: RegistrationRecord) -> RegistrationToken:
        """Register an attendee and return the issued registration token."""
        record.validate()
        try:
            response = self._session.post(self._url, json=record.to_payload(), timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if response.status_code >= 500:
            raise TransportError(
                f"Registration service error (HTTP {response.status_code}).",
                status_code=response.status_code,
            )

        body = _json_body(response)
        if not response.ok:
            raise RegistrationRejected(
                _message_from(body, "Registration failed"),
                status_code=response.status_code,
            )

        token = body.get("registrationToken") or body.get("regNum")
        if not isinstance(token, str) or not token.strip():
            raise TransportError("Registration response did not include a token.", status_code=response.status_code)
        logger.info("Registration accepted for %s", record.email.strip())
        return RegistrationToken(token.strip())
