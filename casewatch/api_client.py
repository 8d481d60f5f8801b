"""Async HTTP client for the case-management backend."""

import logging
from typing import Any, Dict, Generator, List, Optional

import httpx

from .config import ApiConfig
from .models import (
    ADMISSIONS,
    APPOINTMENTS,
    DIAGNOSTICS,
    STATUSES,
    Admission,
    Appointment,
    Diagnostic,
    Interaction,
    Patient,
    Stats,
    WeeklyPoint,
)
from .session import Session

logger = logging.getLogger(__name__)

# Status-update path segment for each resource that accepts writes.
STATUS_PATHS = {
    APPOINTMENTS: "appointments",
    DIAGNOSTICS: "diagnostics",
    ADMISSIONS: "admissions",
}


class ApiError(Exception):
    """A request to the backend failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ApiError):
    """The backend rejected the session credential (HTTP 401)."""


class BearerAuth(httpx.Auth):
    """
    Attaches the current session token to every request.

    A 401 response ends the session; the request is not retried.
    """

    def __init__(self, session: Session):
        self.session = session

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.session.token:
            request.headers["Authorization"] = f"Bearer {self.session.token}"
        response = yield request
        if response.status_code == 401 and self.session.authenticated:
            self.session.end(reason="unauthorized")


class CaseApiClient:
    """Read and write endpoints of the backend, returning typed records."""

    def __init__(
        self,
        config: ApiConfig,
        session: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            config: API configuration.
            session: Session whose token is sent with every request.
            transport: Optional transport override (used by tests).
        """
        self.config = config
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            auth=BearerAuth(session),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError(f"{method} {path} rejected: unauthorized", 401)
        if response.is_error:
            raise ApiError(
                f"{method} {path} returned HTTP {response.status_code}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{method} {path} returned invalid JSON: {e}", response.status_code) from e

    async def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self._request("GET", path, params=params)
        if not isinstance(data, list):
            raise ApiError(f"GET {path} returned {type(data).__name__}, expected a list")
        return [item for item in data if isinstance(item, dict)]

    # ---- Auth --------------------------------------------------------------
    async def login(self, username: str, password: str) -> str:
        """
        Exchange operator credentials for a bearer token.

        Establishes the session on success.

        Raises:
            AuthenticationError: If the backend refuses the credentials.
        """
        try:
            data = await self._request(
                "POST", "/api/auth/login", json={"username": username, "password": password}
            )
        except AuthenticationError as e:
            raise AuthenticationError("Invalid username or password", 401) from e

        if not isinstance(data, dict) or not data.get("success") or not data.get("token"):
            error = data.get("error") if isinstance(data, dict) else None
            raise AuthenticationError(error or "Failed to authenticate. Please check your credentials.")

        self.session.establish(data["token"], data.get("user"))
        return data["token"]

    # ---- Reads -------------------------------------------------------------
    async def stats(self) -> Stats:
        data = await self._request("GET", "/api/stats")
        if not isinstance(data, dict):
            raise ApiError("GET /api/stats did not return an object")
        return Stats.from_dict(data)

    async def weekly_analytics(self) -> List[WeeklyPoint]:
        return [WeeklyPoint.from_dict(item) for item in await self._get_list("/api/analytics/weekly")]

    async def live_feed(self, limit: int = 15) -> List[Interaction]:
        items = await self._get_list("/api/live-feed", params={"limit": limit})
        return [Interaction.from_dict(item) for item in items]

    async def patients(self, search: str = "", limit: int = 50) -> List[Patient]:
        items = await self._get_list("/api/patients", params={"search": search, "limit": limit})
        return [Patient.from_dict(item) for item in items]

    async def appointments(self, status: str = "all") -> List[Appointment]:
        items = await self._get_list("/api/appointments", params={"status": status})
        return [Appointment.from_dict(item) for item in items]

    async def today_appointments(self) -> List[Appointment]:
        return [Appointment.from_dict(item) for item in await self._get_list("/api/appointments/today")]

    async def diagnostics(self) -> List[Diagnostic]:
        return [Diagnostic.from_dict(item) for item in await self._get_list("/api/diagnostics")]

    async def admissions(self) -> List[Admission]:
        return [Admission.from_dict(item) for item in await self._get_list("/api/admissions")]

    async def patient_timeline(self, patient_id: int) -> List[Interaction]:
        data = await self._request("GET", f"/api/patients/{patient_id}/timeline")
        interactions = data.get("interactions") if isinstance(data, dict) else None
        return [
            Interaction.from_dict(item)
            for item in interactions or []
            if isinstance(item, dict)
        ]

    # ---- Writes ------------------------------------------------------------
    async def update_status(self, resource: str, identity: str, status: str) -> None:
        """
        Set the status of one booking or admission.

        Args:
            resource: One of appointments, diagnostics, admissions.
            identity: Booking or admission identifier.
            status: New status value.

        Raises:
            ValueError: If the resource or status is not recognised.
            ApiError: If the backend rejects the update.
        """
        if resource not in STATUS_PATHS:
            raise ValueError(f"Unknown resource for status update: {resource}")
        if status not in STATUSES:
            raise ValueError(f"Unknown status: {status}")

        path = f"/api/{STATUS_PATHS[resource]}/{identity}/status"
        await self._request("PUT", path, json={"status": status})
        logger.info(f"Updated {resource} {identity} to {status}")
