from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from casewatch.api_client import CaseApiClient
from casewatch.config import ApiConfig, NotificationConfig, PollConfig
from casewatch.engine import SyncEngine
from casewatch.session import Session

from .factories import API_BASE


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """In-memory stand-in for the case-management API."""

    def __init__(self) -> None:
        self.stats: Dict[str, Any] = {"total_patients": 3, "pending_admissions": 1}
        self.weekly: List[Dict[str, Any]] = [{"day": "Mon", "appointments": 4, "new_patients": 1}]
        self.feed: List[Dict[str, Any]] = []
        self.patients: List[Dict[str, Any]] = []
        self.appointments: List[Dict[str, Any]] = []
        self.today: List[Dict[str, Any]] = []
        self.diagnostics: List[Dict[str, Any]] = []
        self.admissions: List[Dict[str, Any]] = []
        self.timelines: Dict[int, List[Dict[str, Any]]] = {}
        self.failing: set = set()
        self.unauthorized = False
        self.requests: List[httpx.Request] = []
        self.status_updates: List[tuple] = []
        self.on_request: Optional[Callable[[httpx.Request], None]] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)

        path = request.url.path
        if path == "/api/auth/login":
            creds = json.loads(request.content)
            if creds == {"username": "admin", "password": "secret"}:
                return httpx.Response(200, json={"success": True, "token": "tok-login", "user": {"name": "Admin"}})
            return httpx.Response(401, json={"error": "Invalid credentials"})

        if self.unauthorized:
            return httpx.Response(401, json={"error": "expired"})
        if path in self.failing:
            return httpx.Response(500, json={"error": "boom"})

        if request.method == "PUT" and path.endswith("/status"):
            _, _, resource, identity, _ = path.split("/")
            status = json.loads(request.content)["status"]
            self.status_updates.append((resource, identity, status))
            for record in getattr(self, resource):
                key = "admission_id" if resource == "admissions" else "booking_id"
                if record[key] == identity:
                    record["status"] = status
            return httpx.Response(200, json={"success": True})

        if path.startswith("/api/patients/") and path.endswith("/timeline"):
            patient_id = int(path.split("/")[3])
            return httpx.Response(200, json={"interactions": self.timelines.get(patient_id, [])})

        routes = {
            "/api/stats": self.stats,
            "/api/analytics/weekly": self.weekly,
            "/api/live-feed": self.feed,
            "/api/patients": self.patients,
            "/api/appointments": self.appointments,
            "/api/appointments/today": self.today,
            "/api/diagnostics": self.diagnostics,
            "/api/admissions": self.admissions,
        }
        if path not in routes:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=routes[path])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def session() -> Session:
    return Session(token="tok-123")


@pytest.fixture
def client(backend: FakeBackend, session: Session):
    api = CaseApiClient(
        ApiConfig(base_url=API_BASE, token="tok-123", username=None, password=None),
        session,
        transport=httpx.MockTransport(backend.handler),
    )
    yield api
    asyncio.run(api.close())


@pytest.fixture
def engine(client: CaseApiClient, session: Session, clock: FakeClock) -> SyncEngine:
    return SyncEngine(
        client,
        session,
        poll=PollConfig(interval_seconds=15),
        notification=NotificationConfig(journal_capacity=50, toast_duration_seconds=6),
        clock=clock,
    )
