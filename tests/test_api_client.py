from __future__ import annotations

import asyncio

import httpx
import pytest

from casewatch.api_client import ApiError, AuthenticationError, CaseApiClient
from casewatch.config import ApiConfig
from casewatch.session import Session

from .factories import API_BASE, admission, appointment


def test_requests_carry_bearer_token(client, backend) -> None:
    asyncio.run(client.stats())
    assert backend.requests[0].headers["Authorization"] == "Bearer tok-123"


def test_typed_records(client, backend) -> None:
    backend.appointments = [appointment("A1", doctor="Dr. Iyer")]
    backend.admissions = [admission("M1", admission_type=None)]

    appointments = asyncio.run(client.appointments())
    admissions = asyncio.run(client.admissions())

    assert appointments[0].booking_id == "A1"
    assert appointments[0].doctor == "Dr. Iyer"
    assert admissions[0].identity == "M1"
    assert admissions[0].admission_type == ""


def test_live_feed_sends_limit(client, backend) -> None:
    backend.feed = [{"id": 5, "message": "hi"}]
    feed = asyncio.run(client.live_feed(limit=15))
    assert feed[0].id == 5
    assert backend.requests[0].url.params["limit"] == "15"


def test_401_raises_and_ends_session(client, backend, session) -> None:
    backend.unauthorized = True
    with pytest.raises(AuthenticationError):
        asyncio.run(client.diagnostics())
    assert not session.authenticated


def test_server_error_raises_api_error(client, backend) -> None:
    backend.failing = {"/api/stats"}
    with pytest.raises(ApiError) as excinfo:
        asyncio.run(client.stats())
    assert excinfo.value.status_code == 500


def test_non_list_payload_is_an_error(client, backend) -> None:
    backend.diagnostics = {"oops": True}
    with pytest.raises(ApiError):
        asyncio.run(client.diagnostics())


def test_transport_failure_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api = CaseApiClient(
        ApiConfig(base_url=API_BASE, token="t", username=None, password=None),
        Session(token="t"),
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(ApiError):
        asyncio.run(api.stats())
    asyncio.run(api.close())


def test_login_establishes_session(backend) -> None:
    session = Session()
    api = CaseApiClient(
        ApiConfig(base_url=API_BASE, token=None, username="admin", password="secret"),
        session,
        transport=httpx.MockTransport(backend.handler),
    )
    token = asyncio.run(api.login("admin", "secret"))
    assert token == "tok-login"
    assert session.authenticated
    assert session.user == {"name": "Admin"}
    asyncio.run(api.close())


def test_login_with_bad_credentials(backend) -> None:
    session = Session()
    api = CaseApiClient(
        ApiConfig(base_url=API_BASE, token=None, username="admin", password="nope"),
        session,
        transport=httpx.MockTransport(backend.handler),
    )
    with pytest.raises(AuthenticationError):
        asyncio.run(api.login("admin", "nope"))
    assert not session.authenticated
    asyncio.run(api.close())


def test_update_status_paths(client, backend) -> None:
    backend.diagnostics = []
    asyncio.run(client.update_status("diagnostics", "D4", "completed"))
    request = backend.requests[-1]
    assert request.method == "PUT"
    assert request.url.path == "/api/diagnostics/D4/status"


def test_update_status_unknown_resource(client) -> None:
    with pytest.raises(ValueError):
        asyncio.run(client.update_status("patients", "1", "completed"))


def test_patient_timeline(client, backend) -> None:
    backend.timelines[3] = [{"id": 1, "message": "hello", "direction": "inbound"}]
    timeline = asyncio.run(client.patient_timeline(3))
    assert [i.message for i in timeline] == ["hello"]
    assert timeline[0].inbound
