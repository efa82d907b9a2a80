import json
import logging

import httpx
import pytest

from app.adapters.ghl.client import GhlApiError, GhlClient


class GhlServer:
    """In-memory stand-in for the handful of GHL endpoints the client calls."""

    def __init__(self, contacts=None):
        self.contacts = list(contacts or [])
        self.requests = []
        self.fail_paths = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.fail_paths:
            status, body = self.fail_paths[path]
            return httpx.Response(status, json=body)
        if request.method == "GET" and path == "/contacts/":
            return httpx.Response(200, json={"contacts": self.contacts})
        if request.method == "POST" and path == "/contacts/":
            body = json.loads(request.content)
            return httpx.Response(201, json={"contact": {"id": "c-new", **body}})
        if request.method == "PUT" and path.startswith("/contacts/"):
            body = json.loads(request.content)
            return httpx.Response(200, json={"contact": {"id": path.rsplit("/", 1)[1], **body}})
        if request.method == "GET" and path == "/opportunities/search":
            return httpx.Response(200, json={"opportunities": [{"id": "o-1", "name": "x"}]})
        return httpx.Response(404, json={"message": "not found"})


def _client(server, api_key="pit-test"):
    return GhlClient(api_key, "loc-1", transport=httpx.MockTransport(server))


@pytest.mark.asyncio
async def test_request_headers_and_params():
    server = GhlServer()
    await _client(server).search_contacts("ana@example.com")
    req = server.requests[0]
    assert req.headers["Authorization"] == "Bearer pit-test"
    assert req.headers["Version"] == "2021-07-28"
    assert req.url.params["locationId"] == "loc-1"
    assert req.url.params["query"] == "ana@example.com"


@pytest.mark.asyncio
async def test_email_search_requires_exact_match():
    server = GhlServer(contacts=[{"id": "c-1", "email": "ana.b@example.com"}])
    client = _client(server)
    assert await client.search_contact_by_email("ana@example.com") is None

    server.contacts = [{"id": "c-1", "email": "ANA@example.com"}]
    assert (await client.search_contact_by_email("ana@example.com"))["id"] == "c-1"


@pytest.mark.asyncio
async def test_phone_search_matches_digit_suffix():
    server = GhlServer(contacts=[{"id": "c-2", "phone": "+1 (555) 123-4567"}])
    found = await _client(server).search_contact_by_phone("5551234567")
    assert found["id"] == "c-2"


@pytest.mark.asyncio
async def test_find_or_create_updates_existing():
    server = GhlServer(contacts=[{"id": "c-1", "email": "ana@example.com"}])
    result = await _client(server).find_or_create_contact({"email": "ana@example.com", "firstName": "Ana"})
    assert result.created is False
    assert result.id == "c-1"
    assert server.requests[-1].method == "PUT"


@pytest.mark.asyncio
async def test_find_or_create_creates_when_absent():
    server = GhlServer()
    result = await _client(server).find_or_create_contact({"email": "new@example.com", "phone": "+15551234567"})
    assert result.created is True
    assert result.id == "c-new"
    created_body = json.loads(server.requests[-1].content)
    assert created_body["locationId"] == "loc-1"


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status_and_message():
    server = GhlServer()
    server.fail_paths["/contacts/c-9/notes"] = (422, {"message": ["body must be a string", "too short"]})
    with pytest.raises(GhlApiError) as exc:
        await _client(server).add_note("c-9", "hello")
    assert exc.value.status_code == 422
    assert exc.value.message == "body must be a string; too short"


@pytest.mark.asyncio
async def test_transport_error_is_502():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GhlApiError) as exc:
        await GhlClient("k", "loc", transport=httpx.MockTransport(boom)).list_pipelines()
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_missing_api_key_fails_fast():
    server = GhlServer()
    with pytest.raises(GhlApiError) as exc:
        await _client(server, api_key="").list_pipelines()
    assert exc.value.status_code == 500
    assert server.requests == []


@pytest.mark.asyncio
async def test_contact_opportunities_query():
    server = GhlServer()
    opps = await _client(server).get_contact_opportunities("c-1", "pipe-1")
    assert opps == [{"id": "o-1", "name": "x"}]
    params = server.requests[0].url.params
    assert params["contact_id"] == "c-1"
    assert params["pipeline_id"] == "pipe-1"
    assert params["location_id"] == "loc-1"


@pytest.mark.asyncio
async def test_failure_log_carries_trace_id(caplog):
    server = GhlServer()
    server.fail_paths["/opportunities/pipelines"] = (503, {"message": "unavailable"})
    caplog.set_level(logging.WARNING, logger="app.adapters.ghl.client")

    with pytest.raises(GhlApiError):
        await _client(server).list_pipelines(trace_id="trace_abc_12345678")

    events = [json.loads(r.getMessage()) for r in caplog.records if r.name == "app.adapters.ghl.client"]
    assert events[-1]["event"] == "ghl_request_failed"
    assert events[-1]["trace_id"] == "trace_abc_12345678"
