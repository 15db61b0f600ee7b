# tests/test_api_client.py

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from taskline.api.client import (
    CONTACTS_PATH,
    DEFAULT_UNAUTHORIZED_REASON,
    SEND_MESSAGE_PATH,
    TASKS_PATH,
    UPLOAD_PATH,
    ApiClient,
    guess_mime,
)
from taskline.api.errors import (
    ApplicationError,
    AuthorizationError,
    PreconditionError,
    TransportError,
    user_message,
)
from taskline.api.transport import HttpxTransport, make_timeout
from taskline.core.ports import HttpResponse

from .fakes import fail, ok, status


@pytest.mark.asyncio
async def test_bearer_header_and_body_passthrough(api, transport) -> None:
    transport.on("GET", TASKS_PATH, ok(tasks=[{"id": 1}]))
    body = await api.list_tasks()
    assert body["tasks"] == [{"id": 1}]
    call = transport.calls[0]
    assert call.headers["Authorization"] == "Bearer t0k3n"
    assert call.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_401_broadcasts_once_and_clears_token(api, transport, gate) -> None:
    reasons: list[str] = []
    gate.subscribe(reasons.append)
    transport.on("GET", TASKS_PATH, status(401, {"message": "Token expired"}))

    with pytest.raises(AuthorizationError) as ei:
        await api.list_tasks()

    assert ei.value.status == 401
    assert reasons == ["Token expired"]
    assert gate.token is None


@pytest.mark.asyncio
async def test_403_without_message_uses_default_reason(api, transport, gate) -> None:
    reasons: list[str] = []
    gate.subscribe(reasons.append)
    transport.on("GET", CONTACTS_PATH, status(403))

    with pytest.raises(AuthorizationError):
        await api.list_contacts()
    assert reasons == [DEFAULT_UNAUTHORIZED_REASON]


@pytest.mark.asyncio
async def test_success_false_is_application_error(api, transport, gate) -> None:
    transport.on("PUT", TASKS_PATH, fail("Not allowed"), action="status")
    with pytest.raises(ApplicationError) as ei:
        await api.update_status(3, "REVIEW")
    assert ei.value.message == "Not allowed"
    assert gate.token == "t0k3n"
    call = transport.calls[0]
    assert call.params == {"id": 3, "action": "status"}
    assert call.json == {"status_code": "REVIEW"}


@pytest.mark.asyncio
async def test_non_2xx_and_non_json_are_transport_errors(api, transport) -> None:
    transport.on("GET", TASKS_PATH, status(500, {"message": "DB down"}), status(200, None))

    with pytest.raises(TransportError) as ei:
        await api.list_tasks()
    assert user_message(ei.value, "fallback") == "DB down"

    with pytest.raises(TransportError):
        await api.list_tasks()


@pytest.mark.asyncio
async def test_create_targets_does_not_require_success_flag(api, transport) -> None:
    transport.on("GET", TASKS_PATH, status(200, {"targets": []}), action="create_targets")
    assert await api.create_targets() == {"targets": []}


@pytest.mark.asyncio
async def test_step_calls_shape(api, transport) -> None:
    transport.on("POST", TASKS_PATH, ok(), action="add_step")
    transport.on("PUT", TASKS_PATH, ok(), action="update_step")
    transport.on("DELETE", TASKS_PATH, ok(), action="delete_step")

    await api.add_step(4, "Buy cable")
    await api.update_step(9, True)
    await api.delete_step(9)

    add, upd, rm = transport.calls
    assert add.params == {"action": "add_step", "task_id": 4}
    assert add.json == {"step_title": "Buy cable"}
    assert upd.json == {"is_completed": 1}
    assert rm.params == {"action": "delete_step", "step_id": 9}


@pytest.mark.asyncio
async def test_send_message_is_multipart(api, transport) -> None:
    transport.on("POST", SEND_MESSAGE_PATH, ok(message="sent"))
    await api.send_message(7, "hello")
    files = transport.calls[0].files
    assert files == {"receiver_id": (None, b"7"), "message": (None, b"hello")}


@pytest.mark.asyncio
async def test_upload_reads_file_and_guesses_mime(api, transport, tmp_path: Path) -> None:
    f = tmp_path / "report.PDF"
    f.write_bytes(b"%PDF-1.4")
    transport.on("POST", UPLOAD_PATH, ok())

    await api.upload_file(12, f)
    call = transport.calls[0]
    assert call.data == {"task_id": "12"}
    assert call.files == {"file": ("report.PDF", b"%PDF-1.4", "application/pdf")}


@pytest.mark.asyncio
async def test_upload_missing_file_is_precondition_error(api, transport, tmp_path: Path) -> None:
    with pytest.raises(PreconditionError):
        await api.upload_file(1, tmp_path / "missing.txt")
    assert transport.calls == []


@pytest.mark.asyncio
async def test_has_valid_session(api, transport, gate) -> None:
    transport.on("GET", TASKS_PATH, ok(tasks=[]), fail("bad"))
    assert await api.has_valid_session() is True
    assert await api.has_valid_session() is False
    assert gate.token is None
    # no token: no request at all
    assert await api.has_valid_session() is False
    assert len(transport.calls) == 2


def test_guess_mime() -> None:
    assert guess_mime("a.jpeg") == "image/jpeg"
    assert guess_mime("notes") == "application/octet-stream"
    assert guess_mime("x.unknown") == "application/octet-stream"


def test_user_message_precedence() -> None:
    assert user_message(ApplicationError("Server says no"), "fb") == "Server says no"
    assert user_message(ApplicationError(""), "fb") == "fb"
    assert user_message(TransportError("HTTP 502"), "fb") == "HTTP 502"
    assert (
        user_message(TransportError("HTTP 500", HttpResponse(500, body={"message": "oops"})), "fb")
        == "oops"
    )
    assert user_message(AuthorizationError(401), "fb") == "fb"
    assert user_message(RuntimeError("x"), "fb") == "fb"


# ---- httpx transport ----

@pytest.mark.asyncio
async def test_httpx_transport_returns_any_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer abc"
        assert request.url.params["action"] == "me"
        return httpx.Response(401, json={"message": "nope"})

    t = HttpxTransport(timeout=make_timeout(1.0, 2.0), transport=httpx.MockTransport(handler))
    try:
        resp = await t.request(
            "GET",
            "https://backend.test/system/api/auth.php",
            headers={"Authorization": "Bearer abc"},
            params={"action": "me"},
        )
    finally:
        await t.aclose()
    assert resp.status == 401
    assert resp.ok is False
    assert resp.body == {"message": "nope"}


@pytest.mark.asyncio
async def test_httpx_transport_non_json_body_is_none() -> None:
    t = HttpxTransport(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
    try:
        resp = await t.request("GET", "https://backend.test/x")
    finally:
        await t.aclose()
    assert resp.ok is True
    assert resp.body is None


@pytest.mark.asyncio
async def test_httpx_transport_timeout_becomes_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    t = HttpxTransport(transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(TransportError) as ei:
            await t.request("GET", "https://backend.test/x")
    finally:
        await t.aclose()
    assert "timed out" in str(ei.value)
    assert ei.value.response is None


@pytest.mark.asyncio
async def test_client_over_httpx_end_to_end(gate) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "contacts": [], "unread_count": 0})

    t = HttpxTransport(transport=httpx.MockTransport(handler))
    client = ApiClient(t, gate, "https://backend.test/")
    try:
        body = await client.list_contacts()
    finally:
        await t.aclose()
    assert body["unread_count"] == 0


def test_make_timeout_values() -> None:
    timeout = make_timeout(5.0, 15.0)
    assert timeout.connect == 5.0
    assert timeout.read == 15.0
