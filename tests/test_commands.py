# tests/test_commands.py

from __future__ import annotations

import pytest

from taskline.api.client import AUTH_PATH, CONTACTS_PATH, CONVERSATION_PATH, SEND_MESSAGE_PATH, TASKS_PATH
from taskline.cli.bootstrap import close_app, create_app
from taskline.cli.commands import CommandRegistry, registry
from taskline.cli.main import handle_line
from taskline.core.lifecycle import AppActivity
from taskline.session.store import MemorySessionStore
from taskline.sync.poller import PollerState
from taskline.views.shell import AuthState

from .fakes import FakeNotifier, FakeTransport, fail, ok, settle


@pytest.fixture()
def app(settings):
    transport = FakeTransport()
    transport.on("GET", TASKS_PATH, ok(tasks=[{"id": 1, "title": "Printer", "status_code": "OPENED"}]))
    transport.on(
        "GET",
        TASKS_PATH,
        ok(task={"id": 1, "title": "Printer", "steps": [{"id": 10, "step_title": "Order toner"}]}),
        where={"id": 1},
    )
    transport.on("GET", CONTACTS_PATH, ok(contacts=[{"contact_id": 5, "full_name": "Bo Chen"}]))
    transport.on("GET", CONVERSATION_PATH, ok(messages=[]))
    transport.on("GET", AUTH_PATH, ok(user={"id": 1}), action="me")
    transport.on("POST", SEND_MESSAGE_PATH, ok())
    return create_app(
        settings=settings,
        transport=transport,
        store=MemorySessionStore({"token": "t0k3n"}),
        notifier=FakeNotifier(),
    )


@pytest.mark.asyncio
async def test_registry_routes_and_rejects_unknown(app) -> None:
    reg = CommandRegistry()
    seen: list[list[str]] = []

    async def handler(app, args):
        seen.append(args)
        return "done"

    reg.register("a", handler, "a", aliases=["alpha"])

    assert await reg.handle(app, "/a x y") == "done"
    assert await reg.handle(app, "/ALPHA") == "done"
    assert seen == [["x", "y"], []]
    assert await reg.handle(app, "hello") is None
    assert "Unknown command" in (await reg.handle(app, "/nope") or "")
    assert "Empty command" in (await reg.handle(app, "/") or "")
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_bootstrap_restores_session(app) -> None:
    assert app.gate.token == "t0k3n"
    app.shell.mount()
    assert app.shell.auth_state is AuthState.LOGGED_IN
    await settle()
    await close_app(app)
    assert app.shell.tasks.poller.state is PollerState.STOPPED


@pytest.mark.asyncio
async def test_env_token_overrides_stored_one(settings) -> None:
    settings.token = "from-env"
    store = MemorySessionStore({"token": "old"})
    app = create_app(settings=settings, transport=FakeTransport(), store=store, notifier=FakeNotifier())
    assert app.gate.token == "from-env"
    assert store.data["token"] == "from-env"


@pytest.mark.asyncio
async def test_task_commands(app) -> None:
    app.shell.mount()
    await settle()

    board = await registry.handle(app, "/tasks")
    assert "OPENED (1)" in board
    assert "#1 [medium] Printer" in board

    detail = await registry.handle(app, "/open 1")
    assert "[ ] 10: Order toner" in detail

    app.transport.on("PUT", TASKS_PATH, ok(), action="status")
    assert await registry.handle(app, "/status 1 review") == "Task #1 -> REVIEW"

    app.transport.on("PUT", TASKS_PATH, fail("Step is locked"), action="update_step")
    assert await registry.handle(app, "/step done 10") == "Reverted: Step is locked"
    assert await registry.handle(app, "/step done x") == "A numeric step id is required."

    assert "Usage" in await registry.handle(app, "/status 1")
    await close_app(app)


@pytest.mark.asyncio
async def test_new_task_rejected_without_title(app) -> None:
    app.shell.mount()
    await settle()
    app.transport.on(
        "GET", TASKS_PATH, ok(targets=[{"id": 3, "department_name": "IT"}]), action="create_targets"
    )
    assert await registry.handle(app, "/new high 3") == "A task title is required."
    assert app.transport.calls_to("POST", TASKS_PATH) == []
    await close_app(app)


@pytest.mark.asyncio
async def test_new_task_rejects_bad_or_unknown_target(app) -> None:
    app.shell.mount()
    await settle()
    app.transport.on(
        "GET", TASKS_PATH, ok(targets=[{"id": 3, "department_name": "IT"}]), action="create_targets"
    )

    reply = await registry.handle(app, "/new high abc Broken printer")
    assert reply.startswith("A numeric target id is required.")
    reply = await registry.handle(app, "/new high 9 Broken printer")
    assert reply.startswith("Unknown target department: 9.")
    assert app.transport.calls_to("POST", TASKS_PATH) == []
    assert app.shell.tasks.selected_target_id == 3
    await close_app(app)


@pytest.mark.asyncio
async def test_chat_commands_and_plain_text(app) -> None:
    app.shell.mount()
    await settle()

    assert "Use /help" in await handle_line(app, "hello there")

    chats = await registry.handle(app, "/chats")
    assert "5: Bo Chen" in chats

    opened = await registry.handle(app, "/chat 5")
    assert opened.startswith("Chat with Bo Chen")

    assert await handle_line(app, "hello there") == "Sent."
    sent = app.transport.calls_to("POST", SEND_MESSAGE_PATH)[0]
    assert sent.files["message"] == (None, b"hello there")

    assert "Screen: chats" == await registry.handle(app, "/back")
    await close_app(app)


@pytest.mark.asyncio
async def test_background_and_foreground(app) -> None:
    app.shell.mount()
    await settle()
    assert "background" in await registry.handle(app, "/bg")
    assert app.lifecycle.state is AppActivity.BACKGROUND
    assert app.shell.tasks.poller.state is PollerState.PAUSED
    await registry.handle(app, "/fg")
    assert app.shell.tasks.poller.state is PollerState.RUNNING
    await close_app(app)


@pytest.mark.asyncio
async def test_commands_require_login(app) -> None:
    app.gate.clear_session()
    app.shell.mount()
    assert "Not signed in" in await registry.handle(app, "/tasks")

    assert await registry.handle(app, "/login abc") == "Signed in."
    assert app.shell.auth_state is AuthState.LOGGED_IN

    assert await registry.handle(app, "/logout") == "Signed out."
    assert app.shell.auth_state is AuthState.LOGGED_OUT
    await close_app(app)
