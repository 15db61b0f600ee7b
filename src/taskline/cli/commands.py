# src/taskline/cli/commands.py

from __future__ import annotations

from collections.abc import Awaitable, Callable

from ..core.lifecycle import AppActivity
from ..core.models import Message, Task, TaskStatus
from ..sync.normalize import format_time
from ..sync.optimistic import MutationOutcome, MutationResult
from ..sync.poller import AdaptivePoller
from ..views.shell import AuthState
from .bootstrap import App

CommandHandler = Callable[[App, list[str]], Awaitable[str]]


class CommandRegistry:
    """Simple slash-command registry used by the console driver (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, app: App, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(app, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----

def _outcome_text(result: MutationResult, done: str) -> str:
    if result.outcome is MutationOutcome.APPLIED:
        return done
    if result.outcome is MutationOutcome.DROPPED:
        return "Still working on the previous request."
    if result.outcome is MutationOutcome.REJECTED:
        return result.message or "Nothing to do."
    return f"Reverted: {result.message}" if result.message else "Reverted."


def render_board(tasks_by_status: list[tuple[TaskStatus, list[Task]]]) -> str:
    lines: list[str] = []
    for status, tasks in tasks_by_status:
        lines.append(f"{status.value} ({len(tasks)})")
        for t in tasks:
            lines.append(f"  #{t.id} [{t.priority.value}] {t.title}")
    return "\n".join(lines)


def render_detail(task: Task) -> str:
    lines = [f"#{task.id} {task.title}", f"  status: {task.status_code.value}  priority: {task.priority.value}"]
    if task.description:
        lines.append(f"  {task.description}")
    if task.steps:
        lines.append("  steps:")
        for s in task.steps:
            mark = "x" if s.is_completed else " "
            sid = s.id if s.id is not None else "…"
            lines.append(f"    [{mark}] {sid}: {s.title}")
    if task.comments:
        lines.append("  comments:")
        for c in task.comments:
            lines.append(f"    {c.author or 'me'} {format_time(c.created_at)}: {c.text}")
    if task.files:
        lines.append("  files:")
        for f in task.files:
            lines.append(f"    {f.name} {f.url}")
    return "\n".join(lines)


def render_messages(messages: list[Message], is_mine: Callable[[Message], bool]) -> str:
    if not messages:
        return "(no messages)"
    lines = []
    for m in messages:
        who = "me" if is_mine(m) else m.sender_id
        lines.append(f"  {format_time(m.created_at)} {who}: {m.body}")
    return "\n".join(lines)


def _need_login(app: App) -> str | None:
    if app.shell.auth_state is not AuthState.LOGGED_IN:
        return "Not signed in. Use /login <token>."
    return None


def _int_arg(args: list[str], idx: int) -> int | None:
    try:
        return int(args[idx])
    except (IndexError, ValueError):
        return None


async def _reload(poller: AdaptivePoller) -> None:
    # A skipped refresh means a tick is already on the wire; its result is just as fresh.
    if not await poller.refresh(silent=False):
        await poller.wait()


# ---- handlers ----

async def cmd_help(app: App, args: list[str]) -> str:
    return registry.build_help()


async def cmd_login(app: App, args: list[str]) -> str:
    if not args:
        return "Usage: /login <token>"
    app.shell.login(args[0])
    ok = await app.api.has_valid_session()
    if not ok:
        app.shell.force_logout("")
        return "Token rejected by the server."
    return "Signed in."


async def cmd_logout(app: App, args: list[str]) -> str:
    app.shell.logout()
    return "Signed out."


async def cmd_tasks(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    board = app.shell.tasks
    await _reload(board.poller)
    return render_board(board.sections())


async def cmd_open(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    task_id = _int_arg(args, 0)
    if task_id is None:
        return "Usage: /open <task_id>"
    board = app.shell.tasks
    if not await board.open_task(task_id) or board.detail is None:
        return "Task could not be opened."
    return render_detail(board.detail)


async def cmd_close(app: App, args: list[str]) -> str:
    app.shell.tasks.close_task()
    return "Closed."


async def cmd_status(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    task_id = _int_arg(args, 0)
    if task_id is None or len(args) < 2:
        codes = ", ".join(s.value for s in TaskStatus)
        return f"Usage: /status <task_id> <{codes}>"
    result = await app.shell.tasks.update_status(task_id, args[1])
    return _outcome_text(result, f"Task #{task_id} -> {args[1].upper()}")


async def cmd_comment(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    result = await app.shell.tasks.send_comment(" ".join(args))
    return _outcome_text(result, "Comment added.")


async def cmd_step(app: App, args: list[str]) -> str:
    """
    /step add <title>
    /step done <step_id>
    /step undo <step_id>
    /step rm <step_id>
    """
    if msg := _need_login(app):
        return msg
    if not args:
        return "Usage: /step add <title> | done <id> | undo <id> | rm <id>"
    board = app.shell.tasks
    action = args[0].lower()
    if action == "add":
        return _outcome_text(await board.add_step(" ".join(args[1:])), "Step added.")
    step_id = _int_arg(args, 1)
    if step_id is None:
        return "A numeric step id is required."
    if action in ("done", "undo"):
        result = await board.toggle_step(step_id, action == "done")
        return _outcome_text(result, "Step updated.")
    if action == "rm":
        return _outcome_text(await board.delete_step(step_id), "Step deleted.")
    return f"Unknown step action: {action}"


async def cmd_upload(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    if not args:
        return "Usage: /upload <path>"
    result = await app.shell.tasks.upload_file(" ".join(args))
    return _outcome_text(result, "Uploaded.")


async def cmd_targets(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    targets = await app.shell.tasks.open_create()
    if not targets:
        return "No target departments."
    return "\n".join(f"  {t.id}: {t.department_name}" for t in targets)


async def cmd_new(app: App, args: list[str]) -> str:
    """/new <priority> <target_id> <title...>"""
    if msg := _need_login(app):
        return msg
    if len(args) < 2:
        return "Usage: /new <low|medium|high|urgent> <target_id> <title...>"
    target_id = _int_arg(args, 1)
    if target_id is None:
        return "A numeric target id is required. Use /targets to list them."
    board = app.shell.tasks
    if not board.targets:
        await board.open_create()
    if not board.select_target(target_id):
        return f"Unknown target department: {target_id}. Use /targets to list them."
    result = await board.create_task(
        " ".join(args[2:]),
        priority=args[0],
        target_id=target_id,
    )
    return _outcome_text(result, "Task created.")


async def cmd_chats(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    contacts = app.shell.show_chats()
    await _reload(contacts.poller)
    lines = [f"Unread: {contacts.unread_total}"]
    for c in contacts.contacts:
        badge = f" ({c.unread_count})" if c.unread_count else ""
        lines.append(f"  {c.id}: {c.display_name}{badge} - {c.last_message or '-'}")
    return "\n".join(lines)


async def cmd_users(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    contacts = app.shell.contacts or app.shell.show_chats()
    await contacts.open_new_chat()
    try:
        users = contacts.filtered_users(" ".join(args))
        return "\n".join(f"  {u.id}: {u.full_name or u.username} ({u.department_name})" for u in users) or "(none)"
    finally:
        contacts.close_new_chat()


async def cmd_chat(app: App, args: list[str]) -> str:
    if msg := _need_login(app):
        return msg
    contact_id = _int_arg(args, 0)
    if contact_id is None:
        return "Usage: /chat <contact_id>"
    conv = await app.shell.open_chat_by_contact_id(contact_id)
    if conv is None:
        return "Chat not opened."
    await _reload(conv.poller)
    return f"Chat with {conv.title}\n" + render_messages(conv.messages, conv.is_mine)


async def cmd_messages(app: App, args: list[str]) -> str:
    conv = app.shell.conversation
    if conv is None:
        return "No chat is open."
    return render_messages(conv.messages, conv.is_mine)


async def cmd_say(app: App, args: list[str]) -> str:
    conv = app.shell.conversation
    if conv is None:
        return "No chat is open."
    result = await conv.send(" ".join(args))
    return _outcome_text(result, "Sent.")


async def cmd_back(app: App, args: list[str]) -> str:
    screen = app.shell.back()
    return f"Screen: {screen.value}"


async def cmd_lifecycle(app: App, args: list[str]) -> str:
    return f"App is {app.lifecycle.state.value}; screen {app.shell.screen.value}"


async def cmd_background(app: App, args: list[str]) -> str:
    app.lifecycle.set_state(AppActivity.BACKGROUND)
    return "App moved to background (polling paused)."


async def cmd_foreground(app: App, args: list[str]) -> str:
    app.lifecycle.set_state(AppActivity.ACTIVE)
    return "App back in foreground."


registry.register("help", cmd_help, "Show this help message", aliases=["h", "?"])
registry.register("login", cmd_login, "Sign in with a bearer token")
registry.register("logout", cmd_logout, "Sign out and clear stored credentials")
registry.register("tasks", cmd_tasks, "Show the task board")
registry.register("open", cmd_open, "Open task detail: /open <id>")
registry.register("close", cmd_close, "Close the open task")
registry.register("status", cmd_status, "Change status: /status <id> <STATUS>")
registry.register("comment", cmd_comment, "Comment on the open task")
registry.register("step", cmd_step, "Steps of the open task: add/done/undo/rm")
registry.register("upload", cmd_upload, "Attach a file to the open task")
registry.register("targets", cmd_targets, "List target departments for new tasks")
registry.register("new", cmd_new, "Create a task: /new <priority> <target_id> <title>")
registry.register("chats", cmd_chats, "Show contacts and unread counts")
registry.register("users", cmd_users, "Search all users: /users [text]")
registry.register("chat", cmd_chat, "Open a chat: /chat <contact_id>")
registry.register("messages", cmd_messages, "Show the open chat")
registry.register("say", cmd_say, "Send a message in the open chat")
registry.register("back", cmd_back, "Navigate back")
registry.register("where", cmd_lifecycle, "Show app and screen state")
registry.register("bg", cmd_background, "Simulate the app going to background")
registry.register("fg", cmd_foreground, "Simulate the app returning to foreground")


__all__ = ["CommandRegistry", "registry"]
