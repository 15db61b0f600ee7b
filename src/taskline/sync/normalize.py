# src/taskline/sync/normalize.py

"""
Response normalization.

The backend is loosely typed: the same list can arrive under different keys, ids and names
use several field conventions, enumerations come in mixed case and booleans come as 1/"1"/
timestamps. Every function here maps such payloads onto canonical records with an explicit
fallback chain.

Policy: best-effort display. Nothing here raises. Malformed input degrades to a default
(medium priority, OPENED status, unread message) or the record is dropped.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from ..core.models import (
    Comment,
    Contact,
    ContactList,
    Message,
    Priority,
    Step,
    TargetDepartment,
    Task,
    TaskFile,
    TaskStatus,
    User,
)

_TARGET_LIST_KEYS = ("targets", "departments", "tasks")
_TIME_RE = re.compile(r"(\d{2}):(\d{2})")


# ---- primitive coercions ----

def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        v = raw.get(k)
        if v is not None:
            return v
    return None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip()
    try:
        return int(s)
    except ValueError:
        pass
    try:
        return int(float(s))
    except (ValueError, OverflowError):
        return None


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes"}


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


# ---- enumerations ----

def normalize_priority(value: Any) -> Priority:
    """Case-insensitive priority; anything unrecognized is MEDIUM."""
    if value is None:
        return Priority.MEDIUM
    try:
        return Priority(str(value).strip().lower())
    except ValueError:
        return Priority.MEDIUM


def normalize_status(value: Any) -> TaskStatus:
    return TaskStatus.parse(value)


def normalize_read_state(message: Any) -> bool:
    """
    True when any read marker holds: is_read of 1 / "1" (or true), or a non-null read_at.
    """
    if not isinstance(message, Mapping):
        return False
    if _as_flag(message.get("is_read")):
        return True
    read_at = message.get("read_at")
    return read_at is not None and str(read_at).strip() != ""


# ---- targets ----

def normalize_targets(raw: Any) -> list[TargetDepartment]:
    """
    Pick the target list out of a create_targets response and make it unique by id.

    The list may arrive under `targets`, `departments` or (backend bug) `tasks`; the first
    key holding a list wins. Entries without a truthy id or name are dropped; for duplicate
    ids the first occurrence is kept.
    """
    if not isinstance(raw, Mapping):
        return []

    entries: list[Any] = []
    for key in _TARGET_LIST_KEYS:
        value = raw.get(key)
        if isinstance(value, list):
            entries = value
            break

    out: dict[int, TargetDepartment] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        dept_id = _as_int(_first(entry, "id", "department_id", "target_department_id"))
        name = _as_str(_first(entry, "department_name", "name")).strip()
        if not dept_id or not name:
            continue
        if dept_id not in out:
            out[dept_id] = TargetDepartment(id=dept_id, department_name=name)
    return list(out.values())


# ---- tasks ----

def normalize_step(raw: Any) -> Step | None:
    if not isinstance(raw, Mapping):
        return None
    title = _as_str(_first(raw, "step_title", "title")).strip()
    if not title:
        return None
    return Step(
        id=_as_int(_first(raw, "id", "step_id")),
        title=title,
        is_completed=_as_flag(raw.get("is_completed")),
    )


def normalize_comment(raw: Any) -> Comment | None:
    if not isinstance(raw, Mapping):
        return None
    text = _as_str(_first(raw, "comment", "text", "body")).strip()
    if not text:
        return None
    return Comment(
        author=_as_str(_first(raw, "full_name", "author", "username")),
        text=text,
        created_at=_as_str(raw.get("created_at")),
    )


def normalize_file(raw: Any) -> TaskFile | None:
    if not isinstance(raw, Mapping):
        return None
    name = _as_str(_first(raw, "file_name", "original_name", "name")).strip()
    if not name:
        return None
    return TaskFile(
        id=_as_int(_first(raw, "id", "file_id")),
        name=name,
        url=_as_str(_first(raw, "url", "file_path", "path")),
    )


def _collect(items: Iterable[Any], fn) -> tuple:
    out = []
    for item in items:
        rec = fn(item)
        if rec is not None:
            out.append(rec)
    return tuple(out)


def normalize_task(raw: Any) -> Task | None:
    if not isinstance(raw, Mapping):
        return None
    task_id = _as_int(_first(raw, "id", "task_id"))
    if task_id is None:
        return None
    description = raw.get("description")
    return Task(
        id=task_id,
        title=_as_str(raw.get("title"), f"Task #{task_id}"),
        status_code=normalize_status(raw.get("status_code")),
        priority=normalize_priority(raw.get("priority")),
        description=None if description is None else str(description),
        created_at=_as_str(raw.get("created_at")),
        steps=_collect(_as_list(raw.get("steps")), normalize_step),
        comments=_collect(_as_list(raw.get("comments")), normalize_comment),
        files=_collect(_as_list(raw.get("files")), normalize_file),
    )


def normalize_tasks(response: Any) -> list[Task]:
    if not isinstance(response, Mapping):
        return []
    return list(_collect(_as_list(response.get("tasks")), normalize_task))


# ---- contacts / users ----

def normalize_contact(raw: Any) -> Contact | None:
    if not isinstance(raw, Mapping):
        return None
    contact_id = _as_int(_first(raw, "contact_id", "id", "user_id"))
    if contact_id is None:
        return None
    display = _as_str(_first(raw, "full_name", "username", "name")).strip() or f"#{contact_id}"
    return Contact(
        id=contact_id,
        display_name=display,
        username=_as_str(raw.get("username")),
        unread_count=_as_int(raw.get("unread_count")) or 0,
        last_message=_as_str(raw.get("last_message")),
    )


def normalize_contacts(response: Any) -> ContactList:
    if isinstance(response, list):
        items: list[Any] = response
        unread = 0
    elif isinstance(response, Mapping):
        items = _as_list(_first(response, "contacts", "data"))
        unread = _as_int(response.get("unread_count")) or 0
    else:
        return ContactList()
    return ContactList(contacts=_collect(items, normalize_contact), unread_total=unread)


def normalize_user(raw: Any) -> User | None:
    if not isinstance(raw, Mapping):
        return None
    user_id = _as_int(_first(raw, "id", "user_id"))
    if user_id is None:
        return None
    return User(
        id=user_id,
        full_name=_as_str(raw.get("full_name")),
        username=_as_str(raw.get("username")),
        role_name=_as_str(raw.get("role_name")),
        department_name=_as_str(raw.get("department_name")),
    )


def normalize_users(response: Any) -> list[User]:
    if not isinstance(response, Mapping):
        return []
    return list(_collect(_as_list(response.get("users")), normalize_user))


def filter_users(users: Iterable[User], needle: str) -> list[User]:
    """Case-insensitive substring match over name, username, role and department."""
    q = (needle or "").strip().lower()
    users = list(users)
    if not q:
        return users
    return [
        u
        for u in users
        if any(q in f.lower() for f in (u.full_name, u.username, u.role_name, u.department_name))
    ]


# ---- messages ----

def normalize_message(raw: Any) -> Message | None:
    if not isinstance(raw, Mapping):
        return None
    return Message(
        id=_as_int(_first(raw, "id", "message_id")),
        sender_id=_as_str(raw.get("sender_id")),
        receiver_id=_as_str(raw.get("receiver_id")),
        body=_as_str(_first(raw, "message", "body", "text")),
        created_at=_as_str(raw.get("created_at")),
        is_read=normalize_read_state(raw),
    )


def sort_messages(messages: Iterable[Message]) -> list[Message]:
    """Ascending by created_at string; sorted() is stable so ties keep input order."""
    return sorted(messages, key=lambda m: m.created_at or "")


def normalize_messages(response: Any) -> list[Message]:
    if not isinstance(response, Mapping):
        return []
    return sort_messages(_collect(_as_list(response.get("messages")), normalize_message))


def format_time(ts: Any) -> str:
    """HH:MM out of a backend timestamp, or "" when there is none."""
    if not ts:
        return ""
    m = _TIME_RE.search(str(ts))
    return f"{m.group(1)}:{m.group(2)}" if m else ""
