# src/taskline/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status as the backend names it.

    Declaration order is the board column order.
    """

    OPENED = "OPENED"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, raw: object) -> TaskStatus:
        if raw is None:
            return cls.OPENED
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.OPENED


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(slots=True, frozen=True)
class Step:
    id: int | None  # None while an optimistic step waits for the server id
    title: str
    is_completed: bool = False


@dataclass(slots=True, frozen=True)
class Comment:
    author: str
    text: str
    created_at: str = ""


@dataclass(slots=True, frozen=True)
class TaskFile:
    id: int | None
    name: str
    url: str = ""


@dataclass(slots=True, frozen=True)
class Task:
    id: int
    title: str
    status_code: TaskStatus = TaskStatus.OPENED
    priority: Priority = Priority.MEDIUM
    description: str | None = None
    created_at: str = ""
    steps: tuple[Step, ...] = field(default_factory=tuple)
    comments: tuple[Comment, ...] = field(default_factory=tuple)
    files: tuple[TaskFile, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class TargetDepartment:
    id: int
    department_name: str


@dataclass(slots=True, frozen=True)
class Contact:
    id: int
    display_name: str
    username: str = ""
    unread_count: int = 0
    last_message: str = ""


@dataclass(slots=True, frozen=True)
class ContactList:
    contacts: tuple[Contact, ...] = field(default_factory=tuple)
    unread_total: int = 0


@dataclass(slots=True, frozen=True)
class User:
    id: int
    full_name: str = ""
    username: str = ""
    role_name: str = ""
    department_name: str = ""


@dataclass(slots=True, frozen=True)
class Message:
    id: int | None
    sender_id: str
    receiver_id: str
    body: str
    created_at: str = ""
    is_read: bool = False
