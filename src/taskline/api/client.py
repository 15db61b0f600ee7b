# src/taskline/api/client.py

"""
Authenticated API client.

Every call:
- reads the current token from the session gate (never writes it),
- sends Authorization: Bearer <token> and Accept: application/json,
- maps the outcome onto the error taxonomy:
    * 401/403     -> gate.report_unauthorized(reason), then AuthorizationError
    * other non-2xx -> TransportError (response attached)
    * non-JSON body -> TransportError
    * success=false -> ApplicationError(message)

Methods return the parsed JSON object as-is; shaping it is the normalizer's job.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from ..core.ports import HttpResponse, HttpTransport
from ..session.gate import SessionGate
from .errors import (
    ApiError,
    ApplicationError,
    AuthorizationError,
    PreconditionError,
    TransportError,
)

logger = logging.getLogger(__name__)

TASKS_PATH = "/system/api/tasks.php"
UPLOAD_PATH = "/system/api/upload.php"
AUTH_PATH = "/system/api/auth.php"
CONTACTS_PATH = "/api/chat/get-contacts.php"
ALL_USERS_PATH = "/api/chat/get-all-users.php"
CONVERSATION_PATH = "/api/chat/get-conversation.php"
SEND_MESSAGE_PATH = "/api/chat/send.php"

UNAUTHORIZED_STATUSES = frozenset({401, 403})
DEFAULT_UNAUTHORIZED_REASON = "Your session has ended. Please sign in again."

_MIME_BY_EXT = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "txt": "text/plain",
    "zip": "application/zip",
    "rar": "application/vnd.rar",
}


def guess_mime(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return _MIME_BY_EXT.get(ext, "application/octet-stream")


def _unauthorized_reason(resp: HttpResponse) -> str:
    body = resp.body
    if isinstance(body, dict):
        msg = body.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return DEFAULT_UNAUTHORIZED_REASON


class ApiClient:
    def __init__(self, transport: HttpTransport, gate: SessionGate, base_url: str) -> None:
        self._transport = transport
        self._gate = gate
        self._base_url = base_url.rstrip("/")

    @property
    def gate(self) -> SessionGate:
        return self._gate

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._gate.token or ''}",
            "Accept": "application/json",
        }

    async def _call(
            self,
            method: str,
            path: str,
            *,
            params: Mapping[str, Any] | None = None,
            json: Any = None,
            data: Mapping[str, Any] | None = None,
            files: Mapping[str, Any] | None = None,
            check_success: bool = True,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        resp = await self._transport.request(
            method,
            url,
            headers=self._headers(),
            params=params,
            json=json,
            data=data,
            files=files,
        )

        if resp.status in UNAUTHORIZED_STATUSES:
            reason = _unauthorized_reason(resp)
            logger.warning("HTTP %s on %s %s", resp.status, method, path)
            self._gate.report_unauthorized(reason)
            raise AuthorizationError(resp.status, reason)

        if not resp.ok:
            raise TransportError(f"HTTP {resp.status}", response=resp)

        body = resp.body
        if not isinstance(body, dict):
            raise TransportError(f"Unexpected response body from {path}", response=resp)

        if check_success and not body.get("success"):
            msg = body.get("message")
            raise ApplicationError(msg.strip() if isinstance(msg, str) else "", body=body)

        return body

    # ---- tasks ----

    async def list_tasks(self) -> dict[str, Any]:
        return await self._call("GET", TASKS_PATH)

    async def get_task(self, task_id: int) -> dict[str, Any]:
        return await self._call("GET", TASKS_PATH, params={"id": task_id})

    async def create_task(
            self,
            *,
            title: str,
            description: str | None,
            priority: str,
            target_department_id: int,
    ) -> dict[str, Any]:
        payload = {
            "title": title,
            "description": description,
            "priority": priority,
            "target_department_id": int(target_department_id),
        }
        return await self._call("POST", TASKS_PATH, json=payload)

    async def update_status(self, task_id: int, status_code: str) -> dict[str, Any]:
        return await self._call(
            "PUT",
            TASKS_PATH,
            params={"id": task_id, "action": "status"},
            json={"status_code": status_code},
        )

    async def add_comment(self, task_id: int, comment: str) -> dict[str, Any]:
        return await self._call(
            "PUT",
            TASKS_PATH,
            params={"id": task_id, "action": "comment"},
            json={"comment": comment},
        )

    async def add_step(self, task_id: int, step_title: str) -> dict[str, Any]:
        return await self._call(
            "POST",
            TASKS_PATH,
            params={"action": "add_step", "task_id": task_id},
            json={"step_title": step_title},
        )

    async def update_step(self, step_id: int, is_completed: bool) -> dict[str, Any]:
        return await self._call(
            "PUT",
            TASKS_PATH,
            params={"action": "update_step", "step_id": step_id},
            json={"is_completed": 1 if is_completed else 0},
        )

    async def delete_step(self, step_id: int) -> dict[str, Any]:
        return await self._call(
            "DELETE",
            TASKS_PATH,
            params={"action": "delete_step", "step_id": step_id},
        )

    async def create_targets(self) -> dict[str, Any]:
        # Shape varies (targets / departments / tasks); the normalizer decides what is usable.
        return await self._call(
            "GET",
            TASKS_PATH,
            params={"action": "create_targets"},
            check_success=False,
        )

    async def upload_file(self, task_id: int, path: str | Path) -> dict[str, Any]:
        p = Path(path)
        try:
            content = p.read_bytes()
        except OSError as e:
            raise PreconditionError(f"Cannot read file: {p}") from e
        return await self._call(
            "POST",
            UPLOAD_PATH,
            data={"task_id": str(task_id)},
            files={"file": (p.name, content, guess_mime(p.name))},
        )

    # ---- chat ----

    async def list_contacts(self) -> dict[str, Any]:
        return await self._call("GET", CONTACTS_PATH)

    async def list_all_users(self) -> dict[str, Any]:
        return await self._call("GET", ALL_USERS_PATH)

    async def get_conversation(self, contact_id: int, limit: int = 200) -> dict[str, Any]:
        return await self._call(
            "GET",
            CONVERSATION_PATH,
            params={"contact_id": contact_id, "limit": int(limit)},
        )

    async def send_message(self, receiver_id: int, message: str) -> dict[str, Any]:
        # multipart/form-data with plain fields (no filename on either part)
        return await self._call(
            "POST",
            SEND_MESSAGE_PATH,
            files={
                "receiver_id": (None, str(receiver_id).encode("utf-8")),
                "message": (None, message.encode("utf-8")),
            },
        )

    # ---- auth ----

    async def me(self) -> dict[str, Any]:
        return await self._call("GET", AUTH_PATH, params={"action": "me"})

    async def has_valid_session(self) -> bool:
        """Ask the backend whether the stored token still works; clears it if not."""
        if not self._gate.is_authenticated():
            return False
        try:
            await self.list_tasks()
        except ApiError as e:
            logger.info("Stored session rejected: %s", e.__class__.__name__)
            self._gate.clear_session()
            return False
        return True
