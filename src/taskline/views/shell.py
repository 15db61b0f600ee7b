# src/taskline/views/shell.py

"""
Root view controller.

Owns navigation (tasks / chats / chatroom) and the child controllers, and is the one
subscriber to the session gate's unauthorized broadcast. A forced logout:
- wipes every auth storage key,
- resets navigation to the unauthenticated default,
- clears in-memory selection (open task, open chat) and stops all polling,
- shows the reason to the user.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from ..api.client import ApiClient
from ..api.errors import ApiError, AuthorizationError
from ..core.lifecycle import AppLifecycle
from ..core.models import Contact
from ..core.ports import Notifier, SessionStore
from ..session.gate import AUTH_STORAGE_KEYS, SessionGate
from ..sync.normalize import normalize_contacts
from .contacts import ContactListController
from .conversation import ConversationController
from .task_board import TaskBoardController

logger = logging.getLogger(__name__)

DEFAULT_LOGOUT_REASON = "Please sign in again."


class Screen(StrEnum):
    TASKS = "tasks"
    CHATS = "chats"
    CHATROOM = "chatroom"


class AuthState(StrEnum):
    CHECKING = "checking"
    LOGGED_IN = "logged_in"
    LOGGED_OUT = "logged_out"


class AppShell:
    def __init__(
            self,
            gate: SessionGate,
            api: ApiClient,
            notifier: Notifier,
            *,
            store: SessionStore | None = None,
            settings=None,
            lifecycle: AppLifecycle | None = None,
    ) -> None:
        self._gate = gate
        self._api = api
        self._notifier = notifier
        self._store = store
        self._settings = settings
        self._lifecycle = lifecycle
        self._unsubscribe = None

        self.screen = Screen.TASKS
        self.auth_state = AuthState.CHECKING
        self.active_chat: Contact | None = None

        self.tasks = TaskBoardController(api, notifier, settings=settings, lifecycle=lifecycle)
        self.contacts: ContactListController | None = None
        self.conversation: ConversationController | None = None

    # ---- lifecycle ----

    def mount(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._gate.subscribe(self._on_unauthorized)
        if self._gate.is_authenticated():
            self.auth_state = AuthState.LOGGED_IN
            self.tasks.mount()
        else:
            self.auth_state = AuthState.LOGGED_OUT

    def teardown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._close_chat()
        self._close_contacts()
        self.tasks.teardown()

    # ---- auth ----

    def _on_unauthorized(self, reason: str) -> None:
        self.force_logout(reason or DEFAULT_LOGOUT_REASON)

    def force_logout(self, reason: str = "") -> None:
        if self._store is not None:
            try:
                self._store.remove(*AUTH_STORAGE_KEYS)
            except Exception:
                logger.exception("Failed to clear auth storage")

        self.auth_state = AuthState.LOGGED_OUT
        self.screen = Screen.TASKS
        self._close_chat()
        self._close_contacts()
        self.tasks.close_task()
        self.tasks.teardown()
        self.tasks.tasks = []
        logger.info("Logged out (%s)", reason or "user request")

        if reason:
            self._notifier.alert("Session closed", reason)

    def login(self, token: str) -> None:
        self._gate.set_session(token)
        self.auth_state = AuthState.LOGGED_IN
        self.screen = Screen.TASKS
        self.tasks.mount()

    def logout(self) -> None:
        self._gate.clear_session()
        self.force_logout("")

    # ---- navigation ----

    def _close_chat(self) -> None:
        if self.conversation is not None:
            self.conversation.teardown()
            self.conversation = None
        self.active_chat = None

    def _close_contacts(self) -> None:
        if self.contacts is not None:
            self.contacts.teardown()
            self.contacts = None

    def show_chats(self) -> ContactListController:
        self._close_chat()
        if self.contacts is None:
            self.contacts = ContactListController(
                self._api,
                self._notifier,
                settings=self._settings,
                lifecycle=self._lifecycle,
            )
        self.contacts.mount()
        self.screen = Screen.CHATS
        return self.contacts

    async def open_chat(self, contact: Contact) -> ConversationController:
        self._close_chat()
        conv = ConversationController(
            self._api,
            self._notifier,
            contact,
            settings=self._settings,
            lifecycle=self._lifecycle,
        )
        self.conversation = conv
        self.active_chat = contact
        self.screen = Screen.CHATROOM
        conv.mount()
        await conv.load_me()
        return conv

    async def open_chat_by_contact_id(self, contact_id: int) -> ConversationController | None:
        try:
            body = await self._api.list_contacts()
        except AuthorizationError:
            # The gate already forced the logout; no chat list to fall back to.
            return None
        except ApiError as e:
            logger.info("Contact lookup failed: %r", e)
            self.show_chats()
            self._notifier.alert("Chat", "Could not load the chat list.")
            return None

        found = next((c for c in normalize_contacts(body).contacts if c.id == contact_id), None)
        if found is None:
            self.show_chats()
            self._notifier.alert("Chat", "Contact not found, opened the chat list.")
            return None
        return await self.open_chat(found)

    def back(self) -> Screen:
        if self.screen is Screen.CHATROOM:
            self._close_chat()
            self.screen = Screen.CHATS
            if self.contacts is None:
                self.show_chats()
        elif self.screen is Screen.CHATS:
            self._close_contacts()
            self.screen = Screen.TASKS
        return self.screen
