# src/taskline/views/contacts.py

from __future__ import annotations

import logging

from ..api.client import ApiClient
from ..api.errors import ApiError, AuthorizationError, user_message
from ..core.lifecycle import AppLifecycle
from ..core.models import Contact, ContactList, User
from ..core.ports import Notifier
from ..sync.normalize import filter_users, normalize_contacts, normalize_users
from ..sync.poller import MODAL, AdaptivePoller

logger = logging.getLogger(__name__)


class ContactListController:
    """
    Contact list with unread badges.

    Polls every 5s; the new-chat picker is a blocking modal, so the poller is paused
    (reason "modal") while it is open and refreshes immediately once it closes.
    """

    def __init__(
            self,
            api: ApiClient,
            notifier: Notifier,
            *,
            settings=None,
            lifecycle: AppLifecycle | None = None,
    ) -> None:
        self._api = api
        self._notifier = notifier
        self._lifecycle = lifecycle
        self._alive = False
        self._unbind = None

        self.contacts: list[Contact] = []
        self.unread_total = 0

        self.new_chat_open = False
        self.users: list[User] = []
        self.loading_users = False

        self.poller: AdaptivePoller[ContactList] = AdaptivePoller(
            "contacts",
            self._fetch,
            self._apply,
            interval=float(getattr(settings, "contact_poll_seconds", 5.0)),
            on_error=self._on_error,
        )

    @property
    def alive(self) -> bool:
        return self._alive

    def mount(self) -> None:
        if self._alive:
            return
        self._alive = True
        if self._lifecycle is not None:
            self._unbind = self.poller.bind(self._lifecycle)
        self.poller.start()

    def teardown(self) -> None:
        self._alive = False
        self.poller.stop()
        if self._unbind is not None:
            self._unbind()
            self._unbind = None

    async def _fetch(self) -> ContactList:
        return normalize_contacts(await self._api.list_contacts())

    def _apply(self, result: ContactList) -> None:
        if not self._alive:
            return
        self.contacts = list(result.contacts)
        self.unread_total = result.unread_total

    def _on_error(self, exc: Exception) -> None:
        if isinstance(exc, AuthorizationError):
            return
        self._notifier.alert("Error", user_message(exc, "Could not load contacts."))

    async def refresh(self) -> bool:
        """User-triggered reload (visible, errors surfaced)."""
        return await self.poller.refresh(silent=False)

    def find(self, contact_id: int) -> Contact | None:
        for c in self.contacts:
            if c.id == contact_id:
                return c
        return None

    # ---- new chat picker ----

    async def open_new_chat(self) -> list[User]:
        self.new_chat_open = True
        self.poller.pause(MODAL)
        await self.load_all_users()
        return self.users

    def close_new_chat(self) -> None:
        self.new_chat_open = False
        self.poller.resume(MODAL)

    async def load_all_users(self) -> None:
        self.loading_users = True
        try:
            body = await self._api.list_all_users()
        except ApiError as e:
            self.users = []
            if not isinstance(e, AuthorizationError):
                self._notifier.alert("Error", user_message(e, "Could not load users."))
            return
        finally:
            self.loading_users = False
        if self._alive:
            self.users = normalize_users(body)

    def filtered_users(self, needle: str = "") -> list[User]:
        return filter_users(self.users, needle)
