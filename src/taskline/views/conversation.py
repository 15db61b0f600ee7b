# src/taskline/views/conversation.py

from __future__ import annotations

import logging

from ..api.client import ApiClient
from ..api.errors import ApiError, AuthorizationError, user_message
from ..core.lifecycle import AppLifecycle
from ..core.models import Contact, Message
from ..core.ports import Notifier
from ..sync.normalize import normalize_messages, sort_messages
from ..sync.optimistic import MutationOutcome, MutationResult, SingleFlight, apply_optimistic
from ..sync.poller import AdaptivePoller

logger = logging.getLogger(__name__)


class ConversationController:
    """
    One open chat thread.

    - polls the conversation every 2.5s while mounted and the app is in the foreground,
    - keeps `messages` in ascending created_at order whatever order the server used,
    - send() clears the draft immediately and puts it back if the send fails.
    """

    def __init__(
            self,
            api: ApiClient,
            notifier: Notifier,
            contact: Contact,
            *,
            settings=None,
            lifecycle: AppLifecycle | None = None,
    ) -> None:
        self._api = api
        self._notifier = notifier
        self._lifecycle = lifecycle
        self._limit = int(getattr(settings, "conversation_limit", 200))
        self._alive = False
        self._unbind = None

        self.contact = contact
        self.messages: list[Message] = []
        self.my_user_id: str | None = None
        self.draft = ""
        self._send_guard = SingleFlight(f"send:{contact.id}")

        self.poller: AdaptivePoller[list[Message]] = AdaptivePoller(
            f"conversation:{contact.id}",
            self._fetch,
            self._apply,
            interval=float(getattr(settings, "conversation_poll_seconds", 2.5)),
            on_error=self._on_error,
        )

    @property
    def title(self) -> str:
        return self.contact.display_name or self.contact.username or f"#{self.contact.id}"

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

    async def _fetch(self) -> list[Message]:
        return normalize_messages(await self._api.get_conversation(self.contact.id, self._limit))

    def _apply(self, messages: list[Message]) -> None:
        if self._alive:
            self.messages = sort_messages(messages)

    def _on_error(self, exc: Exception) -> None:
        if isinstance(exc, AuthorizationError):
            return
        self._notifier.alert("Error", user_message(exc, "Could not load the conversation."))

    async def reload(self) -> None:
        self._apply(await self._fetch())

    async def load_me(self) -> str | None:
        """Resolve the signed-in user's id (to tell own bubbles apart). None on failure."""
        try:
            body = await self._api.me()
        except ApiError as e:
            logger.info("load_me failed: %r", e)
            self.my_user_id = None
            return None
        user = body.get("user")
        uid = user.get("id") if isinstance(user, dict) else None
        self.my_user_id = str(uid) if uid is not None else None
        return self.my_user_id

    def is_mine(self, message: Message) -> bool:
        return self.my_user_id is not None and message.sender_id == self.my_user_id

    async def send(self, text: str | None = None) -> MutationResult:
        if text is not None:
            self.draft = text
        body = self.draft.strip()
        if not body:
            return MutationResult(MutationOutcome.REJECTED)

        def restore(saved: str) -> None:
            if self._alive:
                self.draft = saved

        def patch() -> None:
            self.draft = ""

        return await apply_optimistic(
            snapshot=lambda: body,
            patch=patch,
            remote=lambda: self._api.send_message(self.contact.id, body),
            restore=restore,
            reconcile=self.reload,
            guard=self._send_guard,
            fallback_message="Message could not be sent.",
            report=lambda msg: self._notifier.alert("Error", msg),
        )
