# src/taskline/views/task_board.py

"""
Task board controller.

Holds what the task screen renders (task list, open task, its detail, create-form options)
and runs every task operation through the optimistic mutation engine.

Key invariants:
- the list is refreshed by a 5s adaptive poller; nothing is ever deleted locally,
- a failed status change restores list, open task and detail together,
- a successful mutation is reconciled by re-fetching (the server may cascade changes),
- every continuation checks liveness first, so late results never touch a torn-down view.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from ..api.client import ApiClient
from ..api.errors import ApiError, AuthorizationError, PreconditionError, user_message
from ..core.lifecycle import AppLifecycle
from ..core.models import Comment, Priority, Step, TargetDepartment, Task, TaskStatus
from ..core.ports import Notifier
from ..sync.normalize import normalize_priority, normalize_targets, normalize_task, normalize_tasks
from ..sync.optimistic import (
    MutationOutcome,
    MutationResult,
    SingleFlight,
    apply_optimistic,
    validate_new_task,
)
from ..sync.poller import AdaptivePoller

logger = logging.getLogger(__name__)

ERROR_TITLE = "Error"

BoardSnapshot = tuple[list[Task], Task | None, Task | None]


def _parse_status(value: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(str(value).strip().upper())
    except ValueError:
        raise PreconditionError(f"Unknown status: {value}") from None


class TaskBoardController:
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

        self.tasks: list[Task] = []
        self.selected: Task | None = None
        self.detail: Task | None = None
        self.loading_detail = False

        self.targets: list[TargetDepartment] = []
        self.selected_target_id: int | None = None
        self.loading_targets = False

        self._status_guard = SingleFlight("task-status")
        self._step_guard = SingleFlight("task-steps")
        self._comment_guard = SingleFlight("task-comment")
        self._upload_guard = SingleFlight("task-upload")
        self._create_guard = SingleFlight("task-create")

        self.poller: AdaptivePoller[list[Task]] = AdaptivePoller(
            "tasks",
            self._fetch_tasks,
            self._apply_tasks,
            interval=float(getattr(settings, "task_poll_seconds", 5.0)),
            on_error=lambda e: self._alert_error(e, "Could not load tasks."),
        )

    # ---- lifecycle ----

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

    # ---- helpers ----

    def _alert(self, title: str, message: str) -> None:
        self._notifier.alert(title, message)

    def _alert_error(self, exc: BaseException, fallback: str) -> None:
        if isinstance(exc, AuthorizationError):
            return
        self._alert(ERROR_TITLE, user_message(exc, fallback))

    def _report(self, message: str) -> None:
        self._alert(ERROR_TITLE, message)

    def sections(self) -> list[tuple[TaskStatus, list[Task]]]:
        """Tasks grouped by status, in board column order (empty columns included)."""
        groups: dict[TaskStatus, list[Task]] = {s: [] for s in TaskStatus}
        for t in self.tasks:
            groups[t.status_code].append(t)
        return list(groups.items())

    def find(self, task_id: int) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    # ---- reads ----

    async def _fetch_tasks(self) -> list[Task]:
        return normalize_tasks(await self._api.list_tasks())

    def _apply_tasks(self, tasks: list[Task]) -> None:
        if self._alive:
            self.tasks = tasks

    async def reload_tasks(self) -> None:
        tasks = await self._fetch_tasks()
        self._apply_tasks(tasks)

    async def _load_detail(self, task_id: int) -> None:
        self.loading_detail = True
        try:
            body = await self._api.get_task(task_id)
        finally:
            self.loading_detail = False
        task = normalize_task(body.get("task"))
        if task is None:
            raise ApiError("Task detail is missing from the response.")
        if not self._alive or self.selected is None or self.selected.id != task_id:
            logger.debug("Dropping detail for task %s (view changed)", task_id)
            return
        self.detail = task

    async def open_task(self, task_id: int) -> bool:
        task = self.find(task_id) or Task(id=int(task_id), title=f"Task #{task_id}")
        self.selected = task
        self.detail = None
        try:
            await self._load_detail(task.id)
        except ApiError as e:
            self._alert_error(e, "Could not load task details.")
            if self.selected is task and self.detail is None:
                self.selected = None
            return False
        return True

    def close_task(self) -> None:
        self.selected = None
        self.detail = None

    async def refresh_detail(self) -> None:
        if self.selected is None:
            return
        try:
            await self._load_detail(self.selected.id)
        except ApiError as e:
            self._alert_error(e, "Could not load task details.")

    async def _reconcile_task(self, task_id: int) -> None:
        await self.reload_tasks()
        if self.selected is not None and self.selected.id == task_id:
            await self._load_detail(task_id)

    # ---- status ----

    def _board_snapshot(self) -> BoardSnapshot:
        return list(self.tasks), self.selected, self.detail

    def _is_open(self, task_id: int | None) -> bool:
        current = self.selected.id if self.selected is not None else None
        return current == task_id

    def _restore_board(self, snap: BoardSnapshot) -> None:
        if not self._alive:
            return
        tasks, selected, detail = snap
        self.tasks = tasks
        # The user may have opened another task meanwhile; leave that one alone.
        if self._is_open(selected.id if selected is not None else None):
            self.selected, self.detail = selected, detail

    async def update_status(self, task_id: int, status: TaskStatus | str) -> MutationResult:
        try:
            new_status = _parse_status(status)
        except PreconditionError as e:
            self._report(str(e))
            return MutationResult(MutationOutcome.REJECTED, message=str(e))

        def patch() -> None:
            self.tasks = [
                replace(t, status_code=new_status) if t.id == task_id else t for t in self.tasks
            ]
            if self.selected is not None and self.selected.id == task_id:
                self.selected = replace(self.selected, status_code=new_status)
            if self.detail is not None and self.detail.id == task_id:
                self.detail = replace(self.detail, status_code=new_status)

        return await apply_optimistic(
            snapshot=self._board_snapshot,
            patch=patch,
            remote=lambda: self._api.update_status(task_id, new_status.value),
            restore=self._restore_board,
            reconcile=lambda: self._reconcile_task(task_id),
            guard=self._status_guard,
            fallback_message="Could not update the status.",
            report=self._report,
        )

    # ---- steps / comments (detail view) ----

    def _restore_detail(self, task_id: int, snap: Task | None) -> None:
        if self._alive and self._is_open(task_id):
            self.detail = snap

    def _patch_detail(self, **changes) -> None:
        if self.detail is not None:
            self.detail = replace(self.detail, **changes)

    async def _reconcile_detail(self, task_id: int) -> None:
        if self._alive and self.selected is not None and self.selected.id == task_id:
            await self._load_detail(task_id)

    async def _detail_mutation(self, guard: SingleFlight, patch, remote, fallback: str) -> MutationResult:
        if self.selected is None:
            return MutationResult(MutationOutcome.REJECTED, message="No task is open.")
        task_id = self.selected.id
        return await apply_optimistic(
            snapshot=lambda: self.detail,
            patch=patch,
            remote=remote,
            restore=lambda snap: self._restore_detail(task_id, snap),
            reconcile=lambda: self._reconcile_detail(task_id),
            guard=guard,
            fallback_message=fallback,
            report=self._report,
        )

    async def add_step(self, title: str) -> MutationResult:
        txt = (title or "").strip()
        if self.selected is None or not txt:
            return MutationResult(MutationOutcome.REJECTED)
        task_id = self.selected.id

        def patch() -> None:
            if self.detail is not None:
                self._patch_detail(steps=(*self.detail.steps, Step(id=None, title=txt)))

        return await self._detail_mutation(
            self._step_guard,
            patch,
            lambda: self._api.add_step(task_id, txt),
            "Could not add the step.",
        )

    async def toggle_step(self, step_id: int, is_completed: bool) -> MutationResult:
        def patch() -> None:
            if self.detail is not None:
                self._patch_detail(
                    steps=tuple(
                        replace(s, is_completed=is_completed) if s.id == step_id else s
                        for s in self.detail.steps
                    )
                )

        return await self._detail_mutation(
            self._step_guard,
            patch,
            lambda: self._api.update_step(step_id, is_completed),
            "Could not update the step.",
        )

    async def delete_step(self, step_id: int) -> MutationResult:
        def patch() -> None:
            if self.detail is not None:
                self._patch_detail(steps=tuple(s for s in self.detail.steps if s.id != step_id))

        return await self._detail_mutation(
            self._step_guard,
            patch,
            lambda: self._api.delete_step(step_id),
            "Could not delete the step.",
        )

    async def send_comment(self, text: str) -> MutationResult:
        txt = (text or "").strip()
        if self.selected is None or not txt:
            return MutationResult(MutationOutcome.REJECTED)
        task_id = self.selected.id

        def patch() -> None:
            if self.detail is not None:
                self._patch_detail(comments=(*self.detail.comments, Comment(author="", text=txt)))

        return await self._detail_mutation(
            self._comment_guard,
            patch,
            lambda: self._api.add_comment(task_id, txt),
            "Could not add the comment.",
        )

    async def upload_file(self, path: str | Path) -> MutationResult:
        if self.selected is None:
            return MutationResult(MutationOutcome.REJECTED, message="No task is open.")
        task_id = self.selected.id
        result = await self._detail_mutation(
            self._upload_guard,
            lambda: None,
            lambda: self._api.upload_file(task_id, path),
            "Could not upload the file.",
        )
        if result.ok:
            self._alert("Success", "File uploaded.")
        return result

    # ---- create ----

    async def open_create(self) -> list[TargetDepartment]:
        self.targets = []
        self.selected_target_id = None
        self.loading_targets = True
        try:
            body = await self._api.create_targets()
        except ApiError as e:
            logger.info("create_targets failed: %r", e)
            self._alert_error(e, "Could not load target departments.")
            return []
        finally:
            self.loading_targets = False

        targets = normalize_targets(body)
        logger.debug("Create targets normalized: %d entries", len(targets))
        self.targets = targets
        self.selected_target_id = targets[0].id if targets else None
        return targets

    def select_target(self, target_id: int) -> bool:
        if any(t.id == target_id for t in self.targets):
            self.selected_target_id = target_id
            return True
        return False

    async def create_task(
            self,
            title: str,
            description: str = "",
            priority: Priority | str = Priority.MEDIUM,
            target_id: int | None = None,
    ) -> MutationResult:
        target = target_id if target_id is not None else self.selected_target_id
        try:
            clean_title = validate_new_task(title, target)
        except PreconditionError as e:
            self._alert("Missing information", str(e))
            return MutationResult(MutationOutcome.REJECTED, message=str(e))

        desc = (description or "").strip() or None
        result = await apply_optimistic(
            snapshot=lambda: None,
            patch=lambda: None,
            remote=lambda: self._api.create_task(
                title=clean_title,
                description=desc,
                priority=normalize_priority(priority).value,
                target_department_id=int(target),
            ),
            restore=lambda _: None,
            reconcile=self.reload_tasks,
            guard=self._create_guard,
            fallback_message="Could not create the task.",
            report=self._report,
        )
        if result.ok:
            self._alert("Success", "Task created.")
        return result
