# src/tasksync/tasks/task_sync.py

from __future__ import annotations

"""
Task list synchronizer.

Keeps the in-memory, newest-first task list of one identity convergent with the
remote table. One round trip per call, no retries, no caching.

Local state changes only after the backend confirms, except delete, which
removes the task first and restores the previous list if the backend refuses.
"""

import logging
from dataclasses import replace
from typing import NoReturn

from ..auth.identity import Identity
from ..core.errors import OperationError
from ..core.ports import BackendResult, TaskTable
from .task_models import NewTask, Task

logger = logging.getLogger(__name__)


def _raise_for_error(result: BackendResult, action: str) -> None:
    if result.error is not None:
        logger.info("Task %s failed: %s", action, result.error.message)
        raise OperationError(result.error.message or f"Failed to {action} task.", code=result.error.code)


def _fail(message: str) -> NoReturn:
    raise OperationError(message)


class TaskListSynchronizer:
    def __init__(self, table: TaskTable, identity: Identity) -> None:
        self._table = table
        self._identity = identity
        self._tasks: list[Task] = []
        self.loading = True

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def tasks(self) -> list[Task]:
        """Copy of the current list, newest first."""
        return list(self._tasks)

    def get(self, task_id: int) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    # ---- derived ----

    @property
    def total_count(self) -> int:
        return len(self._tasks)

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self._tasks if t.completed)

    @property
    def remaining_count(self) -> int:
        return self.total_count - self.completed_count

    @property
    def completion_percentage(self) -> float:
        total = self.total_count
        if total == 0:
            return 0.0
        return self.completed_count / total * 100

    @property
    def all_completed(self) -> bool:
        return self.total_count > 0 and self.remaining_count == 0

    # ---- operations ----

    async def load(self) -> list[Task]:
        try:
            result = await self._table.select_tasks(self._identity.user_id)
            _raise_for_error(result, "load")
            self._tasks = list(result.data or [])
            logger.debug("Loaded %d tasks for user=%s", len(self._tasks), self._identity.user_id)
            return self.tasks
        finally:
            self.loading = False

    async def add(self, text: str) -> Task | None:
        """Insert a task and prepend the stored row. Blank text is ignored."""
        text = (text or "").strip()
        if not text:
            return None

        result = await self._table.insert_task(NewTask(owner_id=self._identity.user_id, text=text))
        _raise_for_error(result, "add")
        if result.data is None:
            _fail("The store did not return the created task.")

        task = result.data
        self._tasks = [task, *self._tasks]
        logger.debug("Task added id=%s", task.id)
        return task

    async def toggle(self, task_id: int) -> Task:
        """Flip `completed` remotely; apply locally once the update is confirmed."""
        current = self.get(task_id)
        if current is None:
            _fail(f"Task #{task_id} not found.")

        completed = not current.completed
        result = await self._table.update_task(task_id, completed=completed)
        _raise_for_error(result, "update")

        updated: Task | None = None
        new_list: list[Task] = []
        for task in self._tasks:
            if task.id == task_id:
                task = updated = replace(task, completed=completed)
            new_list.append(task)
        self._tasks = new_list
        logger.debug("Task toggled id=%s completed=%s", task_id, completed)

        # Removed by something else while the update was in flight.
        return updated if updated is not None else replace(current, completed=completed)

    async def delete(self, task_id: int) -> None:
        """
        Optimistic delete: remove now, restore the previous list on failure.

        Known limitation: the rollback restores the whole snapshot, so an add or
        toggle that completed while the delete was in flight is lost from the
        local list (the remote store still has it; /reload shows it again).
        """
        if self.get(task_id) is None:
            _fail(f"Task #{task_id} not found.")

        snapshot = list(self._tasks)
        self._tasks = [t for t in self._tasks if t.id != task_id]

        try:
            result = await self._table.delete_task(task_id)
            _raise_for_error(result, "delete")
        except OperationError:
            self._tasks = snapshot
            logger.info("Delete of task %s rolled back.", task_id)
            raise
        logger.debug("Task deleted id=%s", task_id)
