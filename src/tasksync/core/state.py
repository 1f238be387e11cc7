# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..auth.session_gate import SessionGate
from ..tasks.task_sync import TaskListSynchronizer
from .ports import Backend


@dataclass
class AppState:
    # Store Settings on the state for easy access in commands.
    settings: object

    backend: Backend
    gate: SessionGate

    # Task view for the current identity; None while signed out.
    tasks: TaskListSynchronizer | None = None

    # Uncommitted add-text, kept when an add fails.
    draft: str = ""

    # Dismissible error notice shown above the prompt.
    notice: str | None = None

    offline: bool = False

    async def sync_view(self) -> bool:
        """
        Bring the task view in line with the gate's identity.

        A new identity gets a fresh synchronizer (and an initial load); signing
        out drops it. Returns True if the view was replaced.
        """
        identity = self.gate.identity

        if identity is None:
            if self.tasks is None:
                return False
            self.tasks = None
            self.draft = ""
            return True

        if self.tasks is not None and self.tasks.identity.user_id == identity.user_id:
            return False

        self.tasks = TaskListSynchronizer(self.backend, identity)
        self.draft = ""
        await self.tasks.load()
        return True
