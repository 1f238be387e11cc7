# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The session gate and the task synchronizer depend on these Protocols instead of
the supabase client. This keeps the backend swappable (supabase / offline demo)
and makes testing easier.

Every backend coroutine returns a BackendResult instead of raising: the caller
must look at `error` before touching `data`.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from ..auth.identity import Identity
from ..tasks.task_models import NewTask, Task

T = TypeVar("T")

AuthCallback = Callable[[Identity | None], None]


@dataclass(frozen=True, slots=True)
class BackendError:
    message: str
    code: str | None = None


@dataclass(frozen=True, slots=True)
class BackendResult(Generic[T]):
    data: T | None = None
    error: BackendError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T | None = None) -> BackendResult[T]:
        return cls(data=data)

    @classmethod
    def failure(cls, message: str, code: str | None = None) -> BackendResult[T]:
        return cls(error=BackendError(message=message, code=code))


class Subscription(Protocol):
    """Handle for a long-lived listener registration. unsubscribe() must be idempotent."""

    def unsubscribe(self) -> None: ...


class AuthBackend(Protocol):
    async def get_current_session(self) -> BackendResult[Identity]: ...

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription: ...

    async def sign_up(self, email: str, password: str) -> BackendResult[None]: ...
    async def sign_in_with_password(self, email: str, password: str) -> BackendResult[None]: ...
    async def sign_out(self) -> BackendResult[None]: ...


class TaskTable(Protocol):
    async def select_tasks(self, owner_id: str) -> BackendResult[list[Task]]:
        """All tasks of owner_id, newest first (created_at desc)."""
        ...

    async def insert_task(self, new_task: NewTask) -> BackendResult[Task]: ...
    async def update_task(self, task_id: int, *, completed: bool) -> BackendResult[None]: ...
    async def delete_task(self, task_id: int) -> BackendResult[None]: ...


class Backend(AuthBackend, TaskTable, Protocol):
    """The hosted service as a whole: auth + task table."""

    async def aclose(self) -> None: ...
