# src/tasksync/backend/offline.py

from __future__ import annotations

import hashlib
import itertools
import logging
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from ..auth.identity import Identity
from ..core.ports import AuthCallback, BackendResult
from ..tasks.task_models import NewTask, Task

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 3600.0


@dataclass(slots=True)
class _User:
    user_id: str
    email: str
    password_hash: str
    confirmed: bool


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class _OfflineSubscription:
    def __init__(self, backend: OfflineBackend, sub_id: int) -> None:
        self._backend = backend
        self._sub_id: int | None = sub_id

    def unsubscribe(self) -> None:
        sub_id, self._sub_id = self._sub_id, None
        if sub_id is not None:
            self._backend._listeners.pop(sub_id, None)


class OfflineBackend:
    """
    In-memory backend used for demos when no Supabase project is configured.

    Behavior mirrors the hosted service closely enough for the app:
    - sign up registers the account; with auto_confirm=False
      (TASKSYNC_OFFLINE_REQUIRE_CONFIRM) the account must be confirmed with
      confirm_email, the stand-in for the emailed link, before sign in works
    - sign in / sign out notify subscribers, like the hosted auth client
    - task rows are scoped to their owner and returned newest first

    Nothing is persisted; data is lost on exit.
    """

    def __init__(self, *, auto_confirm: bool = True) -> None:
        self._auto_confirm = auto_confirm
        self._users: dict[str, _User] = {}
        self._session: Identity | None = None
        self._listeners: dict[int, AuthCallback] = {}
        self._sub_ids = itertools.count(1)
        self._task_ids = itertools.count(1)
        self._rows: dict[int, Task] = {}

    # ---- auth ----

    async def get_current_session(self) -> BackendResult[Identity]:
        return BackendResult.success(self._session)

    def on_auth_state_change(self, callback: AuthCallback) -> _OfflineSubscription:
        sub_id = next(self._sub_ids)
        self._listeners[sub_id] = callback
        return _OfflineSubscription(self, sub_id)

    def _emit(self, identity: Identity | None) -> None:
        for cb in list(self._listeners.values()):
            cb(identity)

    async def sign_up(self, email: str, password: str) -> BackendResult[None]:
        key = email.strip().lower()
        if key in self._users:
            return BackendResult.failure("User already registered", "user_already_exists")
        self._users[key] = _User(
            user_id=str(uuid.uuid4()),
            email=email.strip(),
            password_hash=_hash_password(password),
            confirmed=self._auto_confirm,
        )
        logger.info("Offline sign up: %s (confirmed=%s)", key, self._auto_confirm)
        return BackendResult.success()

    def confirm_email(self, email: str) -> bool:
        """Mark the account confirmed. Returns False for an unknown email."""
        user = self._users.get(email.strip().lower())
        if user is None:
            return False
        user.confirmed = True
        logger.info("Offline account confirmed: %s", user.email)
        return True

    async def sign_in_with_password(self, email: str, password: str) -> BackendResult[None]:
        user = self._users.get(email.strip().lower())
        if user is None or user.password_hash != _hash_password(password):
            return BackendResult.failure("Invalid login credentials", "invalid_credentials")
        if not user.confirmed:
            return BackendResult.failure("Email not confirmed", "email_not_confirmed")

        self._session = Identity(
            user_id=user.user_id,
            email=user.email,
            expires_at=time.time() + SESSION_TTL_SECONDS,
            access_token=uuid.uuid4().hex,
        )
        self._emit(self._session)
        return BackendResult.success()

    async def sign_out(self) -> BackendResult[None]:
        self._session = None
        self._emit(None)
        return BackendResult.success()

    # ---- tasks ----

    def _require_owner(self, owner_id: str) -> BackendResult | None:
        if self._session is None or self._session.user_id != owner_id:
            return BackendResult.failure("Not authorized", "42501")
        return None

    async def select_tasks(self, owner_id: str) -> BackendResult[list[Task]]:
        denied = self._require_owner(owner_id)
        if denied is not None:
            return denied
        rows = [t for t in self._rows.values() if t.owner_id == owner_id]
        rows.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return BackendResult.success(rows)

    async def insert_task(self, new_task: NewTask) -> BackendResult[Task]:
        denied = self._require_owner(new_task.owner_id)
        if denied is not None:
            return denied
        if not new_task.text.strip():
            return BackendResult.failure("Task text must not be empty", "23514")
        task = Task(
            id=next(self._task_ids),
            owner_id=new_task.owner_id,
            text=new_task.text,
            completed=new_task.completed,
            created_at=datetime.now(timezone.utc),
        )
        self._rows[task.id] = task
        return BackendResult.success(task)

    def _owned_row(self, task_id: int) -> Task | None:
        row = self._rows.get(task_id)
        if row is None or self._session is None or row.owner_id != self._session.user_id:
            return None
        return row

    async def update_task(self, task_id: int, *, completed: bool) -> BackendResult[None]:
        # Like a filtered UPDATE under row-level security: rows you cannot see are a no-op.
        row = self._owned_row(task_id)
        if row is not None:
            self._rows[task_id] = replace(row, completed=completed)
        return BackendResult.success()

    async def delete_task(self, task_id: int) -> BackendResult[None]:
        if self._owned_row(task_id) is not None:
            del self._rows[task_id]
        return BackendResult.success()

    async def aclose(self) -> None:
        self._listeners.clear()
