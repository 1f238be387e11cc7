# src/tasksync/backend/supabase_backend.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from supabase import AsyncClient, AuthError, PostgrestAPIError, acreate_client

from ..auth.identity import Identity
from ..core.ports import AuthCallback, BackendResult, Subscription
from ..tasks.task_models import NewTask, Task

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _session_to_identity(session: Any) -> Identity | None:
    if session is None:
        return None
    user = getattr(session, "user", None)
    user_id = getattr(user, "id", None)
    if not user_id:
        return None
    expires_at = getattr(session, "expires_at", None)
    return Identity(
        user_id=str(user_id),
        email=getattr(user, "email", None),
        expires_at=float(expires_at) if expires_at is not None else None,
        access_token=getattr(session, "access_token", None),
    )


def _code_of(err: Exception) -> str | None:
    code = getattr(err, "code", None)
    return str(code) if code is not None else None


def _message_of(err: Exception) -> str:
    msg = getattr(err, "message", None) or str(err)
    return str(msg).strip() or err.__class__.__name__


async def _call(action: str, fn: Callable[[], Awaitable[T]]) -> BackendResult[T]:
    """
    Run one supabase call and fold every failure into the result's error slot.

    Known library errors keep their message (it is shown to the user); anything
    else is logged with a traceback and reported generically.
    """
    try:
        return BackendResult.success(await fn())
    except (AuthError, PostgrestAPIError) as e:
        logger.info("Supabase %s rejected: %s", action, _message_of(e))
        return BackendResult.failure(_message_of(e), _code_of(e))
    except httpx.HTTPError as e:
        logger.warning("Supabase %s network error: %r", action, e)
        return BackendResult.failure("Network error. Check your connection and try again.", "network")
    except Exception:
        logger.exception("Supabase %s failed unexpectedly.", action)
        return BackendResult.failure(f"Unexpected error during {action}.", "unexpected")


class SupabaseBackend:
    """
    Backend collaborator over supabase.AsyncClient.

    Auth goes through client.auth (session storage/refresh is the library's job).
    Tasks live in one table; row-level security on the server restricts rows to
    their owner, the owner filter here only shapes the query.
    """

    def __init__(self, client: AsyncClient, *, table: str = "todos") -> None:
        self._client = client
        self._table = table

    # ---- auth ----

    async def get_current_session(self) -> BackendResult[Identity]:
        async def run() -> Identity | None:
            return _session_to_identity(await self._client.auth.get_session())

        return await _call("get_session", run)

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        def handler(event: Any, session: Any) -> None:
            logger.debug("Supabase auth event: %s", event)
            callback(_session_to_identity(session))

        return self._client.auth.on_auth_state_change(handler)

    async def sign_up(self, email: str, password: str) -> BackendResult[None]:
        async def run() -> None:
            await self._client.auth.sign_up({"email": email, "password": password})

        return await _call("sign_up", run)

    async def sign_in_with_password(self, email: str, password: str) -> BackendResult[None]:
        async def run() -> None:
            await self._client.auth.sign_in_with_password({"email": email, "password": password})

        return await _call("sign_in", run)

    async def sign_out(self) -> BackendResult[None]:
        async def run() -> None:
            await self._client.auth.sign_out()

        return await _call("sign_out", run)

    # ---- tasks ----

    async def select_tasks(self, owner_id: str) -> BackendResult[list[Task]]:
        async def run() -> list[Task]:
            resp = await (
                self._client.table(self._table)
                .select("*")
                .eq("user_id", owner_id)
                .order("created_at", desc=True)
                .execute()
            )
            return [Task.from_row(row) for row in resp.data or []]

        return await _call("select", run)

    async def insert_task(self, new_task: NewTask) -> BackendResult[Task]:
        async def run() -> Task:
            resp = await self._client.table(self._table).insert(new_task.to_row()).execute()
            rows = resp.data or []
            if not rows:
                raise RuntimeError("insert returned no row")
            return Task.from_row(rows[0])

        return await _call("insert", run)

    async def update_task(self, task_id: int, *, completed: bool) -> BackendResult[None]:
        async def run() -> None:
            await (
                self._client.table(self._table)
                .update({"completed": completed})
                .eq("id", task_id)
                .execute()
            )

        return await _call("update", run)

    async def delete_task(self, task_id: int) -> BackendResult[None]:
        async def run() -> None:
            await self._client.table(self._table).delete().eq("id", task_id).execute()

        return await _call("delete", run)

    async def aclose(self) -> None:
        """Best-effort close of the REST session (not every client version exposes it)."""
        postgrest = getattr(self._client, "postgrest", None)
        close = getattr(postgrest, "aclose", None)
        if callable(close):
            with contextlib.suppress(Exception):
                await close()


async def create_supabase_backend(settings) -> SupabaseBackend:
    """
    Build the backend from settings.

    No secrets are required at import time; this raises RuntimeError when the
    project URL or anon key is missing so the caller can fall back to offline mode.
    """
    url = (getattr(settings, "supabase_url", "") or "").strip()
    key = (getattr(settings, "supabase_anon_key", "") or "").strip()

    if not url:
        raise RuntimeError("Supabase URL is not set. Set TASKSYNC_SUPABASE_URL in your .env.")
    if not key:
        raise RuntimeError("Supabase anon key is not set. Set TASKSYNC_SUPABASE_ANON_KEY in your .env.")

    client = await acreate_client(url, key)
    table = getattr(settings, "table", "todos") or "todos"
    logger.info("Supabase backend ready url=%s table=%s", url, table)
    return SupabaseBackend(client, table=table)
