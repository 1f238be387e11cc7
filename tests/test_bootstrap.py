# tests/test_bootstrap.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasksync.auth.session_gate import GateState
from tasksync.backend.offline import OfflineBackend
from tasksync.cli.bootstrap import create_backend, create_initial_state
from tasksync.config import Settings
from tasksync.core.state import AppState


@pytest.mark.asyncio
async def test_forced_offline_uses_in_memory_backend(settings) -> None:
    backend, offline = await create_backend(settings)
    assert isinstance(backend, OfflineBackend)
    assert offline is True


@pytest.mark.asyncio
async def test_missing_supabase_keys_fall_back_to_offline(settings) -> None:
    settings.offline = False
    backend, offline = await create_backend(settings)
    assert isinstance(backend, OfflineBackend)
    assert offline is True


@pytest.mark.asyncio
async def test_initial_state_creates_data_dir_and_unstarted_gate(settings) -> None:
    state = await create_initial_state(settings=settings)

    assert Path(settings.data_dir).is_dir()
    assert state.offline is True
    assert state.tasks is None
    assert state.gate.state == GateState.LOADING


@pytest.mark.asyncio
async def test_sync_view_follows_identity_changes(state: AppState) -> None:
    await state.gate.start()
    assert await state.sync_view() is False

    await state.backend.sign_up("ann@example.com", "secret123")
    await state.backend.sign_in_with_password("ann@example.com", "secret123")
    assert await state.sync_view() is True
    first = state.tasks
    assert first is not None and first.loading is False

    # Same identity: the view is kept.
    assert await state.sync_view() is False
    assert state.tasks is first

    state.draft = "half-typed"
    await state.backend.sign_out()
    assert await state.sync_view() is True
    assert state.tasks is None
    assert state.draft == ""


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("TASKSYNC_SUPABASE_URL", "TASKSYNC_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY", "TASKSYNC_TABLE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon")
    monkeypatch.setenv("TASKSYNC_OFFLINE", "yes")
    monkeypatch.setenv("TASKSYNC_OFFLINE_REQUIRE_CONFIRM", "1")
    monkeypatch.setenv("TASKSYNC_DATA_DIR", str(tmp_path / "d"))

    s = Settings.from_env()

    assert s.supabase_url == "https://demo.supabase.co"
    assert s.supabase_anon_key == "anon"
    assert s.table == "todos"
    assert s.offline is True
    assert s.offline_require_confirm is True
    assert s.data_dir == tmp_path / "d"


@pytest.mark.asyncio
async def test_offline_backend_can_require_confirmation(settings) -> None:
    settings.offline_require_confirm = True
    backend, _ = await create_backend(settings)

    await backend.sign_up("ann@example.com", "secret123")
    res = await backend.sign_in_with_password("ann@example.com", "secret123")

    assert res.error is not None and res.error.code == "email_not_confirmed"
