# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.auth.identity import Identity
from tasksync.auth.session_gate import SessionGate
from tasksync.backend.offline import OfflineBackend
from tasksync.core.state import AppState

from .fakes import FakeBackend


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment and .env.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        log_level="WARNING",
        data_dir=tmp_path / "data",
        supabase_url="",
        supabase_anon_key="",
        table="todos",
        offline=True,
        offline_require_confirm=False,
    )


@pytest.fixture()
def identity() -> Identity:
    return Identity(user_id="u1", email="ann@example.com")


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with the in-memory offline backend.

    NOTE: We keep the real OfflineBackend here (not FakeBackend) because the
    command tests exercise full sign-up -> sign-in -> CRUD flows.
    """
    backend = OfflineBackend()
    return AppState(
        settings=settings,
        backend=backend,
        gate=SessionGate(backend),
        offline=True,
    )
