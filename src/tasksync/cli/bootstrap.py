# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- builds the backend (Supabase, or the offline demo backend),
- wires backend + session gate into AppState.
"""

from __future__ import annotations

import logging

from ..auth.session_gate import SessionGate
from ..backend.offline import OfflineBackend
from ..backend.supabase_backend import create_supabase_backend
from ..config import get_settings
from ..core.ports import Backend
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _offline_backend(settings) -> OfflineBackend:
    # Demo accounts need /confirm before sign in when confirmation is required.
    return OfflineBackend(auto_confirm=not getattr(settings, "offline_require_confirm", False))


async def create_backend(settings) -> tuple[Backend, bool]:
    """Return (backend, offline). Falls back to the in-memory backend when Supabase is unavailable."""
    if getattr(settings, "offline", False):
        logger.info("Offline mode forced by settings.")
        return _offline_backend(settings), True

    try:
        return await create_supabase_backend(settings), False
    except Exception as e:
        # Fallback for demos / local runs without a Supabase project.
        logger.warning("Supabase backend unavailable (%s); using offline demo backend.", e)
        return _offline_backend(settings), True


async def create_initial_state(*, settings=None, backend: Backend | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and backend injectable makes the app easier to test and
    avoids hidden global config reads. The gate is created but not started.
    """
    if settings is None:
        settings = get_settings()

    data_dir = getattr(settings, "data_dir", None)
    if data_dir is not None:
        data_dir.mkdir(parents=True, exist_ok=True)

    offline = False
    if backend is None:
        backend, offline = await create_backend(settings)

    return AppState(
        settings=settings,
        backend=backend,
        gate=SessionGate(backend),
        offline=offline,
    )
