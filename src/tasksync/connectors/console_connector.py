# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..auth.identity import Identity
from ..cli.commands import format_task_view
from ..cli.commands import registry as command_registry
from ..core.errors import TaskSyncError
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(state: AppState) -> str:
    identity = state.gate.identity
    if identity is None:
        return ">>> (signed out) "
    return f">>> {identity.email or identity.user_id}: "


def _print_notice(state: AppState) -> None:
    if not state.notice:
        return
    _print_ts(f"[!] {state.notice}  (/dismiss to hide)")
    if state.draft:
        _print_ts(f"    Draft kept: {state.draft!r}. Use /add to retry.")


async def _refresh_view(state: AppState) -> None:
    """Swap the task view after an identity change and show it."""
    try:
        replaced = await state.sync_view()
    except TaskSyncError as e:
        # Initial load failed: the view exists but is empty.
        state.notice = e.message
        replaced = True

    if not replaced:
        return
    if state.tasks is None:
        _print_ts("Signed out. Use /signin <email> [password] or /signup <email> [password].")
    else:
        _print_ts(format_task_view(state.tasks))


def _to_command(state: AppState, user_input: str) -> str | None:
    """Plain text means "add this task" when signed in."""
    if user_input.startswith("/"):
        return user_input
    if state.tasks is None:
        return None
    return f"/add {user_input}"


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (offline=%s).", state.offline)
    if state.offline:
        _print_ts("[CONSOLE] Offline demo mode: tasks live in memory and are lost on exit.")
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback while a command is still running.
        print(f"[{_ts_local()}] {text}", flush=True)

    def on_auth(identity: Identity | None) -> None:
        if identity is None:
            logger.debug("Console saw sign out.")
        else:
            emit(f"[AUTH] Signed in as {identity.email or identity.user_id}.")

    subscription = state.gate.on_auth_state_change(on_auth)
    try:
        await _refresh_view(state)
        if state.tasks is None:
            _print_ts("Sign in with /signin <email> [password] or create an account with /signup.")
        _print_notice(state)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, _prompt(state))).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            line = _to_command(state, user_input)
            if line is None:
                _print_ts("Sign in first: /signin <email> [password]. Use /help for commands.")
                continue

            try:
                cmd_response = await command_registry.handle(state, line, emit=emit)
            except TaskSyncError as e:
                state.notice = e.message
                cmd_response = None
            except Exception:
                logger.exception("Command handler crashed.")
                state.notice = "Internal error while handling a command."
                cmd_response = None

            if cmd_response is not None:
                _print_ts(cmd_response)

            await _refresh_view(state)
            _print_notice(state)
    finally:
        subscription.unsubscribe()

    logger.info("Console connector finished.")
