# src/tasksync/cli/commands.py

from __future__ import annotations

import asyncio
import getpass
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..auth.session_gate import AuthMode, GateState
from ..backend.offline import OfflineBackend
from ..core.state import AppState
from ..tasks.task_sync import TaskListSynchronizer

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

PROGRESS_WIDTH = 20


class CommandRegistry:
    """Slash-command registry used by the console (/help, /add, /done, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        # Commands that take the rest of the line verbatim as a single argument.
        self._raw: set[str] = set()

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        raw: bool = False,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        names = [key, *(a.lower() for a in aliases)]
        for alias in names[1:]:
            self._handlers[alias] = handler
        if raw:
            self._raw.update(names)

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Raw commands get the remainder of the line as one argument, with its
        inner whitespace untouched.

        The previous notice is cleared before the handler runs; AuthError and
        OperationError raised by handlers propagate to the connector.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split(maxsplit=1)
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        rest = parts[1] if len(parts) > 1 else ""
        if name in self._raw:
            args = [rest] if rest.strip() else []
        else:
            args = rest.split()

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        state.notice = None

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def format_progress(tasks: TaskListSynchronizer) -> str:
    filled = round(tasks.completion_percentage / 100 * PROGRESS_WIDTH)
    return "[" + "#" * filled + "-" * (PROGRESS_WIDTH - filled) + "]"


def format_task_view(tasks: TaskListSynchronizer) -> str:
    if tasks.loading:
        return "Loading your tasks..."

    header = f"My Tasks - {tasks.completed_count} of {tasks.total_count} completed"
    if tasks.total_count == 0:
        return f"{header}\n  No tasks yet! Add your first task with /add <text>."

    lines = [f"{header} ({tasks.completion_percentage:.0f}%)", format_progress(tasks)]
    for t in tasks.tasks:
        mark = "x" if t.completed else " "
        lines.append(f"  [{mark}] #{t.id} {t.text}")

    if tasks.all_completed:
        lines.append("All tasks completed! Great job!")
    else:
        n = tasks.remaining_count
        lines.append(f"Keep going! {n} task{'s' if n != 1 else ''} remaining")
    return "\n".join(lines)


def _require_tasks(state: AppState) -> TaskListSynchronizer | str:
    if state.gate.state == GateState.LOADING:
        return "Loading..."
    if state.tasks is None:
        return "You are signed out. Use /signin <email> [password] or /signup <email> [password]."
    return state.tasks


def _parse_id(args: list[str]) -> int | None:
    if not args:
        return None
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        return None


async def _read_credentials(args: list[str]) -> tuple[str, str] | None:
    if not args:
        return None
    email = args[0]
    if len(args) > 1:
        password = args[1]
    else:
        password = await asyncio.to_thread(getpass.getpass, "Password: ")
    return email, password


# ---- commands ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    backend = "offline demo (in-memory)" if state.offline else "supabase"
    identity = state.gate.identity
    user = (identity.email or identity.user_id) if identity is not None else "-"
    lines = [
        "Status:",
        f"  Backend: {backend}",
        f"  Session: {state.gate.state.value}",
        f"  User: {user}",
    ]
    if state.gate.pending_verification:
        lines.append(f"  Verification pending for: {state.gate.pending_verification}")
    if state.tasks is not None:
        t = state.tasks
        lines.append(
            f"  Tasks: {t.total_count} total, {t.completed_count} completed "
            f"({t.completion_percentage:.0f}%)"
        )
    return "\n".join(lines)


async def cmd_signin(state: AppState, args: list[str]) -> str:
    creds = await _read_credentials(args)
    if creds is None:
        return "Usage: /signin <email> [password]"
    await state.gate.submit_credentials(*creds, AuthMode.SIGN_IN)
    if state.gate.is_authenticated:
        return "Signed in."
    return "Sign in accepted. Waiting for the session..."


async def cmd_signup(state: AppState, args: list[str]) -> str:
    creds = await _read_credentials(args)
    if creds is None:
        return "Usage: /signup <email> [password]"
    await state.gate.submit_credentials(*creds, AuthMode.SIGN_UP)
    return "Success! Check your email to confirm your account, then /signin."


async def cmd_confirm(state: AppState, args: list[str]) -> str:
    """Offline demo only: confirm an account as if its emailed link was opened."""
    if not isinstance(state.backend, OfflineBackend):
        return "Open the confirmation link in your email, then /signin."
    if not args:
        return "Usage: /confirm <email>"
    if not state.backend.confirm_email(args[0]):
        return f"No account for {args[0]}."
    return f"Confirmed {args[0]}. Now /signin."


async def cmd_signout(state: AppState, args: list[str]) -> str:
    if state.gate.identity is None:
        return "You are not signed in."
    await state.gate.sign_out()
    return "Signing out..."


async def cmd_list(state: AppState, args: list[str]) -> str:
    tasks = _require_tasks(state)
    if isinstance(tasks, str):
        return tasks
    return format_task_view(tasks)


async def cmd_reload(state: AppState, args: list[str]) -> str:
    tasks = _require_tasks(state)
    if isinstance(tasks, str):
        return tasks
    await tasks.load()
    return format_task_view(tasks)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <text>  -> add a task
    /add         -> resubmit the draft kept from a failed add
    """
    tasks = _require_tasks(state)
    if isinstance(tasks, str):
        return tasks

    text = args[0] if args else state.draft
    if not text.strip():
        return "Usage: /add <text>"

    # Kept until the store confirms the insert.
    state.draft = text
    await tasks.add(text)
    state.draft = ""
    return format_task_view(tasks)


async def cmd_done(state: AppState, args: list[str]) -> str:
    tasks = _require_tasks(state)
    if isinstance(tasks, str):
        return tasks
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /done <id>"
    await tasks.toggle(task_id)
    return format_task_view(tasks)


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    tasks = _require_tasks(state)
    if isinstance(tasks, str):
        return tasks
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /rm <id>"

    pending = asyncio.create_task(tasks.delete(task_id))
    await asyncio.sleep(0)
    if emit is not None and not pending.done():
        # Already gone locally; the store has not answered yet.
        emit(f"Deleting #{task_id}...")
    await pending
    return format_task_view(tasks)


async def cmd_dismiss(state: AppState, args: list[str]) -> str:
    return "Notice dismissed."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, session and task totals.")
registry.register(
    "signin", cmd_signin, help_text="Sign in: /signin <email> [password].", aliases=["login"]
)
registry.register(
    "signup", cmd_signup, help_text="Create an account: /signup <email> [password].", aliases=["register"]
)
registry.register(
    "confirm", cmd_confirm, help_text="Offline demo: confirm a new account: /confirm <email>."
)
registry.register("signout", cmd_signout, help_text="Sign out.", aliases=["logout"])
registry.register("list", cmd_list, help_text="Show your tasks.", aliases=["ls"])
registry.register("reload", cmd_reload, help_text="Fetch your tasks again from the store.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <text> (no text retries the kept draft).",
    raw=True,
)
registry.register(
    "done", cmd_done, help_text="Toggle a task completed/open: /done <id>.", aliases=["toggle"]
)
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del", "delete"])
registry.register("dismiss", cmd_dismiss, help_text="Dismiss the current error notice.")
