# src/tasksync/core/errors.py

from __future__ import annotations


class TaskSyncError(Exception):
    """Base for user-facing failures. `message` is safe to show as a notice."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class AuthError(TaskSyncError):
    """Credential or session failure (bad password, duplicate account, weak password...)."""


class OperationError(TaskSyncError):
    """Task CRUD failure (network, authorization, constraint violation...)."""
