# src/tasksync/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def _parse_ts(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if not raw:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    # Postgres may emit a bare "Z" suffix.
    return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))


@dataclass(frozen=True, slots=True)
class Task:
    """
    One to-do item as returned by the store.

    Rows in the `todos` table use `user_id` for the owner and `task` for the text.
    """

    id: int
    owner_id: str
    text: str
    completed: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Task:
        return cls(
            id=int(row["id"]),
            owner_id=str(row["user_id"]),
            text=str(row.get("task") or ""),
            completed=bool(row.get("completed", False)),
            created_at=_parse_ts(row.get("created_at")),
        )


@dataclass(frozen=True, slots=True)
class NewTask:
    """Insert payload. No id: the store assigns it."""

    owner_id: str
    text: str
    completed: bool = False

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.owner_id,
            "task": self.text,
            "completed": self.completed,
        }
