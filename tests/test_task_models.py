# tests/test_task_models.py

from __future__ import annotations

from datetime import datetime, timezone

from tasksync.tasks.task_models import NewTask, Task


def test_from_row_maps_table_columns() -> None:
    task = Task.from_row(
        {
            "id": "12",
            "user_id": "u1",
            "task": "Buy milk",
            "completed": True,
            "created_at": "2024-05-01T12:00:00Z",
        }
    )

    assert task.id == 12
    assert task.owner_id == "u1"
    assert task.text == "Buy milk"
    assert task.completed is True
    assert task.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_from_row_tolerates_missing_optional_columns() -> None:
    task = Task.from_row({"id": 1, "user_id": "u1", "task": None})

    assert task.text == ""
    assert task.completed is False
    assert task.created_at == datetime.fromtimestamp(0, tz=timezone.utc)


def test_new_task_row_has_no_id() -> None:
    row = NewTask(owner_id="u1", text="Walk the dog").to_row()
    assert row == {"user_id": "u1", "task": "Walk the dog", "completed": False}
