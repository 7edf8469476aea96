"""Test helper functions for GigClaw tests.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import make_task, task_payload

    def test_example():
        task = make_task(task_id="t-1", status="completed")
        body = {"tasks": [task_payload(task_id="t-2")]}
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from gigclaw.models import Task

TEST_BASE_URL = "https://gigclaw.test"

# Fixed local time used wherever a fetch timestamp is rendered
FIXED_NOW = datetime(2026, 1, 15, 9, 30, 15)


def task_payload(
    task_id: str = "task-1",
    title: str = "Fix bug",
    budget: float = 50.0,
    status: str = "posted",
    **overrides: Any,
) -> dict[str, Any]:
    """Build a task JSON object the way the marketplace sends it."""
    data: dict[str, Any] = {
        "id": task_id,
        "title": title,
        "description": "",
        "budget": budget,
        "currency": "USDC",
        "status": status,
        "tags": [],
        "createdAt": 1735689600000,
    }
    data.update(overrides)
    return data


def make_task(
    task_id: str = "task-1",
    title: str = "Fix bug",
    budget: float = 50.0,
    status: str = "posted",
    tags: tuple[str, ...] = (),
) -> Task:
    """Create a Task with sensible defaults."""
    return Task(
        id=task_id,
        title=title,
        budget=budget,
        currency="USDC",
        status=status,
        tags=tags,
    )
