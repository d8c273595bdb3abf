"""TOML reader/writer for tasks.toml graph snapshots.

Format::

    [[tasks]]
    id = 1
    title = "Design"
    duration = 2

    [[tasks]]
    id = 2
    title = "Build"
    duration = 3
    due_date = "2026-11-01"
    depends_on = [1]
"""

from __future__ import annotations

import tomllib
from datetime import datetime
from typing import TYPE_CHECKING, Any

import tomli_w

from taskgraph.schemas.task import DependencyEdge, TaskRecord
from taskgraph.services.datetime_service import format_iso, parse_datetime
from taskgraph.services.task_graph_service import GraphSnapshot

if TYPE_CHECKING:
    from pathlib import Path


def _parse_due_date(raw: object, default_tz: str) -> datetime | None:
    # tomllib yields str, date or datetime depending on how the value is quoted
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return parse_datetime(raw, default_tz)
    return parse_datetime(str(raw), default_tz)


def parse_tasks_config(tasks_path: Path, default_tz: str = "UTC") -> GraphSnapshot:
    """Parse tasks.toml into a graph snapshot.

    A missing file yields an empty snapshot. Raises ValueError for entries
    without an ``id`` or ``title`` and pydantic.ValidationError for values
    that fail schema validation. Graph invariants (unknown ids, cycles) are
    left to the graph service.
    """
    if not tasks_path.exists():
        return GraphSnapshot()

    data = tomllib.loads(tasks_path.read_text(encoding="utf-8"))
    tasks: list[TaskRecord] = []
    edges: list[DependencyEdge] = []
    for task_data in data.get("tasks", []):
        for key in ("id", "title"):
            if key not in task_data:
                msg = f"Task entry missing required '{key}' field: {task_data}"
                raise ValueError(msg)

        raw_due = task_data.get("due_date")
        tasks.append(
            TaskRecord(
                id=task_data["id"],
                title=task_data["title"],
                duration=task_data.get("duration", 1),
                due_date=_parse_due_date(raw_due, default_tz),
            )
        )
        for dependency_id in task_data.get("depends_on", []):
            edges.append(DependencyEdge(dependent_id=task_data["id"], dependency_id=dependency_id))

    return GraphSnapshot(tasks=tuple(tasks), edges=tuple(edges))


def write_tasks_config(tasks_path: Path, snapshot: GraphSnapshot) -> None:
    """Write a graph snapshot back to tasks.toml."""
    depends_on: dict[int, list[int]] = {}
    for edge in snapshot.edges:
        depends_on.setdefault(edge.dependent_id, []).append(edge.dependency_id)

    tasks_data: list[dict[str, Any]] = []
    for task in snapshot.tasks:
        entry: dict[str, Any] = {"id": task.id, "title": task.title, "duration": task.duration}
        if task.due_date is not None:
            entry["due_date"] = format_iso(task.due_date)
        if task.id in depends_on:
            entry["depends_on"] = depends_on[task.id]
        tasks_data.append(entry)

    tasks_path.write_bytes(tomli_w.dumps({"tasks": tasks_data}).encode("utf-8"))
