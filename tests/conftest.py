"""Shared test fixtures for the task graph engine."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from taskgraph.config import Settings
from taskgraph.schemas.task import DependencyEdge, TaskRecord
from taskgraph.services.task_graph_service import GraphSnapshot, TaskGraphService

if TYPE_CHECKING:
    from collections.abc import Callable

REFERENCE_START = datetime(2026, 3, 2, tzinfo=UTC)


def make_tasks(durations: dict[int, int]) -> tuple[TaskRecord, ...]:
    """Build task records titled after their ids."""
    return tuple(
        TaskRecord(id=tid, title=f"Task {tid}", duration=duration)
        for tid, duration in durations.items()
    )


def make_edges(pairs: list[tuple[int, int]]) -> tuple[DependencyEdge, ...]:
    """Build edges from (dependent, dependency) pairs."""
    return tuple(DependencyEdge(dependent_id=a, dependency_id=b) for a, b in pairs)


def make_snapshot(durations: dict[int, int], pairs: list[tuple[int, int]]) -> GraphSnapshot:
    return GraphSnapshot(tasks=make_tasks(durations), edges=make_edges(pairs))


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, debug=True)


@pytest.fixture
def make_service(test_settings: Settings) -> Callable[..., TaskGraphService]:
    """Factory for graph services anchored to a fixed reference instant."""

    def _make(
        durations: dict[int, int] | None = None,
        pairs: list[tuple[int, int]] | None = None,
    ) -> TaskGraphService:
        snapshot = make_snapshot(durations or {}, pairs or [])
        return TaskGraphService(snapshot, settings=test_settings, clock=lambda: REFERENCE_START)

    return _make
