"""Tests for the task graph service: validated mutations and consistent reads."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from taskgraph.exceptions import (
    CycleDetectedError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    GraphValidationError,
    InvalidEdgeError,
    UnknownTaskError,
)
from taskgraph.schemas.task import DependencyEdge, TaskCreate
from taskgraph.services.task_graph_service import (
    GraphSnapshot,
    TaskGraphService,
    validate_snapshot,
)
from tests.conftest import make_snapshot

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskgraph.config import Settings


class TestValidateSnapshot:
    def test_accepts_dag(self) -> None:
        validate_snapshot(make_snapshot({1: 1, 2: 1}, [(2, 1)]))

    def test_rejects_duplicate_task_ids(self) -> None:
        snapshot = make_snapshot({1: 1}, [])
        doubled = GraphSnapshot(tasks=snapshot.tasks * 2)
        with pytest.raises(GraphValidationError, match="Duplicate task ids"):
            validate_snapshot(doubled)

    def test_rejects_unknown_task(self) -> None:
        with pytest.raises(UnknownTaskError):
            validate_snapshot(make_snapshot({1: 1}, [(1, 2)]))

    def test_rejects_self_loop(self) -> None:
        with pytest.raises(InvalidEdgeError):
            validate_snapshot(make_snapshot({1: 1}, [(1, 1)]))

    def test_rejects_duplicate_edge(self) -> None:
        with pytest.raises(DuplicateEdgeError):
            validate_snapshot(make_snapshot({1: 1, 2: 1}, [(2, 1), (2, 1)]))

    def test_rejects_cycle(self) -> None:
        with pytest.raises(CycleDetectedError):
            validate_snapshot(make_snapshot({1: 1, 2: 1, 3: 1}, [(1, 2), (2, 3), (3, 1)]))

    def test_service_refuses_invalid_snapshot(self, test_settings: Settings) -> None:
        with pytest.raises(CycleDetectedError):
            TaskGraphService(make_snapshot({1: 1, 2: 1}, [(1, 2), (2, 1)]), settings=test_settings)


class TestProposeEdge:
    async def test_commit_recomputes_schedule(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 2, 2: 3})
        assert service.schedule.project_duration == 3

        result = await service.propose_edge(2, 1)

        assert result.edge == DependencyEdge(dependent_id=2, dependency_id=1)
        assert result.schedule.project_duration == 5
        assert result.schedule.critical_path == [1, 2]
        assert service.snapshot.edges == (result.edge,)
        assert service.schedule == result.schedule

    async def test_transitive_cycle_rejected_and_graph_unchanged(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        # 2 depends on 1, 3 depends on 2; making 1 depend on 3 closes a cycle
        service = make_service({1: 1, 2: 1, 3: 1}, [(2, 1), (3, 2)])
        before_snapshot, before_schedule = service.snapshot, service.schedule

        with pytest.raises(CycleDetectedError) as exc_info:
            await service.propose_edge(1, 3)

        assert exc_info.value.status_code == 400
        assert service.snapshot is before_snapshot
        assert service.schedule is before_schedule

    async def test_self_loop_rejected_without_cycle_search(
        self,
        make_service: Callable[..., TaskGraphService],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def _fail(*_args: object) -> bool:
            raise AssertionError("cycle search must not run for a self-loop")

        monkeypatch.setattr("taskgraph.services.task_graph_service.would_create_cycle", _fail)
        service = make_service({1: 1})

        with pytest.raises(InvalidEdgeError):
            await service.propose_edge(1, 1)
        assert service.snapshot.edges == ()

    async def test_duplicate_rejected(self, make_service: Callable[..., TaskGraphService]) -> None:
        service = make_service({1: 1, 2: 1}, [(2, 1)])
        with pytest.raises(DuplicateEdgeError):
            await service.propose_edge(2, 1)
        assert len(service.snapshot.edges) == 1

    async def test_unknown_task_rejected(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 1})
        with pytest.raises(UnknownTaskError) as exc_info:
            await service.propose_edge(1, 42)
        assert exc_info.value.status_code == 404

    async def test_concurrent_proposals_cannot_form_cycle(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 1, 2: 1})

        results = await asyncio.gather(
            service.propose_edge(1, 2),
            service.propose_edge(2, 1),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        assert len(errors) == 1
        assert isinstance(errors[0], CycleDetectedError)
        assert len(service.snapshot.edges) == 1


class TestRemoveEdge:
    async def test_removing_critical_edge_recomputes_slack(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 2, 2: 3, 3: 1}, [(2, 1)])
        assert service.schedule.critical_path == [1, 2]
        assert service.get_task(3).schedule.slack == 4

        schedule = await service.remove_edge(2, 1)

        assert schedule.critical_path == [2]
        assert schedule.project_duration == 3
        assert service.get_task(1).schedule.slack == 1
        assert service.get_task(1).schedule.is_critical is False
        assert service.get_task(3).schedule.slack == 2
        assert service.snapshot.edges == ()

    async def test_missing_edge(self, make_service: Callable[..., TaskGraphService]) -> None:
        service = make_service({1: 1, 2: 1})
        with pytest.raises(EdgeNotFoundError) as exc_info:
            await service.remove_edge(2, 1)
        assert exc_info.value.status_code == 404


class TestTaskMutations:
    async def test_add_task_assigns_next_id(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 1, 5: 2})
        task = await service.add_task(TaskCreate(title="Write docs", duration=4))

        assert task.id == 6
        assert task.duration == 4
        assert task.schedule.is_critical is True
        assert service.schedule.project_duration == 4

    async def test_add_task_uses_default_duration(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service()
        task = await service.add_task(TaskCreate(title="First"))
        assert task.id == 1
        assert task.duration == 1

    async def test_remove_task_drops_its_edges(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 1, 2: 1, 3: 1}, [(2, 1), (3, 2)])
        schedule = await service.remove_task(2)

        assert [t.id for t in schedule.tasks] == [1, 3]
        assert service.snapshot.edges == ()
        assert set(schedule.critical_path) == {1, 3}

    async def test_remove_unknown_task(self, make_service: Callable[..., TaskGraphService]) -> None:
        service = make_service({1: 1})
        with pytest.raises(UnknownTaskError):
            await service.remove_task(2)
        assert len(service.snapshot.tasks) == 1


class TestQueries:
    async def test_recompute_is_idempotent(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 3, 2: 1, 3: 2}, [(2, 1), (3, 1)])
        first = await service.recompute_schedule()
        second = await service.recompute_schedule()
        assert first == second

    def test_task_dependencies(self, make_service: Callable[..., TaskGraphService]) -> None:
        service = make_service({1: 1, 2: 1, 3: 1}, [(2, 1), (3, 2)])
        deps = service.get_task_dependencies(2)

        assert [t.id for t in deps.dependencies] == [1]
        assert [t.id for t in deps.dependents] == [3]

    def test_task_dependencies_unknown(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 1})
        with pytest.raises(UnknownTaskError):
            service.get_task_dependencies(9)

    def test_export_graph(self, make_service: Callable[..., TaskGraphService]) -> None:
        service = make_service({1: 1, 2: 1, 3: 5}, [(2, 1)])
        graph = service.export_graph()

        assert [n.id for n in graph.nodes] == [1, 2, 3]
        assert [(e.source, e.target) for e in graph.edges] == [(2, 1)]
        assert graph.critical_path == [3]
        assert [n.is_critical for n in graph.nodes] == [False, False, True]

    def test_list_tasks_matches_schedule(
        self, make_service: Callable[..., TaskGraphService]
    ) -> None:
        service = make_service({1: 1, 2: 1}, [(2, 1)])
        assert service.list_tasks() == service.schedule.tasks

    def test_empty_graph(self, make_service: Callable[..., TaskGraphService]) -> None:
        service = make_service()
        assert service.schedule.tasks == []
        assert service.schedule.critical_path == []
        assert service.export_graph().nodes == []
