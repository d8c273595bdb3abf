"""Task graph service: validated mutations and schedule queries.

The service owns one committed ``GraphSnapshot`` and the schedule computed
from it. Both are published together as a single immutable state object, so
a reader always sees a schedule that matches the snapshot it came from.

Mutations are serialized by an ``asyncio.Lock`` around the whole
read -> validate -> recompute -> publish sequence. The algorithms themselves
are synchronous, so no await point falls between validation and publication.
A rejected mutation publishes nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from taskgraph.config import Settings
from taskgraph.exceptions import (
    CycleDetectedError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    GraphValidationError,
    InconsistentGraphStateError,
    InvalidEdgeError,
    UnknownTaskError,
)
from taskgraph.schemas.task import (
    DependencyEdge,
    EdgeCommitResponse,
    GraphEdge,
    GraphNode,
    GraphResponse,
    TaskDependenciesResponse,
    TaskRecord,
)
from taskgraph.services.dag import build_adjacency, find_back_edge, would_create_cycle
from taskgraph.services.datetime_service import start_of_today
from taskgraph.services.schedule_service import build_schedule_response, compute_schedule

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from taskgraph.schemas.task import ScheduleResponse, TaskCreate, TaskResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable set of tasks and dependency edges."""

    tasks: tuple[TaskRecord, ...] = ()
    edges: tuple[DependencyEdge, ...] = ()

    @property
    def task_ids(self) -> list[int]:
        return [task.id for task in self.tasks]

    def get_task(self, task_id: int) -> TaskRecord | None:
        """Get a task by ID."""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def has_edge(self, dependent_id: int, dependency_id: int) -> bool:
        return DependencyEdge(dependent_id=dependent_id, dependency_id=dependency_id) in self.edges


@dataclass(frozen=True)
class _CommittedState:
    snapshot: GraphSnapshot
    schedule: ScheduleResponse


def validate_snapshot(snapshot: GraphSnapshot) -> None:
    """Check that a snapshot satisfies every graph invariant.

    Raises GraphValidationError (or a subclass) for duplicate task ids,
    edges referencing unknown tasks, self-loops, duplicate edges and cycles.
    """
    duplicate_ids = [tid for tid, count in Counter(snapshot.task_ids).items() if count > 1]
    if duplicate_ids:
        msg = f"Duplicate task ids: {sorted(duplicate_ids)}"
        raise GraphValidationError(msg)

    known = set(snapshot.task_ids)
    seen: set[DependencyEdge] = set()
    for edge in snapshot.edges:
        for tid in (edge.dependent_id, edge.dependency_id):
            if tid not in known:
                raise UnknownTaskError(tid)
        if edge.dependent_id == edge.dependency_id:
            raise InvalidEdgeError(edge.dependent_id)
        if edge in seen:
            raise DuplicateEdgeError(edge.dependent_id, edge.dependency_id)
        seen.add(edge)

    back_edge = find_back_edge(snapshot.task_ids, snapshot.edges)
    if back_edge is not None:
        raise CycleDetectedError(*back_edge)


class TaskGraphService:
    """Validated mutations and consistent reads over one task graph.

    Args:
        snapshot: Initial graph. Validated before use; defaults to empty.
        settings: Scheduling settings; defaults to ``Settings()``.
        clock: Returns the reference instant that schedule offsets are
            anchored to. Defaults to the start of today in ``settings.timezone``.
    """

    def __init__(
        self,
        snapshot: GraphSnapshot | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings if settings is not None else Settings()
        self._clock = clock if clock is not None else self._default_clock
        snapshot = snapshot if snapshot is not None else GraphSnapshot()
        validate_snapshot(snapshot)
        self._state = self._build_state(snapshot)
        self._lock = asyncio.Lock()

    def _default_clock(self) -> datetime:
        return start_of_today(self._settings.timezone)

    def _build_state(self, snapshot: GraphSnapshot) -> _CommittedState:
        try:
            result = compute_schedule(snapshot.tasks, snapshot.edges)
        except InconsistentGraphStateError:
            logger.error(
                "Schedule recompute failed on a graph with %d tasks and %d edges",
                len(snapshot.tasks),
                len(snapshot.edges),
            )
            raise
        schedule = build_schedule_response(
            snapshot.tasks,
            result,
            reference=self._clock(),
            unit_hours=self._settings.duration_unit_hours,
        )
        return _CommittedState(snapshot=snapshot, schedule=schedule)

    # ── Reads ────────────────────────────────────────

    @property
    def snapshot(self) -> GraphSnapshot:
        """The committed graph, for persistence by the caller."""
        return self._state.snapshot

    @property
    def schedule(self) -> ScheduleResponse:
        """The schedule computed from the committed graph."""
        return self._state.schedule

    def list_tasks(self) -> list[TaskResponse]:
        """Get all tasks with neighbours and schedule."""
        return list(self._state.schedule.tasks)

    def get_task(self, task_id: int) -> TaskResponse:
        """Get a single task with neighbours and schedule."""
        for task in self._state.schedule.tasks:
            if task.id == task_id:
                return task
        raise UnknownTaskError(task_id)

    def get_task_dependencies(self, task_id: int) -> TaskDependenciesResponse:
        """Get the direct dependencies and dependents of a task."""
        snapshot = self._state.snapshot
        if snapshot.get_task(task_id) is None:
            raise UnknownTaskError(task_id)

        adjacency = build_adjacency(snapshot.task_ids, snapshot.edges)
        by_id = {task.id: task for task in snapshot.tasks}
        return TaskDependenciesResponse(
            task_id=task_id,
            dependencies=[by_id[tid] for tid in adjacency.dependencies_of[task_id]],
            dependents=[by_id[tid] for tid in adjacency.dependents_of[task_id]],
        )

    def export_graph(self) -> GraphResponse:
        """Get the full task DAG for visualization."""
        state = self._state
        nodes = [
            GraphNode(
                id=task.id,
                title=task.title,
                duration=task.duration,
                is_critical=task.schedule.is_critical,
            )
            for task in state.schedule.tasks
        ]
        edges = [
            GraphEdge(source=edge.dependent_id, target=edge.dependency_id)
            for edge in state.snapshot.edges
        ]
        return GraphResponse(
            nodes=nodes,
            edges=edges,
            critical_path=list(state.schedule.critical_path),
        )

    # ── Mutations ────────────────────────────────────

    async def recompute_schedule(self) -> ScheduleResponse:
        """Recompute the schedule of the committed graph from scratch."""
        async with self._lock:
            self._state = self._build_state(self._state.snapshot)
            return self._state.schedule

    async def add_task(self, body: TaskCreate) -> TaskResponse:
        """Create a task with the next free id and recompute the schedule."""
        async with self._lock:
            snapshot = self._state.snapshot
            task = TaskRecord(
                id=max(snapshot.task_ids, default=0) + 1,
                title=body.title,
                duration=body.duration or self._settings.default_task_duration,
                due_date=body.due_date,
            )
            self._state = self._build_state(
                GraphSnapshot(tasks=(*snapshot.tasks, task), edges=snapshot.edges)
            )
            logger.info("Created task %d (duration %d)", task.id, task.duration)
            return self.get_task(task.id)

    async def remove_task(self, task_id: int) -> ScheduleResponse:
        """Delete a task and every edge touching it, then recompute."""
        async with self._lock:
            snapshot = self._state.snapshot
            if snapshot.get_task(task_id) is None:
                logger.warning("Rejected removal of task %d: not found", task_id)
                raise UnknownTaskError(task_id)

            edges = tuple(
                e for e in snapshot.edges if task_id not in (e.dependent_id, e.dependency_id)
            )
            tasks = tuple(t for t in snapshot.tasks if t.id != task_id)
            self._state = self._build_state(GraphSnapshot(tasks=tasks, edges=edges))
            logger.info(
                "Deleted task %d and %d dependency edge(s)",
                task_id,
                len(snapshot.edges) - len(edges),
            )
            return self._state.schedule

    async def propose_edge(self, dependent_id: int, dependency_id: int) -> EdgeCommitResponse:
        """Validate and commit "dependent_id depends on dependency_id".

        Raises UnknownTaskError, InvalidEdgeError (self-loop),
        DuplicateEdgeError or CycleDetectedError; the graph is unchanged on
        any of them.
        """
        async with self._lock:
            snapshot = self._state.snapshot
            try:
                self._check_proposed_edge(snapshot, dependent_id, dependency_id)
            except GraphValidationError as exc:
                logger.warning(
                    "Rejected dependency %d -> %d: %s", dependent_id, dependency_id, exc
                )
                raise

            edge = DependencyEdge(dependent_id=dependent_id, dependency_id=dependency_id)
            self._state = self._build_state(
                GraphSnapshot(tasks=snapshot.tasks, edges=(*snapshot.edges, edge))
            )
            logger.info("Committed dependency %d -> %d", dependent_id, dependency_id)
            return EdgeCommitResponse(edge=edge, schedule=self._state.schedule)

    @staticmethod
    def _check_proposed_edge(
        snapshot: GraphSnapshot,
        dependent_id: int,
        dependency_id: int,
    ) -> None:
        for tid in (dependent_id, dependency_id):
            if snapshot.get_task(tid) is None:
                raise UnknownTaskError(tid)
        if dependent_id == dependency_id:
            raise InvalidEdgeError(dependent_id)
        if snapshot.has_edge(dependent_id, dependency_id):
            raise DuplicateEdgeError(dependent_id, dependency_id)
        if would_create_cycle(snapshot.task_ids, snapshot.edges, dependent_id, dependency_id):
            raise CycleDetectedError(dependent_id, dependency_id)

    async def remove_edge(self, dependent_id: int, dependency_id: int) -> ScheduleResponse:
        """Delete a committed dependency edge and recompute the schedule."""
        async with self._lock:
            snapshot = self._state.snapshot
            if not snapshot.has_edge(dependent_id, dependency_id):
                logger.warning(
                    "Rejected removal of dependency %d -> %d: not found",
                    dependent_id,
                    dependency_id,
                )
                raise EdgeNotFoundError(dependent_id, dependency_id)

            target = DependencyEdge(dependent_id=dependent_id, dependency_id=dependency_id)
            edges = tuple(e for e in snapshot.edges if e != target)
            self._state = self._build_state(GraphSnapshot(tasks=snapshot.tasks, edges=edges))
            logger.info("Removed dependency %d -> %d", dependent_id, dependency_id)
            return self._state.schedule
