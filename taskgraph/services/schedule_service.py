"""Critical Path Method scheduling over a task dependency snapshot.

Offsets are integers counted in duration units from the project start:

- forward pass (topological order): earliest start/finish
- backward pass (reverse order): latest start/finish
- slack = latest_start - earliest_start; zero-slack tasks are critical

Tasks without dependents get ``latest_finish = project_duration``, so a
terminal task that finishes before the project end carries positive slack.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from taskgraph.schemas.task import ScheduleResponse, TaskResponse, TaskSchedule
from taskgraph.services.dag import Adjacency, build_adjacency, topological_sort
from taskgraph.services.datetime_service import offset_to_datetime

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from taskgraph.schemas.task import DependencyEdge, TaskRecord

logger = logging.getLogger(__name__)


@dataclass
class TaskTimes:
    """CPM offsets of a single task."""

    earliest_start: int = 0
    earliest_finish: int = 0
    latest_start: int = 0
    latest_finish: int = 0

    @property
    def slack(self) -> int:
        return self.latest_start - self.earliest_start

    @property
    def is_critical(self) -> bool:
        return self.slack == 0


@dataclass
class CriticalPathResult:
    """Results from a CPM calculation."""

    adjacency: Adjacency
    order: list[int]  # topological order
    times: dict[int, TaskTimes]
    critical_path: list[int]  # zero-slack task ids in topological order
    project_duration: int


def forward_pass(
    order: Sequence[int],
    durations: Mapping[int, int],
    adjacency: Adjacency,
) -> dict[int, TaskTimes]:
    """Calculate earliest start and finish for every task in topological order."""
    times: dict[int, TaskTimes] = {}
    for tid in order:
        dependencies = adjacency.dependencies_of[tid]
        earliest_start = max((times[dep].earliest_finish for dep in dependencies), default=0)
        times[tid] = TaskTimes(
            earliest_start=earliest_start,
            earliest_finish=earliest_start + durations[tid],
        )
    return times


def backward_pass(
    order: Sequence[int],
    durations: Mapping[int, int],
    adjacency: Adjacency,
    times: dict[int, TaskTimes],
    project_duration: int,
) -> None:
    """Fill latest start and finish in reverse topological order."""
    for tid in reversed(order):
        task_times = times[tid]
        dependents = adjacency.dependents_of[tid]
        if dependents:
            task_times.latest_finish = min(times[d].latest_start for d in dependents)
        else:
            task_times.latest_finish = project_duration
        task_times.latest_start = task_times.latest_finish - durations[tid]


def compute_schedule(
    tasks: Sequence[TaskRecord],
    edges: Sequence[DependencyEdge],
) -> CriticalPathResult:
    """Run the full CPM calculation on a graph snapshot.

    Raises UnknownTaskError for edges that reference missing tasks and
    InconsistentGraphStateError if the snapshot contains a cycle.
    """
    adjacency = build_adjacency((t.id for t in tasks), edges)
    durations = {t.id: t.duration for t in tasks}

    order = topological_sort(adjacency)
    times = forward_pass(order, durations, adjacency)
    project_duration = max((t.earliest_finish for t in times.values()), default=0)
    backward_pass(order, durations, adjacency, times, project_duration)

    critical_path = [tid for tid in order if times[tid].is_critical]
    logger.debug(
        "Computed schedule for %d tasks: project duration %d, %d critical",
        len(order),
        project_duration,
        len(critical_path),
    )
    return CriticalPathResult(
        adjacency=adjacency,
        order=order,
        times=times,
        critical_path=critical_path,
        project_duration=project_duration,
    )


def _task_schedule(times: TaskTimes, reference: datetime, unit_hours: int) -> TaskSchedule:
    return TaskSchedule(
        earliest_start=times.earliest_start,
        earliest_finish=times.earliest_finish,
        latest_start=times.latest_start,
        latest_finish=times.latest_finish,
        slack=times.slack,
        is_critical=times.is_critical,
        earliest_start_at=offset_to_datetime(reference, times.earliest_start, unit_hours),
        earliest_finish_at=offset_to_datetime(reference, times.earliest_finish, unit_hours),
        latest_start_at=offset_to_datetime(reference, times.latest_start, unit_hours),
        latest_finish_at=offset_to_datetime(reference, times.latest_finish, unit_hours),
    )


def build_schedule_response(
    tasks: Sequence[TaskRecord],
    result: CriticalPathResult,
    reference: datetime,
    unit_hours: int = 24,
) -> ScheduleResponse:
    """Combine task records with their CPM offsets and anchored timestamps.

    Tasks keep snapshot order.
    """
    responses = [
        TaskResponse(
            id=task.id,
            title=task.title,
            duration=task.duration,
            due_date=task.due_date,
            dependencies=list(result.adjacency.dependencies_of[task.id]),
            dependents=list(result.adjacency.dependents_of[task.id]),
            schedule=_task_schedule(result.times[task.id], reference, unit_hours),
        )
        for task in tasks
    ]
    return ScheduleResponse(
        tasks=responses,
        critical_path=list(result.critical_path),
        project_duration=result.project_duration,
        reference_start=reference,
    )
