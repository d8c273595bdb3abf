"""Task and dependency schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

TaskId = Annotated[int, Field(ge=1)]


class TaskRecord(BaseModel):
    """A task as supplied by the collaborator."""

    model_config = ConfigDict(frozen=True)

    id: TaskId
    title: str = Field(min_length=1, max_length=500)
    duration: int = Field(default=1, ge=1)
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_must_not_be_blank(cls, v: str) -> str:
        """Reject whitespace-only titles."""
        _ = cls
        if not v.strip():
            raise ValueError("Title must not be empty or whitespace-only")
        return v


class DependencyEdge(BaseModel):
    """Edge meaning ``dependent_id`` cannot start until ``dependency_id`` finishes."""

    model_config = ConfigDict(frozen=True)

    dependent_id: TaskId
    dependency_id: TaskId


class TaskCreate(BaseModel):
    """Request to create a new task. The id is assigned by the graph service."""

    title: str = Field(min_length=1, max_length=500)
    duration: int | None = Field(default=None, ge=1)
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_must_not_be_blank(cls, v: str) -> str:
        """Reject whitespace-only titles."""
        _ = cls
        if not v.strip():
            raise ValueError("Title must not be empty or whitespace-only")
        return v


class TaskSchedule(BaseModel):
    """CPM schedule fields of one task.

    Offsets are counted in duration units from the project start; the
    ``*_at`` fields are the same offsets anchored to the reference instant.
    """

    earliest_start: int = Field(ge=0)
    earliest_finish: int = Field(ge=0)
    latest_start: int = Field(ge=0)
    latest_finish: int = Field(ge=0)
    slack: int = Field(ge=0)
    is_critical: bool = False
    earliest_start_at: datetime
    earliest_finish_at: datetime
    latest_start_at: datetime
    latest_finish_at: datetime


class TaskResponse(BaseModel):
    """Task detail with its direct neighbours and schedule."""

    id: int
    title: str
    duration: int
    due_date: datetime | None = None
    dependencies: list[int] = Field(default_factory=list)
    dependents: list[int] = Field(default_factory=list)
    schedule: TaskSchedule


class ScheduleResponse(BaseModel):
    """Every task with its schedule, plus the critical path."""

    tasks: list[TaskResponse]
    critical_path: list[int] = Field(default_factory=list)
    project_duration: int = Field(default=0, ge=0)
    reference_start: datetime


class EdgeCommitResponse(BaseModel):
    """Response after a dependency edge has been committed."""

    edge: DependencyEdge
    schedule: ScheduleResponse


class TaskDependenciesResponse(BaseModel):
    """Direct dependencies and dependents of a single task."""

    task_id: int
    dependencies: list[TaskRecord] = Field(default_factory=list)
    dependents: list[TaskRecord] = Field(default_factory=list)


class GraphNode(BaseModel):
    """Node in the task DAG for visualization."""

    id: int
    title: str
    duration: int
    is_critical: bool = False


class GraphEdge(BaseModel):
    """Edge in the task DAG."""

    source: int  # dependent task id
    target: int  # dependency task id


class GraphResponse(BaseModel):
    """Full task DAG for graph visualization."""

    nodes: list[GraphNode]
    edges: list[GraphEdge]
    critical_path: list[int] = Field(default_factory=list)
