"""DAG utilities for task dependency graphs.

All functions are pure: they take the task ids and dependency edges of a
snapshot and never mutate them. Traversals follow the dependent -> dependency
direction and use explicit stacks, so call depth does not grow with the
length of a dependency chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from taskgraph.exceptions import InconsistentGraphStateError, UnknownTaskError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from taskgraph.schemas.task import DependencyEdge

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass(frozen=True)
class Adjacency:
    """Forward and backward adjacency of a task graph.

    ``dependencies_of[t]`` lists the tasks ``t`` depends on and
    ``dependents_of[t]`` lists the tasks that depend on ``t``. Every task id
    of the snapshot is a key of both maps, in snapshot order.
    """

    dependencies_of: dict[int, list[int]]
    dependents_of: dict[int, list[int]]

    @property
    def task_ids(self) -> list[int]:
        return list(self.dependencies_of)


def build_adjacency(task_ids: Iterable[int], edges: Iterable[DependencyEdge]) -> Adjacency:
    """Build both adjacency maps from a flat list of tasks and edges.

    Duplicate edges collapse into a single neighbour entry.
    Raises UnknownTaskError if an edge references a task id not in task_ids.
    """
    dependencies_of: dict[int, list[int]] = {tid: [] for tid in task_ids}
    dependents_of: dict[int, list[int]] = {tid: [] for tid in dependencies_of}
    seen: set[tuple[int, int]] = set()

    for edge in edges:
        for tid in (edge.dependent_id, edge.dependency_id):
            if tid not in dependencies_of:
                raise UnknownTaskError(tid)
        key = (edge.dependent_id, edge.dependency_id)
        if key in seen:
            continue
        seen.add(key)
        dependencies_of[edge.dependent_id].append(edge.dependency_id)
        dependents_of[edge.dependency_id].append(edge.dependent_id)

    return Adjacency(dependencies_of=dependencies_of, dependents_of=dependents_of)


def _walk(
    roots: Sequence[int],
    adj: Mapping[int, Sequence[int]],
) -> tuple[list[int], tuple[int, int] | None]:
    """Three-color DFS from every root in order.

    Returns (post_order, back_edge). The walk stops at the first back-edge
    (an edge into a GRAY node); back_edge is None if the graph is acyclic.
    """
    color: dict[int, int] = dict.fromkeys(adj, WHITE)
    post_order: list[int] = []

    for start in roots:
        if color[start] != WHITE:
            continue
        # Stack entries: (node, neighbour_index). neighbour_index tracks
        # iteration progress through adj[node].
        stack: list[tuple[int, int]] = [(start, 0)]
        color[start] = GRAY
        while stack:
            node, idx = stack[-1]
            neighbours = adj[node]
            if idx < len(neighbours):
                stack[-1] = (node, idx + 1)
                neighbour = neighbours[idx]
                if color[neighbour] == GRAY:
                    return post_order, (node, neighbour)
                if color[neighbour] == WHITE:
                    color[neighbour] = GRAY
                    stack.append((neighbour, 0))
            else:
                color[node] = BLACK
                post_order.append(node)
                stack.pop()

    return post_order, None


def find_back_edge(
    task_ids: Iterable[int],
    edges: Iterable[DependencyEdge],
) -> tuple[int, int] | None:
    """Return one (dependent, dependency) edge that closes a cycle, or None.

    Every component is traversed, so a cycle anywhere in the graph is found.
    """
    adjacency = build_adjacency(task_ids, edges)
    _order, back_edge = _walk(adjacency.task_ids, adjacency.dependencies_of)
    return back_edge


def would_create_cycle(
    task_ids: Iterable[int],
    edges: Iterable[DependencyEdge],
    proposed_dependent: int,
    proposed_dependency: int,
) -> bool:
    """Check if adding proposed_dependent -> proposed_dependency would create a cycle.

    The proposed dependency is appended to a copy of the dependent's
    neighbour list; the committed edges are left untouched. The DFS starts
    from every task, not only from the proposed dependent. Self-loops are
    trivially cyclic and return True without traversal.

    Raises UnknownTaskError if either proposed id is not a task.
    """
    adjacency = build_adjacency(task_ids, edges)
    for tid in (proposed_dependent, proposed_dependency):
        if tid not in adjacency.dependencies_of:
            raise UnknownTaskError(tid)
    if proposed_dependent == proposed_dependency:
        return True

    hypothetical = dict(adjacency.dependencies_of)
    hypothetical[proposed_dependent] = [
        *adjacency.dependencies_of[proposed_dependent],
        proposed_dependency,
    ]
    _order, back_edge = _walk(adjacency.task_ids, hypothetical)
    return back_edge is not None


def topological_sort(adjacency: Adjacency) -> list[int]:
    """Return all task ids with every dependency before its dependents.

    DFS post-order over dependent -> dependency edges: a task is emitted
    only after all of its dependencies have been emitted. Order among
    unrelated tasks follows snapshot order.

    Raises InconsistentGraphStateError if the graph contains a cycle.
    """
    order, back_edge = _walk(adjacency.task_ids, adjacency.dependencies_of)
    if back_edge is not None:
        dependent, dependency = back_edge
        msg = (
            f"Committed graph contains a cycle through edge {dependent} -> {dependency}; "
            "cycle detection must run before every edge commit"
        )
        raise InconsistentGraphStateError(msg)
    return order
