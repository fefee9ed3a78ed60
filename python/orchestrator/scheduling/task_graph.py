"""Task graph data model and operations.

Standalone module — no I/O, no dependencies on the engine.  Pure Python.

Provides:
- Graph construction with id uniqueness and dangling-dependency validation
- Runnable-task queries (every dependency ``done``)
- Monotonic status updates (no cascading — that is the engine's job)
- Dependency-result lookup for payload enrichment
- Downstream BFS, blocked-task report, Kahn's cycle check
- Serialisation for persistence and the API (to_dict / from_dict)
"""

from __future__ import annotations

import copy
import logging
import random
import string
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from orchestrator.exceptions import (
    DanglingDependencyError,
    DuplicateTaskError,
    InvalidTransitionError,
    TaskNotFoundError,
)

logger = logging.getLogger(__name__)


# ── Enums / value objects ────────────────────────────────────────────


class TaskStatus(str, Enum):
    """Lifecycle states of an orchestrator task."""

    PENDING = "pending"  # waiting to be dispatched
    RUNNING = "running"  # dispatched in the current round
    DONE = "done"  # finished successfully, ``result`` set
    FAILED = "failed"  # finished with error, ``error`` set


TERMINAL_STATUSES = frozenset({TaskStatus.DONE, TaskStatus.FAILED})

# pending → failed is reserved for tasks blocked by a failed ancestor
_ALLOWED_TRANSITIONS: Dict[TaskStatus, frozenset] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.DONE, TaskStatus.FAILED}),
    TaskStatus.DONE: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _new_graph_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"graph_{int(time.time() * 1000)}_{suffix}"


@dataclass
class OrchestratorTask:
    """One node of the task graph."""

    id: str
    type: str
    depends_on: List[str] = field(default_factory=list)
    payload: Dict[str, Any] = field(default_factory=dict)
    status: TaskStatus = TaskStatus.PENDING
    result: Any = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "status": self.status.value,
            "dependsOn": list(self.depends_on),
            "payload": copy.deepcopy(self.payload),
        }
        if self.status == TaskStatus.DONE:
            data["result"] = self.result
        if self.status == TaskStatus.FAILED:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> "OrchestratorTask":
        """Build a task from its wire form, filling planner omissions."""
        depends_on = data.get("dependsOn", data.get("depends_on")) or []
        status = data.get("status") or TaskStatus.PENDING
        return cls(
            id=str(data.get("id") or f"t{index + 1}"),
            type=str(data.get("type") or "unknown"),
            depends_on=[str(d) for d in depends_on],
            payload=dict(data.get("payload") or {}),
            status=TaskStatus(status),
            result=data.get("result"),
            error=data.get("error"),
        )


@dataclass
class TaskGraph:
    """A DAG of orchestrator tasks, owned by one execution at a time."""

    id: str
    tasks: List[OrchestratorTask]
    created_at: str
    updated_at: str
    # Set by the execution engine while it owns the graph
    in_use: bool = field(default=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        """Enforce unique ids, resolvable dependencies and binding refs.

        Raises:
            DuplicateTaskError: if two tasks share an id.
            DanglingDependencyError: if a task depends on an id not in the graph.
            PayloadBindingError: if an explicit binding references a task that
                is not among the owning task's dependencies.
        """
        from orchestrator.scheduling.payload_enricher import validate_bindings

        self._index: Dict[str, OrchestratorTask] = {}
        for task in self.tasks:
            if task.id in self._index:
                raise DuplicateTaskError(task.id)
            self._index[task.id] = task

        for task in self.tasks:
            missing = [d for d in task.depends_on if d not in self._index]
            if missing:
                raise DanglingDependencyError(task.id, missing)
            validate_bindings(task)

    def task_ids(self) -> List[str]:
        return [t.id for t in self.tasks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tasks": [t.to_dict() for t in self.tasks],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskGraph":
        """Reconstruct a graph from persisted state (validated)."""
        return create_task_graph(
            data.get("tasks", []),
            graph_id=data.get("id"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


TaskLike = Union[OrchestratorTask, Mapping[str, Any]]


# ── Construction ─────────────────────────────────────────────────────


def create_task_graph(
    tasks: Iterable[TaskLike],
    graph_id: Optional[str] = None,
    created_at: Optional[str] = None,
    updated_at: Optional[str] = None,
) -> TaskGraph:
    """Create a graph from task objects or their wire dicts.

    Task objects are copied; validation happens in ``TaskGraph``.
    """
    normalized: List[OrchestratorTask] = []
    for idx, raw in enumerate(tasks):
        if isinstance(raw, OrchestratorTask):
            normalized.append(copy.deepcopy(raw))
        else:
            normalized.append(OrchestratorTask.from_dict(raw, index=idx))

    now = _utc_now()
    graph = TaskGraph(
        id=graph_id or _new_graph_id(),
        tasks=normalized,
        created_at=created_at or now,
        updated_at=updated_at or created_at or now,
    )
    logger.debug("Created graph %s with %d tasks", graph.id, len(normalized))
    return graph


# ── Queries ──────────────────────────────────────────────────────────


def get_task(graph: TaskGraph, task_id: str) -> Optional[OrchestratorTask]:
    """Return the task with *task_id*, or ``None``."""
    return graph._index.get(task_id)


def get_runnable_tasks(graph: TaskGraph) -> List[OrchestratorTask]:
    """Pending tasks whose every dependency is ``done``.

    Order carries no priority; graph order is returned for determinism.
    """
    done = {t.id for t in graph.tasks if t.status == TaskStatus.DONE}
    return [
        t for t in graph.tasks
        if t.status == TaskStatus.PENDING and all(d in done for d in t.depends_on)
    ]


def is_graph_complete(graph: TaskGraph) -> bool:
    """True iff no task is pending or running."""
    return all(t.is_terminal for t in graph.tasks)


def has_graph_failed(graph: TaskGraph) -> bool:
    """True if any task has failed."""
    return any(t.status == TaskStatus.FAILED for t in graph.tasks)


def get_dependency_results(graph: TaskGraph, task_ids: Iterable[str]) -> Dict[str, Any]:
    """Results of the named ``done`` tasks, JSON ``null`` included.

    Unfinished or failed tasks contribute nothing.
    """
    results: Dict[str, Any] = {}
    for tid in task_ids:
        task = graph._index.get(tid)
        if task is not None and task.status == TaskStatus.DONE:
            results[tid] = task.result
    return results


def get_blocked_tasks(graph: TaskGraph) -> Dict[str, Set[str]]:
    """Pending tasks mapped to their dependencies that are not ``done``."""
    blocked: Dict[str, Set[str]] = {}
    for task in graph.tasks:
        if task.status != TaskStatus.PENDING:
            continue
        waiting = {
            d for d in task.depends_on
            if graph._index[d].status != TaskStatus.DONE
        }
        if waiting:
            blocked[task.id] = waiting
    return blocked


def get_downstream(graph: TaskGraph, task_id: str) -> List[str]:
    """BFS over reverse edges: every transitive dependent of *task_id*."""
    dependents: Dict[str, List[str]] = {t.id: [] for t in graph.tasks}
    for task in graph.tasks:
        for dep in task.depends_on:
            dependents[dep].append(task.id)

    result: List[str] = []
    visited: Set[str] = {task_id}
    queue: deque[str] = deque(dependents.get(task_id, []))
    while queue:
        nid = queue.popleft()
        if nid in visited:
            continue
        visited.add(nid)
        result.append(nid)
        queue.extend(dependents[nid])
    return result


def find_cycle(graph: TaskGraph) -> Optional[List[str]]:
    """Kahn's algorithm.  Returns the ids left with unresolved in-degree
    (cycle members and anything downstream of them), else ``None``."""
    in_degree: Dict[str, int] = {t.id: len(set(t.depends_on)) for t in graph.tasks}
    dependents: Dict[str, List[str]] = {t.id: [] for t in graph.tasks}
    for task in graph.tasks:
        for dep in set(task.depends_on):
            dependents[dep].append(task.id)

    queue: deque[str] = deque(tid for tid, deg in in_degree.items() if deg == 0)
    visited = 0
    while queue:
        tid = queue.popleft()
        visited += 1
        for nid in dependents[tid]:
            in_degree[nid] -= 1
            if in_degree[nid] == 0:
                queue.append(nid)

    if visited < len(in_degree):
        return [tid for tid, deg in in_degree.items() if deg > 0]
    return None


def graph_stats(graph: TaskGraph) -> Dict[str, int]:
    """Counts by status plus the total."""
    counts: Dict[str, int] = {"total": len(graph.tasks)}
    counts.update({s.value: 0 for s in TaskStatus})
    for task in graph.tasks:
        counts[task.status.value] += 1
    return counts


# ── Mutation ─────────────────────────────────────────────────────────


def update_task_status(
    graph: TaskGraph,
    task_id: str,
    status: TaskStatus,
    result: Any = None,
    error: Optional[str] = None,
) -> TaskGraph:
    """Set one task's status and refresh ``updated_at``.

    ``done`` keeps *result* and clears ``error``; ``failed`` keeps *error*
    and clears ``result``.  No other task is touched.

    Raises:
        TaskNotFoundError: if *task_id* is not in the graph.
        InvalidTransitionError: if the move breaks the monotonic lifecycle.
    """
    task = graph._index.get(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    status = TaskStatus(status)
    if status not in _ALLOWED_TRANSITIONS[task.status]:
        raise InvalidTransitionError(task_id, task.status.value, status.value)

    task.status = status
    if status == TaskStatus.DONE:
        task.result = result
        task.error = None
    elif status == TaskStatus.FAILED:
        task.result = None
        task.error = error or "Unknown error"
    graph.updated_at = _utc_now()
    return graph
