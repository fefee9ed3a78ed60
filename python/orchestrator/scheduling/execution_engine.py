"""Round-based task graph execution.

Each round dispatches every runnable task concurrently and waits for all of
them to settle before the next runnable set is computed, so a task only ever
sees results from earlier rounds.  Per-task failures (routing, payload
binding, service errors, deadlines) are recorded on the task and never
abort the round.

Termination is reported, not raised:
- complete:        every task is done or failed
- stuck:           tasks remain pending but none is runnable
- max_iterations:  the round budget ran out (circuit breaker for cycles)

When ``cascade_failures`` is on, a failed task immediately fails all of its
transitive dependents with ``blocked by failed dependency <id>``; otherwise
they stay pending and the run ends stuck.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from orchestrator.enhanced_logging import track_performance
from orchestrator.exceptions import (
    GraphInUseError,
    OrchestratorException,
    ServiceTimeoutError,
    TaskRoutingError,
)
from orchestrator.interfaces.service_invoker import IServiceInvoker
from orchestrator.scheduling.payload_enricher import PayloadEnricher
from orchestrator.scheduling.route_planner import RoutePlanner
from orchestrator.scheduling.task_graph import (
    OrchestratorTask,
    TaskGraph,
    TaskStatus,
    find_cycle,
    get_dependency_results,
    get_downstream,
    get_runnable_tasks,
    get_task,
    is_graph_complete,
    update_task_status,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 100
BLOCKED_PREFIX = "blocked by failed dependency"


class TerminationReason(str, Enum):
    COMPLETE = "complete"
    STUCK = "stuck"
    MAX_ITERATIONS = "max_iterations"


@dataclass
class ExecutionReport:
    """What happened during one ``execute`` call."""

    graph_id: str
    rounds: int = 0
    reason: TerminationReason = TerminationReason.COMPLETE
    dispatched: List[List[str]] = field(default_factory=list)  # task ids per round
    cascaded: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graphId": self.graph_id,
            "rounds": self.rounds,
            "reason": self.reason.value,
            "dispatched": [list(r) for r in self.dispatched],
            "cascaded": list(self.cascaded),
            "durationMs": round(self.duration_ms, 2),
        }


Outcome = Tuple[bool, Any]  # (succeeded, result or error message)


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, OrchestratorException):
        return exc.message
    return str(exc) or type(exc).__name__


class ExecutionEngine:
    """Drives a ``TaskGraph`` to a terminal state."""

    def __init__(
        self,
        invoker: IServiceInvoker,
        planner: Optional[RoutePlanner] = None,
        enricher: Optional[PayloadEnricher] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        call_timeout: Optional[float] = None,
        round_timeout: Optional[float] = None,
        cascade_failures: bool = True,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.invoker = invoker
        self.planner = planner or RoutePlanner()
        self.enricher = enricher or PayloadEnricher()
        self.max_iterations = max_iterations
        self.call_timeout = call_timeout
        self.round_timeout = round_timeout
        self.cascade_failures = cascade_failures

    async def execute(self, graph: TaskGraph) -> TaskGraph:
        """Execute *graph* in place and return it."""
        graph, _ = await self.execute_with_report(graph)
        return graph

    async def execute_with_report(self, graph: TaskGraph) -> Tuple[TaskGraph, ExecutionReport]:
        """Execute *graph* in place; return it with an ``ExecutionReport``.

        Raises:
            GraphInUseError: if another ``execute`` call owns *graph*.
        """
        if graph.in_use:
            raise GraphInUseError(graph.id)
        graph.in_use = True
        try:
            return graph, await self._run(graph)
        finally:
            graph.in_use = False

    # ── Round loop ───────────────────────────────────────────────────

    async def _run(self, graph: TaskGraph) -> ExecutionReport:
        report = ExecutionReport(graph_id=graph.id)
        started = time.perf_counter()
        logger.info("Starting execution of graph %s with %d tasks", graph.id, len(graph.tasks))

        cycle = find_cycle(graph)
        if cycle:
            logger.warning("Graph %s has cyclic dependencies among %s", graph.id, cycle)

        stuck = False
        while not is_graph_complete(graph) and report.rounds < self.max_iterations:
            report.rounds += 1
            runnable = get_runnable_tasks(graph)
            if not runnable:
                stuck = True
                logger.warning(
                    "Graph %s: no runnable tasks in round %d, remaining tasks can never run",
                    graph.id, report.rounds,
                )
                break

            logger.info("Graph %s round %d: %d runnable tasks", graph.id, report.rounds, len(runnable))
            report.dispatched.append([t.id for t in runnable])
            for task in runnable:
                update_task_status(graph, task.id, TaskStatus.RUNNING)

            outcomes = await self._dispatch_round(graph, runnable)

            for task in runnable:
                ok, value = outcomes[task.id]
                if ok:
                    update_task_status(graph, task.id, TaskStatus.DONE, result=value)
                    logger.info("Task %s (%s) completed", task.id, task.type)
                else:
                    update_task_status(graph, task.id, TaskStatus.FAILED, error=value)
                    logger.error("Task %s (%s) failed: %s", task.id, task.type, value)
                    if self.cascade_failures:
                        report.cascaded.extend(self._cascade_failure(graph, task.id))

        if is_graph_complete(graph):
            report.reason = TerminationReason.COMPLETE
        elif stuck:
            report.reason = TerminationReason.STUCK
        else:
            report.reason = TerminationReason.MAX_ITERATIONS
            logger.error(
                "Graph %s: max iterations (%d) reached, execution incomplete",
                graph.id, self.max_iterations,
            )

        report.duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Graph %s finished after %d rounds: %s", graph.id, report.rounds, report.reason.value
        )
        return report

    async def _dispatch_round(
        self, graph: TaskGraph, runnable: List[OrchestratorTask]
    ) -> Dict[str, Outcome]:
        """Run every task of the round concurrently; collect each outcome."""
        futures = {
            task.id: asyncio.ensure_future(self._run_with_deadline(task, graph))
            for task in runnable
        }
        try:
            _, pending = await asyncio.wait(futures.values(), timeout=self.round_timeout)
        except asyncio.CancelledError:
            await self._cancel_all(futures.values())
            for task_id, fut in futures.items():
                if fut.cancelled():
                    update_task_status(graph, task_id, TaskStatus.FAILED, error="Execution cancelled")
                elif fut.exception() is not None:
                    update_task_status(
                        graph, task_id, TaskStatus.FAILED, error=_error_message(fut.exception())
                    )
                else:
                    update_task_status(graph, task_id, TaskStatus.DONE, result=fut.result())
            logger.warning("Graph %s: execution cancelled mid-round", graph.id)
            raise
        await self._cancel_all(pending)

        outcomes: Dict[str, Outcome] = {}
        for task_id, fut in futures.items():
            if fut in pending:
                outcomes[task_id] = (False, f"Round deadline of {self.round_timeout}s exceeded")
            elif fut.exception() is not None:
                outcomes[task_id] = (False, _error_message(fut.exception()))
            else:
                outcomes[task_id] = (True, fut.result())
        return outcomes

    @staticmethod
    async def _cancel_all(futures) -> None:
        unfinished = [f for f in futures if not f.done()]
        for fut in unfinished:
            fut.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)

    async def _run_with_deadline(self, task: OrchestratorTask, graph: TaskGraph) -> Any:
        if self.call_timeout is None:
            return await self._run_task(task, graph)
        try:
            return await asyncio.wait_for(self._run_task(task, graph), timeout=self.call_timeout)
        except asyncio.TimeoutError:
            raise ServiceTimeoutError(
                f"Task {task.id} exceeded call deadline of {self.call_timeout}s",
                details={"task_id": task.id},
            )

    @track_performance(operation="run_task", context=lambda self, task, graph: task.id)
    async def _run_task(self, task: OrchestratorTask, graph: TaskGraph) -> Any:
        """Route, enrich and invoke a single task."""
        logger.debug("Executing task %s (%s)", task.id, task.type)
        try:
            route = self.planner.plan_route(task)
        except TaskRoutingError as e:
            raise TaskRoutingError(f"Route planning failed: {e.message}", details=e.details)

        dependency_results = get_dependency_results(graph, task.depends_on)
        payload = self.enricher.enrich(task, dependency_results)
        return await self.invoker.invoke(route, payload)

    def _cascade_failure(self, graph: TaskGraph, failed_id: str) -> List[str]:
        """Fail every pending transitive dependent of *failed_id*."""
        cascaded: List[str] = []
        for dep_id in get_downstream(graph, failed_id):
            dependent = get_task(graph, dep_id)
            if dependent is None or dependent.status != TaskStatus.PENDING:
                continue
            update_task_status(
                graph, dep_id, TaskStatus.FAILED, error=f"{BLOCKED_PREFIX} {failed_id}"
            )
            cascaded.append(dep_id)
        if cascaded:
            logger.warning("Task %s failed; cancelled downstream %s", failed_id, cascaded)
        return cascaded
