"""Task graph scheduling for the orchestrator.

DAG data model, static routing, payload enrichment and the round-based
execution engine.
"""

from orchestrator.scheduling.task_graph import (
    OrchestratorTask,
    TaskGraph,
    TaskStatus,
    create_task_graph,
    find_cycle,
    get_blocked_tasks,
    get_dependency_results,
    get_downstream,
    get_runnable_tasks,
    get_task,
    graph_stats,
    has_graph_failed,
    is_graph_complete,
    update_task_status,
)
from orchestrator.scheduling.route_planner import (
    ROUTE_TABLE,
    RoutePlanner,
    RouteTarget,
    plan_route,
)
from orchestrator.scheduling.payload_enricher import (
    Binding,
    PayloadEnricher,
    enrich_payload,
)
from orchestrator.scheduling.execution_engine import (
    ExecutionEngine,
    ExecutionReport,
    TerminationReason,
)

__all__ = [
    "OrchestratorTask",
    "TaskGraph",
    "TaskStatus",
    "create_task_graph",
    "find_cycle",
    "get_blocked_tasks",
    "get_dependency_results",
    "get_downstream",
    "get_runnable_tasks",
    "get_task",
    "graph_stats",
    "has_graph_failed",
    "is_graph_complete",
    "update_task_status",
    "ROUTE_TABLE",
    "RoutePlanner",
    "RouteTarget",
    "plan_route",
    "Binding",
    "PayloadEnricher",
    "enrich_payload",
    "ExecutionEngine",
    "ExecutionReport",
    "TerminationReason",
]
