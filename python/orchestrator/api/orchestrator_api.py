"""
Codex Orchestrator — FastAPI application entry point.

Provides REST API over the task graph engine:
- /health — service health and dispatch mode
- /orchestrator/routes — static task type → service route table
- /orchestrator/graphs — create a graph / list a session's graphs
- /orchestrator/execute — execute a stored graph
- /orchestrator/run — create and execute in one call
- /orchestrator/status — a stored graph with its status counts
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from orchestrator.di_container import get_container, shutdown_container
from orchestrator.enhanced_logging import configure_logging
from orchestrator.exceptions import (
    GraphInUseError,
    GraphNotFoundError,
    OrchestratorException,
)
from orchestrator.middleware.request_id import RequestIDMiddleware
from orchestrator.scheduling.task_graph import (
    TaskGraph,
    create_task_graph,
    get_blocked_tasks,
    graph_stats,
    has_graph_failed,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TaskSpec(BaseModel):
    id: Optional[str] = None
    type: str = Field(min_length=1)
    dependsOn: List[str] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)


class CreateGraphRequest(BaseModel):
    sessionId: str = Field(min_length=1)
    tasks: List[TaskSpec] = Field(min_length=1)


class ExecuteRequest(BaseModel):
    sessionId: str = Field(min_length=1)
    graphId: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Application lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(application: FastAPI):
    container = get_container()
    settings = container.settings
    configure_logging(settings.log_level, settings.log_format)
    logger.info(
        "%s %s starting up (mode=%s)",
        settings.app_name, settings.app_version, settings.execution_mode,
    )
    yield
    await shutdown_container()
    logger.info("Orchestrator shutting down")


app = FastAPI(
    title="Codex Orchestrator",
    version="2.0.0",
    description="Task graph execution engine",
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(OrchestratorException)
async def orchestrator_exception_handler(request: Request, exc: OrchestratorException):
    logger.warning(
        "%s %s failed: %s [%s]",
        request.method, request.url.path, exc.message, exc.context.error_id,
    )
    return JSONResponse(content=exc.to_api_response(), status_code=exc.http_status)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _graph_body(graph: TaskGraph) -> Dict[str, Any]:
    return {
        "ok": True,
        "graph": graph.to_dict(),
        "stats": graph_stats(graph),
        "failed": has_graph_failed(graph),
        "blocked": {tid: sorted(deps) for tid, deps in get_blocked_tasks(graph).items()},
    }


async def _execute_stored(session_id: str, graph: TaskGraph) -> Dict[str, Any]:
    container = get_container()
    key = (session_id, graph.id)
    if key in container.executing:
        raise GraphInUseError(graph.id)
    container.executing.add(key)
    try:
        graph, report = await container.engine.execute_with_report(graph)
        await container.repository.save(session_id, graph)
    finally:
        container.executing.discard(key)

    body = _graph_body(graph)
    body["report"] = report.to_dict()
    return body


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    """Health check — reports dispatch mode and initialized services."""
    container = get_container()
    return {
        "status": "healthy",
        "mode": container.settings.execution_mode,
        "services": container.status(),
    }


@app.get("/orchestrator/routes")
async def list_routes():
    """Route table as resolved against the configured base URLs."""
    planner = get_container().planner
    return {
        "ok": True,
        "routes": {task_type: asdict(target) for task_type, target in planner.routes().items()},
    }


@app.post("/orchestrator/graphs", status_code=201)
async def create_graph(req: CreateGraphRequest):
    """Validate and store a new task graph."""
    graph = create_task_graph(t.model_dump(exclude_none=True) for t in req.tasks)
    await get_container().repository.save(req.sessionId, graph)
    logger.info("Session %s created graph %s (%d tasks)", req.sessionId, graph.id, len(graph.tasks))
    return _graph_body(graph)


@app.get("/orchestrator/graphs")
async def list_graphs(sessionId: str):
    graph_ids = await get_container().repository.list(sessionId)
    return {"ok": True, "sessionId": sessionId, "graphIds": graph_ids}


@app.post("/orchestrator/execute")
async def execute_graph(req: ExecuteRequest):
    """Execute a stored graph and store the outcome."""
    graph = await get_container().repository.get(req.sessionId, req.graphId)
    if graph is None:
        raise GraphNotFoundError(req.graphId)
    return await _execute_stored(req.sessionId, graph)


@app.post("/orchestrator/run")
async def run_graph(req: CreateGraphRequest):
    """Create, store and execute a graph in one call."""
    graph = create_task_graph(t.model_dump(exclude_none=True) for t in req.tasks)
    await get_container().repository.save(req.sessionId, graph)
    return await _execute_stored(req.sessionId, graph)


@app.get("/orchestrator/status")
async def graph_status(sessionId: str, graphId: str):
    graph = await get_container().repository.get(sessionId, graphId)
    if graph is None:
        raise GraphNotFoundError(graphId)
    body = _graph_body(graph)
    body["executing"] = (sessionId, graphId) in get_container().executing
    return body
