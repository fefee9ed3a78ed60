"""In-memory graph repository.

Keeps graphs per session in process memory.  Graphs are stored and returned
as deep copies so a caller mutating its copy (e.g. an execution in progress)
never changes the stored snapshot behind the repository's back.
"""

import asyncio
import copy
import logging
from typing import Dict, List, Optional

from orchestrator.scheduling.task_graph import TaskGraph

logger = logging.getLogger(__name__)


class InMemoryGraphRepository:
    """Session-scoped graph store implementing ``IGraphRepository``."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, TaskGraph]] = {}
        self._lock = asyncio.Lock()

    async def save(self, session_id: str, graph: TaskGraph) -> None:
        snapshot = copy.deepcopy(graph)
        snapshot.in_use = False
        async with self._lock:
            self._sessions.setdefault(session_id, {})[graph.id] = snapshot
        logger.debug("Stored graph %s for session %s", graph.id, session_id)

    async def get(self, session_id: str, graph_id: str) -> Optional[TaskGraph]:
        async with self._lock:
            graph = self._sessions.get(session_id, {}).get(graph_id)
            return copy.deepcopy(graph) if graph is not None else None

    async def list(self, session_id: str) -> List[str]:
        async with self._lock:
            return list(self._sessions.get(session_id, {}))

    async def delete(self, session_id: str, graph_id: str) -> bool:
        async with self._lock:
            graphs = self._sessions.get(session_id, {})
            removed = graphs.pop(graph_id, None) is not None
            if not graphs:
                self._sessions.pop(session_id, None)
            return removed

    async def sessions(self) -> List[str]:
        """All session ids with at least one stored graph."""
        async with self._lock:
            return list(self._sessions)
