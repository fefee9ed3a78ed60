"""Interface for storing task graphs between API calls.

Graphs are scoped by session id.  Can be in-memory, Redis, SQL or other
backends.
"""

from typing import List, Optional, Protocol

from orchestrator.scheduling.task_graph import TaskGraph


class IGraphRepository(Protocol):
    """Interface for task graph persistence."""

    async def save(self, session_id: str, graph: TaskGraph) -> None:
        """Store or replace a graph.

        Args:
            session_id: Owning session
            graph: Graph to store (stored as a snapshot)
        """
        ...

    async def get(self, session_id: str, graph_id: str) -> Optional[TaskGraph]:
        """Retrieve a graph.

        Returns:
            The stored graph or None if not found
        """
        ...

    async def list(self, session_id: str) -> List[str]:
        """List graph ids stored for a session."""
        ...

    async def delete(self, session_id: str, graph_id: str) -> bool:
        """Delete a graph.

        Returns:
            True if a graph was removed
        """
        ...
