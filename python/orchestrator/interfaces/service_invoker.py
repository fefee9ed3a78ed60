"""Interface for dispatching a task payload to a remote service.

The engine only needs ``invoke``; tests substitute in-process fakes.
"""

from typing import Any, Dict, Protocol

from orchestrator.scheduling.route_planner import RouteTarget


class IServiceInvoker(Protocol):
    """Transport used by the execution engine."""

    async def invoke(self, route: RouteTarget, payload: Dict[str, Any]) -> Any:
        """Send payload to the route's endpoint.

        Args:
            route: Resolved service, method and URL
            payload: Enriched JSON payload

        Returns:
            Decoded JSON response body

        Raises:
            OrchestratorException subclasses on HTTP or network failure
        """
        ...
