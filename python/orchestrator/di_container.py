"""Dependency injection container for the orchestrator.

Lightweight wiring of core services at application startup.
Uses lazy initialization — services are created on first access.
"""

import logging
from typing import Any, Dict, Optional, Set, Tuple

from orchestrator.config.settings import Settings, get_settings
from orchestrator.interfaces.graph_repository import IGraphRepository

logger = logging.getLogger(__name__)


class OrchestratorContainer:
    """Central service container for the orchestrator."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        self._repository = None
        self._planner = None
        self._invoker = None
        self._engine = None
        # (session_id, graph_id) pairs currently being executed through the API
        self.executing: Set[Tuple[str, str]] = set()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def repository(self) -> IGraphRepository:
        if self._repository is None:
            from orchestrator.repository import InMemoryGraphRepository
            self._repository = InMemoryGraphRepository()
        return self._repository

    @property
    def planner(self):
        if self._planner is None:
            from orchestrator.scheduling.route_planner import RoutePlanner
            self._planner = RoutePlanner(base_urls=self.settings.service_base_urls)
        return self._planner

    @property
    def invoker(self):
        if self._invoker is None:
            from orchestrator.service_invoker import ServiceInvoker
            self._invoker = ServiceInvoker(
                mode=self.settings.execution_mode,
                timeout=self.settings.call_timeout,
            )
        return self._invoker

    @property
    def engine(self):
        if self._engine is None:
            from orchestrator.scheduling.execution_engine import ExecutionEngine
            s = self.settings
            self._engine = ExecutionEngine(
                invoker=self.invoker,
                planner=self.planner,
                max_iterations=s.max_iterations,
                call_timeout=s.call_timeout,
                round_timeout=s.round_timeout,
                cascade_failures=s.cascade_failures,
            )
            logger.info(
                "Execution engine ready (mode=%s, max_iterations=%d)",
                s.execution_mode, s.max_iterations,
            )
        return self._engine

    async def close(self) -> None:
        if self._invoker is not None and hasattr(self._invoker, "close"):
            await self._invoker.close()

    def status(self) -> Dict[str, Any]:
        """Report which services are initialized."""
        return {
            "repository": self._repository is not None,
            "planner": self._planner is not None,
            "invoker": self._invoker is not None,
            "engine": self._engine is not None,
        }


# Global container
_container: Optional[OrchestratorContainer] = None


def get_container() -> OrchestratorContainer:
    global _container
    if _container is None:
        _container = OrchestratorContainer()
    return _container


async def shutdown_container() -> None:
    global _container
    if _container is not None:
        await _container.close()
    _container = None
