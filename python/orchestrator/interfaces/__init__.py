"""Orchestrator interface contracts (Protocol-based dependency injection)."""

from orchestrator.interfaces.graph_repository import IGraphRepository
from orchestrator.interfaces.service_invoker import IServiceInvoker

__all__ = [
    "IGraphRepository",
    "IServiceInvoker",
]
