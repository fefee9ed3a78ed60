"""Codex orchestrator — task graph execution engine."""

__version__ = "2.0.0"
