"""Static task-type → service routing.

The dispatch table is plain data, frozen at import time.  ``RoutePlanner``
joins a route's path with the owning service's base URL; base URLs can be
overridden from settings when the planner is built, never at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from orchestrator.exceptions import ConfigurationError, UnknownTaskTypeError


@dataclass(frozen=True)
class RouteTarget:
    """Resolved dispatch target for one task."""

    service: str
    method: str  # "GET" | "POST"
    endpoint: str  # absolute URL


@dataclass(frozen=True)
class RouteSpec:
    """One row of the dispatch table."""

    service: str
    method: str
    path: str


DEFAULT_SERVICE_BASE_URLS: Mapping[str, str] = MappingProxyType({
    "codex-social": "http://localhost:4800",
    "codex-video": "http://localhost:5000",
    "codex-mac-optimizer": "http://localhost:4700",
    "codex-knowledge-v2": "http://localhost:4500",
    "codex-monetization": "http://localhost:4850",
    "codex-diagnostics": "http://localhost:4200",
    "codex-hands": "http://localhost:4300",
    "codex-vision": "http://localhost:4600",
    "codex-voice": "http://localhost:4750",
})

_ROUTES: Tuple[Tuple[Tuple[str, ...], RouteSpec], ...] = (
    # Social media
    (("social_post", "post_video"), RouteSpec("codex-social", "POST", "/social/upload")),
    (("social_plan", "plan_content"), RouteSpec("codex-social", "POST", "/social/plan")),
    (("social_caption", "generate_caption"), RouteSpec("codex-social", "POST", "/social/generateCaption")),
    (("social_trends",), RouteSpec("codex-social", "GET", "/social/trends")),
    # Video
    (("generate_video", "create_video"), RouteSpec("codex-video", "POST", "/video/generate")),
    # Mac optimization
    (("optimize_mac", "system_optimize"), RouteSpec("codex-mac-optimizer", "POST", "/optimize/run")),
    # Research and knowledge
    (("research", "knowledge_query"), RouteSpec("codex-knowledge-v2", "POST", "/research/run")),
    # Monetization
    (("summarize_revenue", "get_revenue"), RouteSpec("codex-monetization", "GET", "/monetization/summary")),
    (("record_revenue",), RouteSpec("codex-monetization", "POST", "/monetization/recordRevenue")),
    # Diagnostics
    (("diagnostics", "health_check"), RouteSpec("codex-diagnostics", "POST", "/orchestrator/diagnostics")),
    # Browser automation
    (("hands_task", "browser_automation"), RouteSpec("codex-hands", "POST", "/hands/executeTask")),
    # Vision
    (("vision_analyze", "image_analysis"), RouteSpec("codex-vision", "POST", "/vision/analyze")),
    # Voice
    (("voice_tts", "text_to_speech"), RouteSpec("codex-voice", "POST", "/voice/tts")),
    (("voice_stt", "speech_to_text"), RouteSpec("codex-voice", "POST", "/voice/stt")),
)

ROUTE_TABLE: Mapping[str, RouteSpec] = MappingProxyType({
    task_type: spec for aliases, spec in _ROUTES for task_type in aliases
})


class RoutePlanner:
    """Pure lookup from task type to ``RouteTarget``."""

    def __init__(self, base_urls: Optional[Mapping[str, str]] = None) -> None:
        merged = dict(DEFAULT_SERVICE_BASE_URLS)
        if base_urls:
            unknown = sorted(set(base_urls) - set(DEFAULT_SERVICE_BASE_URLS))
            if unknown:
                raise ConfigurationError(
                    f"Base URL override for unknown service(s): {', '.join(unknown)}",
                    details={"services": unknown},
                )
            merged.update(base_urls)
        self._base_urls: Mapping[str, str] = MappingProxyType(
            {name: url.rstrip("/") for name, url in merged.items()}
        )

    def plan_route(self, task) -> RouteTarget:
        """Resolve the dispatch target for *task*.

        Raises:
            UnknownTaskTypeError: if the type (case-insensitive) is not in
                the table.  There is no default route.
        """
        spec = ROUTE_TABLE.get(str(task.type).lower())
        if spec is None:
            raise UnknownTaskTypeError(task.type)
        return RouteTarget(
            service=spec.service,
            method=spec.method,
            endpoint=self._base_urls[spec.service] + spec.path,
        )

    @staticmethod
    def known_task_types() -> List[str]:
        return sorted(ROUTE_TABLE)

    def routes(self) -> Dict[str, RouteTarget]:
        """The full table as resolved targets, keyed by task type."""
        return {
            task_type: RouteTarget(spec.service, spec.method, self._base_urls[spec.service] + spec.path)
            for task_type, spec in ROUTE_TABLE.items()
        }


_default_planner = RoutePlanner()


def plan_route(task) -> RouteTarget:
    """Route *task* using the default base URLs."""
    return _default_planner.plan_route(task)
