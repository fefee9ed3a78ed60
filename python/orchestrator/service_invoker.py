"""
Service invoker — dispatches enriched task payloads to collaborator services.

GET routes carry the payload as a query string, POST routes as a JSON body.
Any non-2xx answer becomes a ``ServiceInvocationError`` carrying the status
and response text; a 2xx JSON body is returned verbatim as the task result.

Execution modes:
- live:       perform the HTTP call
- dry_run:    return the request that would have been sent, no I/O
- simulation: return a simulated marker, no I/O
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import aiohttp

from orchestrator.enhanced_logging import track_performance
from orchestrator.exceptions import (
    ServiceInvocationError,
    ServiceTimeoutError,
    ServiceUnavailableError,
)
from orchestrator.middleware.request_id import REQUEST_ID_HEADER, get_request_id
from orchestrator.scheduling.route_planner import RouteTarget

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ExecutionMode(str, Enum):
    LIVE = "live"
    DRY_RUN = "dry_run"
    SIMULATION = "simulation"


def encode_query(payload: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten a payload into query parameters.

    Nested values are JSON-encoded, booleans lower-cased, ``None`` dropped.
    """
    params: Dict[str, str] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            params[key] = json.dumps(value, separators=(",", ":"))
        else:
            params[key] = str(value)
    return params


class ServiceInvoker:
    """Async HTTP client shared by every task dispatch of an engine."""

    def __init__(
        self,
        mode: ExecutionMode = ExecutionMode.LIVE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.mode = ExecutionMode(mode)
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ServiceInvoker":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @track_performance(operation="service_invoke", context=lambda self, route, payload: route.endpoint)
    async def invoke(self, route: RouteTarget, payload: Dict[str, Any]) -> Any:
        """Send *payload* to *route* and return the decoded JSON body.

        Raises:
            ServiceInvocationError: non-2xx status or undecodable body.
            ServiceTimeoutError: the call exceeded ``timeout``.
            ServiceUnavailableError: the service could not be reached.
        """
        if self.mode == ExecutionMode.SIMULATION:
            return {"simulated": True, "service": route.service, "endpoint": route.endpoint}
        if self.mode == ExecutionMode.DRY_RUN:
            return {
                "dryRun": True,
                "service": route.service,
                "method": route.method,
                "endpoint": route.endpoint,
                "payload": payload,
            }

        session = await self._get_session()
        headers = {}
        request_id = get_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id

        try:
            if route.method == "GET":
                request = session.get(route.endpoint, params=encode_query(payload), headers=headers)
            else:
                request = session.post(route.endpoint, json=payload, headers=headers)

            async with request as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    logger.warning(
                        "%s %s answered %s", route.method, route.endpoint, resp.status
                    )
                    raise ServiceInvocationError(resp.status, body, url=route.endpoint)
                try:
                    return await resp.json(content_type=None)
                except ValueError:
                    body = await resp.text()
                    raise ServiceInvocationError(
                        resp.status, f"invalid JSON body: {body[:200]}", url=route.endpoint
                    )
        except asyncio.TimeoutError:
            raise ServiceTimeoutError(
                f"{route.service} did not answer within {self.timeout}s",
                details={"endpoint": route.endpoint},
            )
        except aiohttp.ClientError as e:
            raise ServiceUnavailableError(
                f"Service call failed: {e}",
                details={"endpoint": route.endpoint},
            )
