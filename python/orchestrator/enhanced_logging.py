"""Logging helpers for the orchestrator.

Provides configure_logging and track_performance.  Delegates to
Python's standard logging library.
"""

import asyncio
import functools
import json
import logging
import time
from typing import Any, Callable, Optional

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Install a single stream handler on the ``orchestrator`` logger."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger("orchestrator")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper()))


def track_performance(
    func: Optional[Callable] = None,
    *,
    operation: str = "",
    context: Optional[Callable[..., Any]] = None,
):
    """Decorator that logs execution time of a function at debug level.

    ``context`` receives the call's arguments and returns a label (a task id,
    an endpoint) appended to the log line.  Failures are logged as
    ``failed after`` with the exception type, then re-raised.
    """
    def decorator(fn: Callable) -> Callable:
        op = operation or fn.__qualname__
        log = logging.getLogger(fn.__module__)

        def _report(args, kwargs, start: float, exc: Optional[BaseException]) -> None:
            elapsed = time.perf_counter() - start
            label = f"{op} [{context(*args, **kwargs)}]" if context else op
            if exc is None:
                log.debug("%s completed in %.3fs", label, elapsed)
            else:
                log.debug("%s failed after %.3fs: %s", label, elapsed, type(exc).__name__)

        @functools.wraps(fn)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except BaseException as e:
                _report(args, kwargs, start, e)
                raise
            _report(args, kwargs, start, None)
            return result

        @functools.wraps(fn)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = await fn(*args, **kwargs)
            except BaseException as e:
                _report(args, kwargs, start, e)
                raise
            _report(args, kwargs, start, None)
            return result

        if asyncio.iscoroutinefunction(fn):
            return async_wrapper
        return sync_wrapper

    if func is not None:
        return decorator(func)
    return decorator
