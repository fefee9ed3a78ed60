"""
Orchestrator error hierarchy.

Every error raised by the task graph engine derives from
``OrchestratorException`` and carries:
- a category and severity for classification
- the HTTP status the API layer should answer with
- an ``ErrorContext`` with a unique id for log correlation

Per-task failures (routing, payload binding, service calls) are caught by the
execution engine and recorded on the task as plain strings; only programming
and validation errors cross the engine boundary.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================================
# Enums
# ============================================================================

class ErrorSeverity(Enum):
    """Error severity levels."""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorCategory(Enum):
    """Error categories for classification and routing."""
    VALIDATION = "validation"   # Graph or payload failed validation
    ROUTING = "routing"         # No dispatch target for a task type
    NOT_FOUND = "not_found"     # Unknown graph or task
    CONFLICT = "conflict"       # Graph already executing
    TIMEOUT = "timeout"         # Call or round deadline exceeded
    NETWORK = "network"         # Connection failure
    EXTERNAL = "external"       # Collaborator answered with an error
    INTERNAL = "internal"


# ============================================================================
# Error context
# ============================================================================

@dataclass
class ErrorContext:
    """Error metadata with a unique id."""
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.INTERNAL
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    http_status: int = 500

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
            "http_status": self.http_status,
        }

    def to_api_response(self) -> Dict[str, Any]:
        """Convert to the API error envelope."""
        return {
            "ok": False,
            "error": self.category.value,
            "message": self.message,
            "error_id": self.error_id,
            "details": self.details,
        }


# ============================================================================
# Base exception
# ============================================================================

class OrchestratorException(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        http_status: int = 500,
    ):
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.http_status = http_status
        self.context = ErrorContext(
            severity=severity,
            category=category,
            message=message,
            details=self.details,
            http_status=http_status,
        )
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()

    def to_api_response(self) -> Dict[str, Any]:
        return self.context.to_api_response()


# ============================================================================
# Validation errors
# ============================================================================

class GraphValidationError(OrchestratorException):
    """Task graph failed construction-time validation."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        kwargs.setdefault("severity", ErrorSeverity.WARNING)
        kwargs.setdefault("http_status", 400)
        super().__init__(message, **kwargs)


class DuplicateTaskError(GraphValidationError):
    """Two tasks in one graph share an id."""
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Duplicate task id {task_id!r}", details={"task_id": task_id})


class DanglingDependencyError(GraphValidationError):
    """A task depends on an id that is not in the graph."""
    def __init__(self, task_id: str, missing: List[str]):
        self.task_id = task_id
        self.missing = missing
        super().__init__(
            f"Task {task_id!r} depends on unknown task(s): {', '.join(missing)}",
            details={"task_id": task_id, "missing": missing},
        )


class PayloadBindingError(GraphValidationError):
    """A payload placeholder or binding cannot be resolved."""
    pass


class InvalidTransitionError(GraphValidationError):
    """A task status change would violate the monotonic lifecycle."""
    def __init__(self, task_id: str, current: str, target: str):
        self.task_id = task_id
        super().__init__(
            f"Cannot move task {task_id!r} from {current} to {target}",
            details={"task_id": task_id, "from": current, "to": target},
        )


class ConfigurationError(OrchestratorException):
    """Configuration value is invalid."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)


# ============================================================================
# Lookup & ownership errors
# ============================================================================

class TaskNotFoundError(OrchestratorException):
    """No task with the given id in the graph."""
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            f"Task {task_id!r} not found",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.WARNING,
            details={"task_id": task_id},
            http_status=404,
        )


class GraphNotFoundError(OrchestratorException):
    """No stored graph with the given id."""
    def __init__(self, graph_id: str):
        self.graph_id = graph_id
        super().__init__(
            f"No graph found with ID {graph_id}",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.WARNING,
            details={"graph_id": graph_id},
            http_status=404,
        )


class GraphInUseError(OrchestratorException):
    """The graph is already owned by a running execution."""
    def __init__(self, graph_id: str):
        self.graph_id = graph_id
        super().__init__(
            f"Graph {graph_id} is already being executed",
            category=ErrorCategory.CONFLICT,
            details={"graph_id": graph_id},
            http_status=409,
        )


# ============================================================================
# Routing & invocation errors
# ============================================================================

class TaskRoutingError(OrchestratorException):
    """Base routing error."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.ROUTING)
        kwargs.setdefault("http_status", 422)
        super().__init__(message, **kwargs)


class UnknownTaskTypeError(TaskRoutingError):
    """No route exists for the task type."""
    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(
            f"Unknown task type: {task_type}. Cannot plan route.",
            details={"task_type": task_type},
        )


class ServiceInvocationError(OrchestratorException):
    """A collaborator answered with a non-2xx status."""
    def __init__(self, status_code: int, body: str, url: str = ""):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(
            f"HTTP {status_code}: {body}",
            category=ErrorCategory.EXTERNAL,
            details={"status_code": status_code, "url": url},
            http_status=502,
        )


class ServiceUnavailableError(OrchestratorException):
    """The collaborator could not be reached."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.NETWORK)
        kwargs.setdefault("http_status", 503)
        super().__init__(message, **kwargs)


class ServiceTimeoutError(OrchestratorException):
    """A call or round exceeded its deadline."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.TIMEOUT)
        kwargs.setdefault("http_status", 504)
        super().__init__(message, **kwargs)


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "OrchestratorException",
    "GraphValidationError",
    "DuplicateTaskError",
    "DanglingDependencyError",
    "PayloadBindingError",
    "InvalidTransitionError",
    "ConfigurationError",
    "TaskNotFoundError",
    "GraphNotFoundError",
    "GraphInUseError",
    "TaskRoutingError",
    "UnknownTaskTypeError",
    "ServiceInvocationError",
    "ServiceUnavailableError",
    "ServiceTimeoutError",
]
