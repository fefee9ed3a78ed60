"""Payload enrichment from dependency results.

Two placeholder forms are resolved before a task is dispatched:

- Suffix placeholders: ``{"videoFromTask": ..., "videoTaskId": "t1"}``
  binds ``video`` from task ``t1``'s result (the first dependency when the
  ``...TaskId`` companion is absent).  Both keys are removed.
- Explicit bindings: ``{"video": {"ref": {"taskId": "t1", "field": "video"}}}``
  binds ``video`` in place.  Omitting ``field`` binds the whole result.

Unresolvable placeholders raise ``PayloadBindingError``; the engine records
that as the task's failure.  The full dependency-result map is attached under
``dependencyResults`` unless the payload already carries that key.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from orchestrator.exceptions import PayloadBindingError

logger = logging.getLogger(__name__)

FROM_TASK_SUFFIX = "FromTask"
TASK_ID_SUFFIX = "TaskId"
DEPENDENCY_RESULTS_KEY = "dependencyResults"


class BindingRef(BaseModel):
    """Target of an explicit binding."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    task_id: str = Field(alias="taskId", min_length=1)
    field: Optional[str] = None


class Binding(BaseModel):
    """``{"ref": {"taskId": ..., "field": ...}}`` payload value."""

    model_config = ConfigDict(extra="forbid")

    ref: BindingRef


def parse_binding(value: Any) -> Optional[Binding]:
    """Return a ``Binding`` if *value* is shaped like one, else ``None``.

    A dict whose only key is ``ref`` but whose content is malformed raises
    ``PayloadBindingError`` rather than being passed through silently.
    """
    if not isinstance(value, dict) or set(value) != {"ref"}:
        return None
    try:
        return Binding.model_validate(value)
    except ValidationError as e:
        raise PayloadBindingError(
            f"Malformed binding {value!r}: {e.errors()[0]['msg']}",
            details={"binding": value},
        )


def _iter_bindings(payload: Mapping[str, Any]) -> Iterator[Tuple[str, Binding]]:
    for key, value in payload.items():
        binding = parse_binding(value)
        if binding is not None:
            yield key, binding


def validate_bindings(task) -> None:
    """Construction-time check: explicit bindings must reference a dependency."""
    for key, binding in _iter_bindings(task.payload):
        if binding.ref.task_id not in task.depends_on:
            raise PayloadBindingError(
                f"Task {task.id!r} binds {key!r} to {binding.ref.task_id!r}, "
                "which is not one of its dependencies",
                details={"task_id": task.id, "key": key, "ref": binding.ref.task_id},
            )


def _lookup(
    task_id: str,
    key: str,
    source_id: Optional[str],
    field_name: Optional[str],
    dependency_results: Mapping[str, Any],
) -> Any:
    if source_id is None or source_id not in dependency_results:
        raise PayloadBindingError(
            f"Task {task_id!r}: no result from dependency {source_id!r} to bind {key!r}",
            details={"task_id": task_id, "key": key, "source": source_id},
        )
    result = dependency_results[source_id]
    if field_name is None:
        return copy.deepcopy(result)
    if not isinstance(result, Mapping) or field_name not in result:
        raise PayloadBindingError(
            f"Task {task_id!r}: result of {source_id!r} has no field {field_name!r}",
            details={"task_id": task_id, "key": key, "source": source_id, "field": field_name},
        )
    return copy.deepcopy(result[field_name])


def enrich_payload(task, dependency_results: Mapping[str, Any]) -> Dict[str, Any]:
    """Resolve placeholders in a copy of ``task.payload``.

    Raises:
        PayloadBindingError: if a placeholder's dependency result or field
            is missing.
    """
    payload: Dict[str, Any] = copy.deepcopy(task.payload)

    for key in [k for k in payload if k.endswith(FROM_TASK_SUFFIX) and k != FROM_TASK_SUFFIX]:
        field_name = key[: -len(FROM_TASK_SUFFIX)]
        id_key = field_name + TASK_ID_SUFFIX
        source_id = payload.get(id_key)
        if source_id is None and task.depends_on:
            source_id = task.depends_on[0]
        payload[field_name] = _lookup(task.id, key, source_id, field_name, dependency_results)
        payload.pop(key, None)
        payload.pop(id_key, None)
        logger.debug("Task %s: bound %s from %s", task.id, field_name, source_id)

    for key, binding in list(_iter_bindings(payload)):
        payload[key] = _lookup(
            task.id, key, binding.ref.task_id, binding.ref.field, dependency_results
        )
        logger.debug("Task %s: bound %s from %s", task.id, key, binding.ref.task_id)

    if dependency_results and DEPENDENCY_RESULTS_KEY not in payload:
        payload[DEPENDENCY_RESULTS_KEY] = copy.deepcopy(dict(dependency_results))

    return payload


class PayloadEnricher:
    """Injectable wrapper around ``enrich_payload``."""

    def enrich(self, task, dependency_results: Mapping[str, Any]) -> Dict[str, Any]:
        return enrich_payload(task, dependency_results)
