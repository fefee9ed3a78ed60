"""Tests for orchestrator.scheduling.payload_enricher."""

import pytest

from orchestrator.exceptions import PayloadBindingError
from orchestrator.scheduling.payload_enricher import (
    Binding,
    PayloadEnricher,
    enrich_payload,
    parse_binding,
)
from orchestrator.scheduling.task_graph import OrchestratorTask


def _task(payload, depends_on=("t1",)):
    return OrchestratorTask(id="t2", type="social_post", depends_on=list(depends_on), payload=payload)


# -- Suffix placeholders ---------------------------------------------------


def test_from_task_placeholder_resolved():
    task = _task({"videoFromTask": "x", "videoTaskId": "t1"})
    results = {"t1": {"video": "clip.mp4"}}

    assert enrich_payload(task, results) == {
        "video": "clip.mp4",
        "dependencyResults": {"t1": {"video": "clip.mp4"}},
    }


def test_placeholder_falls_back_to_first_dependency():
    task = _task({"captionFromTask": True}, depends_on=["t1", "t0"])
    results = {"t1": {"caption": "hello"}, "t0": {"caption": "other"}}

    payload = enrich_payload(task, results)
    assert payload["caption"] == "hello"
    assert "captionFromTask" not in payload


def test_placeholder_selects_named_dependency():
    task = _task({"topicFromTask": "x", "topicTaskId": "t0"}, depends_on=["t1", "t0"])
    results = {"t1": {"topic": "a"}, "t0": {"topic": "b"}}
    assert enrich_payload(task, results)["topic"] == "b"


def test_placeholder_missing_result_raises():
    task = _task({"videoFromTask": "x", "videoTaskId": "t1"})
    with pytest.raises(PayloadBindingError, match="no result from dependency 't1'"):
        enrich_payload(task, {})


def test_placeholder_missing_field_raises():
    task = _task({"videoFromTask": "x"})
    with pytest.raises(PayloadBindingError, match="has no field 'video'"):
        enrich_payload(task, {"t1": {"audio": "a.mp3"}})


def test_placeholder_without_dependencies_raises():
    task = _task({"videoFromTask": "x"}, depends_on=[])
    with pytest.raises(PayloadBindingError):
        enrich_payload(task, {})


def test_bare_suffix_key_is_not_a_placeholder():
    task = _task({"FromTask": 1})
    assert enrich_payload(task, {"t1": {"a": 1}})["FromTask"] == 1


# -- Explicit bindings -----------------------------------------------------


def test_binding_with_field():
    task = _task({"video": {"ref": {"taskId": "t1", "field": "video"}}, "title": "demo"})
    payload = enrich_payload(task, {"t1": {"video": "clip.mp4"}})
    assert payload["video"] == "clip.mp4"
    assert payload["title"] == "demo"


def test_binding_without_field_takes_whole_result():
    task = _task({"research": {"ref": {"taskId": "t1"}}})
    payload = enrich_payload(task, {"t1": {"summary": "s", "sources": [1, 2]}})
    assert payload["research"] == {"summary": "s", "sources": [1, 2]}


def test_binding_missing_field_raises():
    task = _task({"video": {"ref": {"taskId": "t1", "field": "video"}}})
    with pytest.raises(PayloadBindingError):
        enrich_payload(task, {"t1": "not-a-mapping"})


def test_binding_to_null_result():
    task = _task({"research": {"ref": {"taskId": "t1"}}})
    payload = enrich_payload(task, {"t1": None})
    assert payload["research"] is None
    assert payload["dependencyResults"] == {"t1": None}


def test_binding_failed_dependency_raises():
    task = _task({"video": {"ref": {"taskId": "t1", "field": "video"}}})
    with pytest.raises(PayloadBindingError, match="no result"):
        enrich_payload(task, {})


def test_parse_binding_ignores_ordinary_values():
    assert parse_binding("text") is None
    assert parse_binding({"ref": 1, "other": 2}) is None
    assert isinstance(parse_binding({"ref": {"taskId": "t1"}}), Binding)


def test_parse_binding_rejects_unknown_keys():
    with pytest.raises(PayloadBindingError):
        parse_binding({"ref": {"taskId": "t1", "column": "x"}})


# -- Dependency results ----------------------------------------------------


def test_dependency_results_not_overwritten():
    task = _task({"dependencyResults": "caller-supplied"})
    payload = enrich_payload(task, {"t1": {"a": 1}})
    assert payload["dependencyResults"] == "caller-supplied"


def test_no_dependency_results_key_without_results():
    task = _task({"q": 1}, depends_on=[])
    assert enrich_payload(task, {}) == {"q": 1}


def test_task_payload_not_mutated():
    original = {"videoFromTask": "x", "videoTaskId": "t1"}
    task = _task(dict(original))
    results = {"t1": {"video": {"path": "clip.mp4"}}}

    payload = enrich_payload(task, results)
    payload["video"]["path"] = "changed"

    assert task.payload == original
    assert results["t1"]["video"]["path"] == "clip.mp4"


def test_enricher_class_delegates():
    task = _task({"videoFromTask": "x"})
    payload = PayloadEnricher().enrich(task, {"t1": {"video": "clip.mp4"}})
    assert payload["video"] == "clip.mp4"
