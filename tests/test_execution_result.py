from __future__ import annotations

import pytest

from conduit.execution.result import ExecutionResult, ResultType, error_result, new_result
from conduit.text import TextLocation


def test_empty_ids_are_rejected() -> None:
    with pytest.raises(ValueError, match="ids may not be empty"):
        ExecutionResult((), ResultType.SUCCESS, "done")
    with pytest.raises(ValueError):
        new_result([], ResultType.ERROR, "boom")


def test_missing_ids_and_message_are_rejected() -> None:
    with pytest.raises(TypeError):
        ExecutionResult(None, ResultType.SUCCESS, "done")
    with pytest.raises(TypeError):
        new_result("a", ResultType.SUCCESS, None)
    with pytest.raises(TypeError):
        new_result("a", "SUCCESS-ish", "done")


def test_bare_string_ids_are_rejected() -> None:
    with pytest.raises(TypeError, match="bare string"):
        ExecutionResult("model::A", ResultType.SUCCESS, "done")
    assert new_result("model::A", ResultType.SUCCESS, "done").ids == ("model::A",)


def test_get_log_message_falls_back_to_message_only_when_asked() -> None:
    bare = new_result("a", ResultType.SUCCESS, "done")
    assert bare.get_log_message() is None
    assert bare.get_log_message(True) == "done"

    logged = new_result(["a", "b"], ResultType.FAILURE, "failed", log_message="trace")
    assert logged.get_log_message() == "trace"
    assert logged.get_log_message(True) == "trace"


def test_new_result_accepts_single_id_and_keeps_location() -> None:
    location = TextLocation.of("doc", 1, 2, 3, 4)
    result = new_result("model::A", ResultType.WARNING, "careful", location=location)
    assert result.ids == ("model::A",)
    assert result.location == location
    assert "WARNING" in str(result)


def test_error_result_carries_trace_in_log_message() -> None:
    try:
        raise RuntimeError("engine exploded")
    except RuntimeError as exc:
        result = error_result(exc, "model::A")
    assert result.type is ResultType.ERROR
    assert result.ids == ("model::A",)
    assert result.message == "engine exploded"
    assert "RuntimeError" in result.get_log_message()


def test_error_result_uses_placeholder_for_blank_exceptions() -> None:
    result = error_result(RuntimeError(), "model::A")
    assert result.message == "Error"
