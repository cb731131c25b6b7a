from __future__ import annotations

import json
from enum import Enum

from conduit.collaborators import LegacyTestRun, TestOutcome
from conduit.commands import command_ids
from conduit.execution.result import ResultType
from conduit.model import TestCase, TestSuite
from conduit.testing import legacy_test_results, select_suites, suite_results, to_result_type
from conduit.text import TextLocation
from tests.model_helpers import (
    DOCUMENT_ID,
    SERVICE_PATH,
    FakeTestRunner,
    make_state,
    sample_document,
    service_section,
    span,
    without_key,
)


class _Code(Enum):
    SUCCESS = 0
    FAILURE = 1
    SKIPPED = 2


def _execute(state, command_id: str, executable_args: dict[str, str] | None = None):
    section = service_section(state)
    return state.extension_for(section).execute(section, SERVICE_PATH, command_id, executable_args)


def test_legacy_aggregation_types_known_and_unknown_codes() -> None:
    run = LegacyTestRun(results={"assert1": _Code.SUCCESS, "assert2": "NOT_A_CODE"})
    results = legacy_test_results("model::S", [run])
    assert [(result.ids, result.type) for result in results] == [
        (("model::S", "assert1"), ResultType.SUCCESS),
        (("model::S", "assert2"), ResultType.WARNING),
    ]
    assert results[0].message == "model::S.assert1: SUCCESS"


def test_legacy_aggregation_appends_assert_trace() -> None:
    try:
        raise AssertionError("expected 1 row")
    except AssertionError as exc:
        failure = exc
    run = LegacyTestRun(results={"rows": _Code.FAILURE}, assert_exceptions={"rows": failure})
    (result,) = legacy_test_results("model::S", [run])
    assert result.type is ResultType.FAILURE
    assert result.message.startswith("model::S.rows: FAILURE\n")
    assert "expected 1 row" in result.message


def test_unrecognized_codes_are_warnings() -> None:
    assert to_result_type(_Code.SKIPPED) is ResultType.WARNING
    assert to_result_type("ERROR") is ResultType.ERROR


def test_running_legacy_tests_through_extension() -> None:
    runner = FakeTestRunner(legacy_runs=(LegacyTestRun(results={"a": "SUCCESS", "b": "ERROR"}),))
    state = make_state(test_runner=runner)
    results = _execute(state, command_ids.RUN_LEGACY_TESTS_COMMAND_ID)
    assert [(result.ids, result.type) for result in results] == [
        ((SERVICE_PATH, "a"), ResultType.SUCCESS),
        ((SERVICE_PATH, "b"), ResultType.ERROR),
    ]
    assert {result.location for result in results} == {TextLocation.of(DOCUMENT_ID, 0, 0, 20, 0)}


def test_missing_legacy_test_is_a_single_error() -> None:
    state = make_state(json.dumps(without_key(sample_document(), "legacy_test")), test_runner=FakeTestRunner())
    (result,) = _execute(state, command_ids.RUN_LEGACY_TESTS_COMMAND_ID)
    assert result.type is ResultType.ERROR
    assert result.ids == (SERVICE_PATH,)
    assert result.message == f"Unable to find legacy test for service {SERVICE_PATH}"


def test_legacy_runner_failure_is_a_single_error() -> None:
    state = make_state(test_runner=FakeTestRunner(error=RuntimeError("runner crashed")))
    (result,) = _execute(state, command_ids.RUN_LEGACY_TESTS_COMMAND_ID)
    assert result.type is ResultType.ERROR
    assert result.message == "runner crashed"
    assert "RuntimeError" in result.get_log_message()


def test_legacy_tests_without_runner_report_missing_collaborator() -> None:
    (result,) = _execute(make_state(), command_ids.RUN_LEGACY_TESTS_COMMAND_ID)
    assert result.type is ResultType.ERROR
    assert result.message == "No test runner is configured"


def test_suite_results_are_keyed_and_anchored_per_test() -> None:
    test_location = TextLocation.of("doc", 3, 0, 3, 10)
    suites = [TestSuite("suite1", (TestCase("test1", test_location),))]
    outcomes = [
        TestOutcome("suite1", "test1", _Code.SUCCESS, assertion_id="shape"),
        TestOutcome("suite1", "test1", "BOGUS", message="unexpected"),
    ]
    results = suite_results("model::S", suites, outcomes)
    assert [(result.ids, result.type) for result in results] == [
        (("model::S", "suite1", "test1", "shape"), ResultType.SUCCESS),
        (("model::S", "suite1", "test1"), ResultType.WARNING),
    ]
    assert results[1].message == "model::S.suite1.test1: BOGUS\nunexpected"
    assert {result.location for result in results} == {test_location}


def test_select_suites_narrows_by_suite_and_test() -> None:
    suites = [
        TestSuite("a", (TestCase("t1"), TestCase("t2"))),
        TestSuite("b", (TestCase("t1"),)),
    ]
    assert [suite.id for suite in select_suites(suites)] == ["a", "b"]
    assert [suite.id for suite in select_suites(suites, "b")] == ["b"]
    (narrowed,) = select_suites(suites, "a", "t2")
    assert [test.id for test in narrowed.tests] == ["t2"]
    assert select_suites(suites, "a", "missing") == ()


def test_run_tests_command_reports_each_outcome() -> None:
    runner = FakeTestRunner(outcomes=(TestOutcome("suite1", "test1", "SUCCESS"),))
    state = make_state(test_runner=runner)
    (result,) = _execute(state, command_ids.RUN_TESTS_COMMAND_ID, {"testSuite": "suite1", "test": "test1"})
    assert result.ids == (SERVICE_PATH, "suite1", "test1")
    assert result.type is ResultType.SUCCESS
    assert result.location == TextLocation.of(DOCUMENT_ID, 15, 6, 15, 20)
    assert runner.suites_seen == [("suite1",)]


def test_run_tests_for_unknown_suite_is_a_single_error() -> None:
    state = make_state(test_runner=FakeTestRunner())
    (result,) = _execute(state, command_ids.RUN_TESTS_COMMAND_ID, {"testSuite": "nope"})
    assert result.type is ResultType.ERROR
    assert result.message == f"Unable to find tests for {SERVICE_PATH}"


def test_tests_short_circuit_when_the_project_does_not_compile() -> None:
    document = sample_document()
    document["sections"][1]["elements"].append(
        {"kind": "mapping", "path": "model::DevMapping", "source": span(70, 0, 71, 0)}
    )
    runner = FakeTestRunner(
        legacy_runs=(LegacyTestRun(results={"a": "SUCCESS"}),),
        outcomes=(TestOutcome("suite1", "test1", "SUCCESS"),),
    )
    state = make_state(json.dumps(document), test_runner=runner)

    for command_id in (command_ids.RUN_LEGACY_TESTS_COMMAND_ID, command_ids.RUN_TESTS_COMMAND_ID):
        (result,) = _execute(state, command_id)
        assert result.ids == (SERVICE_PATH,)
        assert result.type is ResultType.ERROR
        assert result.message == "Duplicate element: model::DevMapping"

    assert runner.legacy_seen == []
    assert runner.suites_seen == []
