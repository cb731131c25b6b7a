"""Fold engine-level test outcomes into execution results."""

from __future__ import annotations

from typing import Iterable, Mapping

from conduit.collaborators import LegacyTestRun, TestOutcome
from conduit.execution.result import ExecutionResult, ResultType, format_exception, new_result
from conduit.model import TestSuite
from conduit.text import TextLocation

_RESULT_TYPES: dict[str, ResultType] = {
    "SUCCESS": ResultType.SUCCESS,
    "FAILURE": ResultType.FAILURE,
    "ERROR": ResultType.ERROR,
}


def outcome_name(code: object) -> str:
    name = getattr(code, "name", None)
    return name if isinstance(name, str) else str(code)


def to_result_type(code: object) -> ResultType:
    # Unrecognized codes are kept as warnings rather than dropped.
    return _RESULT_TYPES.get(outcome_name(code), ResultType.WARNING)


def _with_trace(message: str, exception: BaseException | None) -> str:
    if exception is None:
        return message
    return f"{message}\n{format_exception(exception)}"


def legacy_test_results(
    entity_path: str,
    runs: Iterable[LegacyTestRun],
    location: TextLocation | None = None,
) -> list[ExecutionResult]:
    results: list[ExecutionResult] = []
    for run in runs:
        exceptions: Mapping[str, BaseException] = run.assert_exceptions or {}
        for assertion, code in (run.results or {}).items():
            message = f"{entity_path}.{assertion}: {outcome_name(code)}"
            results.append(
                new_result(
                    [entity_path, assertion],
                    to_result_type(code),
                    _with_trace(message, exceptions.get(assertion)),
                    location=location,
                )
            )
    return results


def _test_location(
    suites: Iterable[TestSuite],
    suite_id: str,
    test_id: str,
) -> TextLocation | None:
    for suite in suites:
        if suite.id != suite_id:
            continue
        for test in suite.tests:
            if test.id == test_id:
                return test.source or suite.source
        return suite.source
    return None


def suite_results(
    entity_path: str,
    suites: Iterable[TestSuite],
    outcomes: Iterable[TestOutcome],
    location: TextLocation | None = None,
) -> list[ExecutionResult]:
    suites = tuple(suites)
    results: list[ExecutionResult] = []
    for outcome in outcomes:
        ids = [entity_path, outcome.suite_id, outcome.test_id]
        if outcome.assertion_id is not None:
            ids.append(outcome.assertion_id)
        message = f"{'.'.join(ids)}: {outcome_name(outcome.code)}"
        if outcome.message:
            message = f"{message}\n{outcome.message}"
        results.append(
            new_result(
                ids,
                to_result_type(outcome.code),
                _with_trace(message, outcome.exception),
                location=_test_location(suites, outcome.suite_id, outcome.test_id) or location,
            )
        )
    return results


def select_suites(
    suites: Iterable[TestSuite],
    suite_id: str | None = None,
    test_id: str | None = None,
) -> tuple[TestSuite, ...]:
    selected: list[TestSuite] = []
    for suite in suites:
        if suite_id is not None and suite.id != suite_id:
            continue
        if test_id is not None:
            tests = tuple(test for test in suite.tests if test.id == test_id)
            if not tests:
                continue
            suite = TestSuite(id=suite.id, tests=tests, source=suite.source)
        selected.append(suite)
    return tuple(selected)
