from __future__ import annotations

import json

from conduit.collaborators import TestOutcome
from conduit.commands import command_ids
from conduit.execution.result import ResultType
from conduit.function import FunctionExtension
from conduit.text import TextLocation, TextPosition
from conduit.workspace import document_commands, find_definition
from tests.model_helpers import (
    DOCUMENT_ID,
    FakePlanExecutor,
    FakePlanGenerator,
    FakeTestRunner,
    make_state,
    sample_document,
    span,
)

FUNCTION_PATH = "model::double"


def _function_document() -> str:
    document = sample_document()
    document["sections"].append(
        {
            "grammar": "Function",
            "elements": [
                {
                    "kind": "function",
                    "path": FUNCTION_PATH,
                    "source": span(80, 0, 90, 1),
                    "func": {
                        "parameters": ["x"],
                        "body": [{"kind": "function", "reference": "model::helper", "source": span(81, 4, 81, 16)}],
                    },
                    "test_suites": [
                        {
                            "id": "checks",
                            "source": span(84, 2, 88, 2),
                            "tests": [{"id": "doubles", "source": span(85, 4, 85, 20)}],
                        }
                    ],
                },
                {"kind": "function", "path": "model::bare", "source": span(92, 0, 93, 1)},
            ],
        }
    )
    return json.dumps(document)


def _section(state):
    section = state.find_section(DOCUMENT_ID, FUNCTION_PATH)
    assert section is not None
    assert isinstance(state.extension_for(section), FunctionExtension)
    return section


def test_functions_offer_tests_and_execution() -> None:
    state = make_state(_function_document())
    offered = [
        (descriptor.entity_path, descriptor.id)
        for descriptor in document_commands(state, DOCUMENT_ID)
        if descriptor.entity_path != "model::MyService"
    ]
    assert offered == [
        (FUNCTION_PATH, command_ids.RUN_TESTS_COMMAND_ID),
        (FUNCTION_PATH, command_ids.EXECUTE_COMMAND_ID),
    ]


def test_execute_plans_the_lambda_without_mapping_or_runtime() -> None:
    generator = FakePlanGenerator()
    state = make_state(_function_document(), plan_generator=generator, plan_executor=FakePlanExecutor(output=[1, 2]))
    section = _section(state)

    (result,) = state.extension_for(section).execute(section, FUNCTION_PATH, command_ids.EXECUTE_COMMAND_ID)

    assert result.type is ResultType.SUCCESS
    assert json.loads(result.message) == [1, 2]
    assert result.location == TextLocation.of(DOCUMENT_ID, 80, 0, 90, 1)
    ((execution, _, _, _),) = generator.calls
    assert (execution.mapping, execution.runtime) == (None, None)
    assert execution.func.parameters == ("x",)


def test_execute_on_function_without_body_is_an_error() -> None:
    state = make_state(_function_document(), plan_generator=FakePlanGenerator(), plan_executor=FakePlanExecutor())
    section = _section(state)
    (result,) = state.extension_for(section).execute(section, "model::bare", command_ids.EXECUTE_COMMAND_ID)
    assert result.type is ResultType.ERROR
    assert result.message == "Entity model::bare has nothing to execute"


def test_run_tests_reports_function_suites() -> None:
    runner = FakeTestRunner(outcomes=(TestOutcome("checks", "doubles", "FAILURE", message="got 3"),))
    state = make_state(_function_document(), test_runner=runner)
    section = _section(state)

    (result,) = state.extension_for(section).execute(section, FUNCTION_PATH, command_ids.RUN_TESTS_COMMAND_ID)

    assert result.ids == (FUNCTION_PATH, "checks", "doubles")
    assert result.type is ResultType.FAILURE
    assert result.location == TextLocation.of(DOCUMENT_ID, 85, 4, 85, 20)
    assert runner.suites_seen == [("checks",)]


def test_lambda_references_resolve_to_their_elements() -> None:
    state = make_state(_function_document())
    assert find_definition(state, DOCUMENT_ID, TextPosition(81, 8)) == TextLocation.of(DOCUMENT_ID, 50, 0, 52, 1)
