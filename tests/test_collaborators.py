from __future__ import annotations

from dataclasses import dataclass

import pytest

from conduit.collaborators import (
    PLAN_TRANSFORMERS_GROUP,
    ROUTER_EXTENSIONS_GROUP,
    CompiledModelProvider,
    ExecutionServer,
    PlanExecutor,
    load_platform_extensions,
)
from conduit import collaborators as collaborators_module
from conduit.exceptions import CollaboratorMissing
from conduit.extension import GRAMMAR_EXTENSIONS_GROUP, GrammarExtension, default_grammar_extensions
from conduit.function import FunctionExtension
from conduit.protocol_json import JsonModelProvider
from conduit.runtime import RuntimeExtension
from conduit.service import ServiceExtension
from tests.model_helpers import FakeExecutionServer, FakePlanExecutor, FakeTestRunner, make_collaborators


@dataclass
class _EntryPoint:
    name: str
    target: object

    def load(self) -> object:
        return self.target


def _entry_points(groups: dict[str, list[_EntryPoint]]):
    def entry_points_fn(*, group: str):
        return groups.get(group, [])

    return entry_points_fn


class _DiagramExtension(GrammarExtension):
    name = "Diagram"


def test_platform_extensions_load_from_groups() -> None:
    extensions = load_platform_extensions(
        _entry_points(
            {
                ROUTER_EXTENSIONS_GROUP: [_EntryPoint("core", lambda: ["r1", "r2"])],
                PLAN_TRANSFORMERS_GROUP: [_EntryPoint("java", "t1")],
            }
        )
    )
    assert extensions.router_extensions == ("r1", "r2")
    assert extensions.plan_transformers == ("t1",)


def test_default_grammar_extensions_append_installed_ones() -> None:
    extensions = default_grammar_extensions(
        _entry_points({GRAMMAR_EXTENSIONS_GROUP: [_EntryPoint("diagram", _DiagramExtension)]})
    )
    assert [type(extension) for extension in extensions] == [
        ServiceExtension,
        RuntimeExtension,
        FunctionExtension,
        _DiagramExtension,
    ]


def test_fakes_satisfy_collaborator_protocols() -> None:
    assert isinstance(JsonModelProvider(), CompiledModelProvider)
    assert isinstance(FakePlanExecutor(), PlanExecutor)
    assert isinstance(FakeTestRunner(), collaborators_module.TestRunner)
    assert isinstance(FakeExecutionServer(), ExecutionServer)


def test_require_reports_missing_collaborators() -> None:
    collaborators = make_collaborators()
    for require, name in (
        (collaborators.require_plan_generator, "plan generator"),
        (collaborators.require_plan_executor, "plan executor"),
        (collaborators.require_test_runner, "test runner"),
        (collaborators.require_execution_server, "execution server"),
    ):
        with pytest.raises(CollaboratorMissing, match=name):
            require()
