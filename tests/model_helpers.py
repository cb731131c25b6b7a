from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Callable

from conduit.collaborators import Collaborators, LegacyTestRun, PlatformExtensions, TestOutcome
from conduit.function import FunctionExtension
from conduit.protocol_json import JsonModelProvider
from conduit.runtime import RuntimeExtension
from conduit.service import ServiceExtension
from conduit.state import GlobalState

DOCUMENT_ID = "file:///workspace/model.json"
SERVICE_PATH = "model::MyService"


def span(start_line: int, start_column: int, end_line: int, end_column: int) -> dict[str, list[int]]:
    return {"start": [start_line, start_column], "end": [end_line, end_column]}


def multi_execution() -> dict[str, object]:
    return {
        "kind": "multi",
        "execution_key": "env",
        "func": {
            "parameters": ["env"],
            "body": [
                {
                    "kind": "function",
                    "reference": "model::helper",
                    "source": span(3, 10, 3, 20),
                    "children": [{"kind": "literal"}],
                }
            ],
        },
        "execution_parameters": [
            {
                "key": "dev",
                "mapping": "model::DevMapping",
                "mapping_source": span(5, 10, 5, 30),
                "runtime": {"kind": "pointer", "path": "model::MyRuntime", "source": span(6, 10, 6, 30)},
            },
            {
                "key": "prod",
                "mapping": "model::ProdMapping",
                "mapping_source": span(8, 10, 8, 30),
                "runtime": {
                    "kind": "engine",
                    "mappings": [{"path": "model::ProdMapping", "source": span(9, 12, 9, 30)}],
                    "connections": [{"path": "model::ProdStore", "source": span(10, 12, 10, 30)}],
                },
            },
            {"key": "qa", "mapping": "model::QaMapping"},
        ],
    }


def service_element(**overrides: object) -> dict[str, object]:
    element: dict[str, object] = {
        "kind": "service",
        "path": SERVICE_PATH,
        "source": span(0, 0, 20, 0),
        "pattern": "/my/service",
        "stereotypes": [{"profile": "model::doc", "value": "deprecated", "source": span(1, 4, 1, 30)}],
        "tagged_values": [
            {"profile": "model::doc", "tag": "author", "value": "someone", "source": span(2, 4, 2, 40)}
        ],
        "execution": multi_execution(),
        "test_suites": [
            {
                "id": "suite1",
                "source": span(14, 4, 16, 4),
                "tests": [{"id": "test1", "source": span(15, 6, 15, 20)}],
            }
        ],
        "legacy_test": {"data": "assert(true)", "source": span(17, 4, 17, 30)},
        "post_validations": [
            {
                "description": "rows exist",
                "assertions": [
                    {
                        "id": "nonEmpty",
                        "assertion": {"kind": "function", "reference": "model::helper", "source": span(12, 4, 12, 20)},
                    }
                ],
            }
        ],
    }
    element.update(overrides)
    return element


def sample_document(**service_overrides: object) -> dict[str, object]:
    return {
        "sections": [
            {"grammar": "Service", "elements": [service_element(**service_overrides)]},
            {
                "grammar": "Mapping",
                "elements": [
                    {"kind": "mapping", "path": "model::DevMapping", "source": span(30, 0, 32, 1)},
                    {"kind": "mapping", "path": "model::ProdMapping", "source": span(33, 0, 35, 1)},
                    {"kind": "mapping", "path": "model::QaMapping", "source": span(36, 0, 38, 1)},
                    {
                        "kind": "profile",
                        "path": "model::doc",
                        "source": span(40, 0, 45, 1),
                        "stereotype_entries": [{"name": "deprecated", "source": span(41, 2, 41, 12)}],
                        "tag_entries": [{"name": "author", "source": span(42, 2, 42, 8)}],
                    },
                    {"kind": "function", "path": "model::helper", "source": span(50, 0, 52, 1)},
                ],
            },
            {
                "grammar": "Runtime",
                "elements": [
                    {
                        "kind": "runtime",
                        "path": "model::MyRuntime",
                        "source": span(60, 0, 64, 1),
                        "mappings": [{"path": "model::DevMapping", "source": span(61, 4, 61, 20)}],
                    }
                ],
            },
        ]
    }


def sample_text(**service_overrides: object) -> str:
    return json.dumps(sample_document(**service_overrides), indent=2)


def without_key(document: dict[str, object], key: str) -> dict[str, object]:
    stripped = copy.deepcopy(document)
    service = stripped["sections"][0]["elements"][0]
    service.pop(key, None)
    return stripped


@dataclass
class FakePlanGenerator:
    calls: list[tuple[object, ...]] = field(default_factory=list)

    def generate(self, execution, model, platform, extensions) -> object:
        self.calls.append((execution, model, platform, extensions))
        return {"mapping": execution.mapping, "runtime": execution.runtime}


@dataclass
class FakePlanExecutor:
    output: object = "ok"
    before_return: Callable[[object], None] | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    def execute(self, plan, parameters, *, tds_request=None, cancellation=None) -> object:
        self.calls.append(
            {
                "plan": plan,
                "parameters": dict(parameters),
                "tds_request": tds_request,
                "cancellation": cancellation,
            }
        )
        if self.before_return is not None:
            self.before_return(cancellation)
        return self.output


@dataclass
class FakeTestRunner:
    __test__ = False

    legacy_runs: tuple[LegacyTestRun, ...] = ()
    outcomes: tuple[TestOutcome, ...] = ()
    error: BaseException | None = None
    legacy_seen: list[str] = field(default_factory=list)
    suites_seen: list[tuple[str, ...]] = field(default_factory=list)

    def run_legacy_tests(self, element, legacy_test, model, extensions):
        self.legacy_seen.append(element.path)
        if self.error is not None:
            raise self.error
        return list(self.legacy_runs)

    def run_test_suites(self, element, suites, model, extensions):
        self.suites_seen.append(tuple(suite.id for suite in suites))
        return list(self.outcomes)


@dataclass
class FakeExecutionServer:
    response: str = '{"status": "ok", "pattern": "/my/service", "owner": null}'
    posts: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def post(self, path: str, payload: dict[str, object]) -> str:
        self.posts.append((path, payload))
        return self.response


def make_collaborators(**kwargs: object) -> Collaborators:
    return Collaborators(
        model_provider=kwargs.pop("model_provider", JsonModelProvider()),
        platform_extensions_fn=lambda: PlatformExtensions(),
        **kwargs,
    )


def make_state(text: str | None = None, *, document_id: str = DOCUMENT_ID, **collaborators: object) -> GlobalState:
    state = GlobalState(
        make_collaborators(**collaborators),
        extensions=[ServiceExtension(), RuntimeExtension(), FunctionExtension()],
    )
    state.set_document(document_id, sample_text() if text is None else text)
    return state


def service_section(state: GlobalState, document_id: str = DOCUMENT_ID):
    section = state.find_section(document_id, SERVICE_PATH)
    assert section is not None
    return section
