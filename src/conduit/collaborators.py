"""Narrow interfaces to the services the core calls into.

None of these are implemented here except the default model provider (see
``conduit.protocol_json``) and the execution-server client (see
``conduit.registration``). Plan generation, plan execution and test running
belong to an execution platform and are injected.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Callable, Mapping, Protocol, Sequence, runtime_checkable

from conduit.exceptions import CollaboratorMissing
from conduit.json_types import InputParameters, JSONObject

if TYPE_CHECKING:
    from conduit.cancellation import CancellationToken
    from conduit.execution.variants import SingleExecutionSpec
    from conduit.model import LegacyTest, PackageableElement, TestSuite
    from conduit.schema import TDSRequestDTO
    from conduit.state import CompileResult, CompiledModel, DocumentState, ParseResult, SectionState

logger = logging.getLogger(__name__)

ROUTER_EXTENSIONS_GROUP = "conduit.router_extensions"
PLAN_TRANSFORMERS_GROUP = "conduit.plan_transformers"


class PlanPlatform(StrEnum):
    JAVA = "JAVA"


@dataclass(frozen=True)
class PlatformExtensions:
    router_extensions: tuple[object, ...] = ()
    plan_transformers: tuple[object, ...] = ()


@dataclass(frozen=True)
class LegacyTestRun:
    """Engine-level outcome of one legacy test run, keyed by assertion name."""

    results: Mapping[str, object] = field(default_factory=dict)
    assert_exceptions: Mapping[str, BaseException] = field(default_factory=dict)


@dataclass(frozen=True)
class TestOutcome:
    __test__ = False

    suite_id: str
    test_id: str
    code: object
    assertion_id: str | None = None
    message: str = ""
    exception: BaseException | None = None


@runtime_checkable
class CompiledModelProvider(Protocol):
    def split(self, document: DocumentState) -> Sequence[tuple[str, object]]:
        """Return ``(grammar, section body)`` pairs in document order."""

    def parse(self, section: SectionState) -> ParseResult: ...

    def compile(
        self,
        sections: Sequence[SectionState],
        parse: Callable[[SectionState], ParseResult],
    ) -> CompileResult: ...

    def serialize(
        self,
        sections: Sequence[SectionState],
        *,
        origin: JSONObject | None = None,
    ) -> JSONObject: ...


@runtime_checkable
class PlanGenerator(Protocol):
    def generate(
        self,
        execution: SingleExecutionSpec,
        model: CompiledModel,
        platform: PlanPlatform,
        extensions: PlatformExtensions,
    ) -> object: ...


@runtime_checkable
class PlanExecutor(Protocol):
    def execute(
        self,
        plan: object,
        parameters: InputParameters,
        *,
        tds_request: TDSRequestDTO | None = None,
        cancellation: CancellationToken | None = None,
    ) -> object:
        """Run a plan; str results are returned verbatim, others as JSON."""


@runtime_checkable
class TestRunner(Protocol):
    def run_legacy_tests(
        self,
        element: PackageableElement,
        legacy_test: LegacyTest,
        model: CompiledModel,
        extensions: PlatformExtensions,
    ) -> Sequence[LegacyTestRun]: ...

    def run_test_suites(
        self,
        element: PackageableElement,
        suites: Sequence[TestSuite],
        model: CompiledModel,
        extensions: PlatformExtensions,
    ) -> Sequence[TestOutcome]: ...


@runtime_checkable
class ExecutionServer(Protocol):
    def post(self, path: str, payload: JSONObject) -> str: ...


def _load_group(group: str, entry_points_fn: Callable[..., object]) -> tuple[object, ...]:
    loaded: list[object] = []
    for entry_point in entry_points_fn(group=group):
        factory = entry_point.load()
        provided = factory() if callable(factory) else factory
        loaded.extend(provided if isinstance(provided, (list, tuple)) else [provided])
        logger.debug("loaded %s from %s", entry_point.name, group)
    return tuple(loaded)


def load_platform_extensions(
    entry_points_fn: Callable[..., object] = entry_points,
) -> PlatformExtensions:
    return PlatformExtensions(
        router_extensions=_load_group(ROUTER_EXTENSIONS_GROUP, entry_points_fn),
        plan_transformers=_load_group(PLAN_TRANSFORMERS_GROUP, entry_points_fn),
    )


@functools.cache
def installed_platform_extensions() -> PlatformExtensions:
    return load_platform_extensions()


@dataclass(frozen=True)
class Collaborators:
    model_provider: CompiledModelProvider
    plan_generator: PlanGenerator | None = None
    plan_executor: PlanExecutor | None = None
    test_runner: TestRunner | None = None
    execution_server: ExecutionServer | None = None
    platform_extensions_fn: Callable[[], PlatformExtensions] = installed_platform_extensions

    def require_plan_generator(self) -> PlanGenerator:
        if self.plan_generator is None:
            raise CollaboratorMissing("plan generator")
        return self.plan_generator

    def require_plan_executor(self) -> PlanExecutor:
        if self.plan_executor is None:
            raise CollaboratorMissing("plan executor")
        return self.plan_executor

    def require_test_runner(self) -> TestRunner:
        if self.test_runner is None:
            raise CollaboratorMissing("test runner")
        return self.test_runner

    def require_execution_server(self) -> ExecutionServer:
        if self.execution_server is None:
            raise CollaboratorMissing("execution server")
        return self.execution_server

    def platform_extensions(self) -> PlatformExtensions:
        return self.platform_extensions_fn()
