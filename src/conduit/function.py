"""Grammar extension for standalone function constructs.

A function has no mapping or runtime of its own; its plan is generated from
the lambda alone.
"""

from __future__ import annotations

import itertools
from typing import Iterable, Mapping, Sequence

from conduit.collaborators import Collaborators
from conduit.commands.registry import CommandCollector
from conduit.execution.function_support import FunctionExecutionSupport
from conduit.execution.result import ExecutionResult
from conduit.execution.variants import SingleExecutionSpec, generate_plan
from conduit.extension import GrammarExtension
from conduit.json_types import InputParameters
from conduit.model import Function, Lambda, PackageableElement, TestSuite
from conduit.references import (
    ReferenceStream,
    lambda_references,
    stereotype_references,
    tagged_value_references,
)
from conduit.state import CompiledModel, SectionState


class FunctionExtension(FunctionExecutionSupport, GrammarExtension):
    name = "Function"
    keywords = ("function", "import")

    def get_test_suites(self, element: PackageableElement) -> Sequence[TestSuite]:
        match element:
            case Function(test_suites=suites):
                return suites
            case _:
                return super().get_test_suites(element)

    def get_lambda(self, element: PackageableElement) -> Lambda | None:
        match element:
            case Function(func=func):
                return func
            case _:
                return None

    def get_execution_plan(
        self,
        element: PackageableElement,
        func: Lambda,
        model: CompiledModel,
        args: InputParameters,
        *,
        collaborators: Collaborators,
    ) -> object:
        return generate_plan(
            SingleExecutionSpec(func=func, mapping=None, runtime=None),
            model,
            collaborators.require_plan_generator(),
            collaborators.platform_extensions(),
        )

    def collect_commands(
        self,
        section: SectionState,
        element: PackageableElement,
        consumer: CommandCollector,
    ) -> None:
        super().collect_commands(section, element, consumer)
        self.collect_function_execution_command(element, consumer)

    def dispatch(
        self,
        section: SectionState,
        entity_path: str,
        command_id: str,
        executable_args: Mapping[str, str],
        input_parameters: Mapping[str, object],
    ) -> Iterable[ExecutionResult]:
        results = self.execute_function_command(section, entity_path, command_id, input_parameters)
        if results is not None:
            return results
        return super().dispatch(section, entity_path, command_id, executable_args, input_parameters)

    def get_reference_resolvers(
        self,
        section: SectionState,
        element: PackageableElement,
    ) -> ReferenceStream:
        match element:
            case Function() as function:
                return itertools.chain(
                    stereotype_references(function.stereotypes),
                    tagged_value_references(function.tagged_values),
                    lambda_references(function.func),
                )
            case _:
                return iter(())
