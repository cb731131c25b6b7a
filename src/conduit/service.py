"""Grammar extension for service constructs."""

from __future__ import annotations

import itertools
import logging
from typing import Iterable, Mapping, Sequence

from conduit.collaborators import Collaborators
from conduit.commands import command_ids
from conduit.commands.registry import CommandCollector
from conduit.completion import Completion, service_completions
from conduit.execution.function_support import FunctionExecutionSupport
from conduit.execution.result import ExecutionResult, ResultType, error_result, new_result
from conduit.execution.variants import generate_plan, resolve_execution
from conduit.extension import GrammarExtension
from conduit.json_types import InputParameters
from conduit.model import (
    CompiledService,
    Execution,
    Lambda,
    PackageableElement,
    PostValidation,
    PostValidationAssertion,
    PureMultiExecution,
    PureSingleExecution,
    RuntimeValue,
    Service,
    TestSuite,
)
from conduit.references import (
    ReferenceStream,
    element_reference,
    expression_references,
    lambda_references,
    stereotype_references,
    tagged_value_references,
)
from conduit.registration import REGISTER_SERVICE_PATH, format_response, registration_origin
from conduit.runtime import RuntimeExtension
from conduit.state import CompiledModel, GlobalState, SectionState
from conduit.testing import legacy_test_results
from conduit.text import TextLocation, TextPosition

logger = logging.getLogger(__name__)


class ServiceExtension(FunctionExecutionSupport, GrammarExtension):
    name = "Service"
    keywords = ("Service", "import")

    def get_test_suites(self, element: PackageableElement) -> Sequence[TestSuite]:
        match element:
            case Service(test_suites=suites):
                return suites
            case _:
                return super().get_test_suites(element)

    def get_lambda(self, element: PackageableElement) -> Lambda | None:
        match element:
            case Service(execution=PureSingleExecution() | PureMultiExecution() as execution):
                return execution.func
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
        match element:
            case Service(execution=execution):
                spec = resolve_execution(execution, func, args)
            case _:
                raise TypeError(f"{element.path} is not a service")
        return generate_plan(
            spec,
            model,
            collaborators.require_plan_generator(),
            collaborators.platform_extensions(),
        )

    def is_execution_server_configured(self, section: SectionState) -> bool:
        return section.global_state.collaborators.execution_server is not None

    def collect_commands(
        self,
        section: SectionState,
        element: PackageableElement,
        consumer: CommandCollector,
    ) -> None:
        super().collect_commands(section, element, consumer)
        match element:
            case Service() as service:
                pass
            case _:
                return
        self.collect_function_execution_command(service, consumer)
        if self.is_execution_server_configured(section):
            consumer(
                service.path,
                command_ids.REGISTER_SERVICE_COMMAND_ID,
                command_ids.REGISTER_SERVICE_COMMAND_TITLE,
                service.source,
            )
        if service.legacy_test is not None:
            consumer(
                service.path,
                command_ids.RUN_LEGACY_TESTS_COMMAND_ID,
                command_ids.RUN_LEGACY_TESTS_COMMAND_TITLE,
                service.source,
            )

    def dispatch(
        self,
        section: SectionState,
        entity_path: str,
        command_id: str,
        executable_args: Mapping[str, str],
        input_parameters: Mapping[str, object],
    ) -> Iterable[ExecutionResult]:
        match command_id:
            case command_ids.RUN_LEGACY_TESTS_COMMAND_ID:
                return self.run_legacy_service_test(section, entity_path)
            case command_ids.REGISTER_SERVICE_COMMAND_ID:
                return self.register_service(section, entity_path)
        results = self.execute_function_command(section, entity_path, command_id, input_parameters)
        if results is not None:
            return results
        return super().dispatch(section, entity_path, command_id, executable_args, input_parameters)

    def _find_service(self, section: SectionState, entity_path: str) -> Service | None:
        match self.get_parse_result(section).get_element(entity_path):
            case Service() as service:
                return service
            case _:
                return None

    def run_legacy_service_test(self, section: SectionState, entity_path: str) -> list[ExecutionResult]:
        service = self._find_service(section, entity_path)
        if service is None:
            return [new_result(entity_path, ResultType.ERROR, f"Unable to find service {entity_path}")]
        location = service.source
        if service.legacy_test is None:
            return [
                new_result(
                    entity_path,
                    ResultType.ERROR,
                    f"Unable to find legacy test for service {entity_path}",
                    location=location,
                )
            ]
        compile_result = self.get_compile_result(section)
        if compile_result.has_error():
            return [compile_result.error_result(entity_path)]
        collaborators = section.global_state.collaborators
        try:
            runs = list(
                collaborators.require_test_runner().run_legacy_tests(
                    service,
                    service.legacy_test,
                    compile_result.model,
                    collaborators.platform_extensions(),
                )
            )
        except Exception as exc:
            logger.exception("legacy tests failed to run for %s", entity_path)
            return [error_result(exc, entity_path, location=location)]
        return legacy_test_results(entity_path, runs, location)

    def register_service(self, section: SectionState, entity_path: str) -> list[ExecutionResult]:
        service = self._find_service(section, entity_path)
        if service is None:
            raise LookupError(f"Unable to find service {entity_path}")
        state = section.global_state
        server = state.collaborators.require_execution_server()
        payload = state.serialize_model(origin=registration_origin(entity_path))
        response = server.post(REGISTER_SERVICE_PATH, payload)
        return [
            new_result(
                entity_path,
                ResultType.SUCCESS,
                format_response(response),
                location=service.source,
            )
        ]

    def get_completions(self, section: SectionState, position: TextPosition) -> list[Completion]:
        completions = service_completions(section.line_up_to(position))
        completions.extend(super().get_completions(section, position))
        return completions

    def get_reference_resolvers(
        self,
        section: SectionState,
        element: PackageableElement,
    ) -> ReferenceStream:
        match element:
            case Service() as service:
                pass
            case _:
                return iter(())
        return itertools.chain(
            self.execution_references(service.execution, section.global_state),
            stereotype_references(service.stereotypes),
            tagged_value_references(service.tagged_values),
            self.compiled_references(section, service.path),
        )

    def execution_references(self, execution: Execution | None, state: GlobalState) -> ReferenceStream:
        match execution:
            case PureSingleExecution() as single:
                yield from self._binding_references(
                    single.mapping, single.mapping_source, single.runtime, state
                )
            case PureMultiExecution() as multi:
                for parameter in multi.execution_parameters:
                    yield from self._binding_references(
                        parameter.mapping, parameter.mapping_source, parameter.runtime, state
                    )
            case _:
                return

    def _binding_references(
        self,
        mapping: str | None,
        mapping_source: TextLocation | None,
        runtime: RuntimeValue | None,
        state: GlobalState,
    ) -> ReferenceStream:
        yield element_reference(mapping, mapping_source)
        runtime_extension = state.find_extension(RuntimeExtension)
        if runtime_extension is not None:
            yield from runtime_extension.get_runtime_references(runtime)

    def compiled_references(self, section: SectionState, entity_path: str) -> ReferenceStream:
        # Only the compiled form knows the lambda's resolved sub-expressions
        # and the post validations.
        compile_result = self.get_compile_result(section)
        if compile_result.has_error():
            return
        match compile_result.model.compiled_form(entity_path):
            case CompiledService() as compiled:
                pass
            case _:
                return
        yield from lambda_references(compiled.func)
        for post_validation in compiled.post_validations:
            yield from post_validation_references(post_validation)


def post_validation_references(post_validation: PostValidation | None) -> ReferenceStream:
    if post_validation is None:
        return
    for parameter in post_validation.parameters:
        yield from expression_references(parameter)
    for assertion in post_validation.assertions:
        yield from assertion_references(assertion)


def assertion_references(assertion: PostValidationAssertion | None) -> ReferenceStream:
    if assertion is None:
        return
    yield from expression_references(assertion.assertion)
