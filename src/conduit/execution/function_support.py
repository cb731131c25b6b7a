"""Execution of a construct's invocable lambda, plain or as a tabular query."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from conduit.cancellation import CancellationToken, cancellation_scope
from conduit.collaborators import Collaborators
from conduit.commands import command_ids
from conduit.commands.registry import CommandCollector
from conduit.exceptions import RequestCancelled
from conduit.execution.result import ExecutionResult, ResultType, error_result, new_result
from conduit.json_types import InputParameters
from conduit.model import Lambda, PackageableElement
from conduit.state import CompiledModel, SectionState

if TYPE_CHECKING:
    from conduit.schema import TDSRequestDTO

logger = logging.getLogger(__name__)


def render_output(output: object) -> str:
    if isinstance(output, str):
        return output
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return json.dumps(output, indent=2, sort_keys=True, default=str)


class FunctionExecutionSupport:
    """Mixin for grammar extensions whose constructs expose an invocable lambda.

    Subclasses provide ``get_lambda`` and ``get_execution_plan``; they are
    expected to also derive from ``GrammarExtension``.
    """

    def get_lambda(self, element: PackageableElement) -> Lambda | None:
        raise NotImplementedError

    def get_execution_plan(
        self,
        element: PackageableElement,
        func: Lambda,
        model: CompiledModel,
        args: InputParameters,
        *,
        collaborators: Collaborators,
    ) -> object:
        raise NotImplementedError

    def collect_function_execution_command(
        self,
        element: PackageableElement,
        consumer: CommandCollector,
    ) -> None:
        if self.get_lambda(element) is None:
            return
        consumer(
            element.path,
            command_ids.EXECUTE_COMMAND_ID,
            command_ids.EXECUTE_COMMAND_TITLE,
            element.source,
        )

    def execute_function_command(
        self,
        section: SectionState,
        entity_path: str,
        command_id: str,
        input_parameters: InputParameters,
    ) -> list[ExecutionResult] | None:
        """Run the generic execution path, or return None for other ids."""
        if command_id != command_ids.EXECUTE_COMMAND_ID:
            return None
        return self.execute_function(section, entity_path, input_parameters)

    def _plan(
        self,
        section: SectionState,
        entity_path: str,
        input_parameters: InputParameters,
    ) -> tuple[PackageableElement, object] | ExecutionResult:
        element = self.get_parse_result(section).get_element(entity_path)
        if element is None:
            return new_result(entity_path, ResultType.ERROR, f"Unable to find entity {entity_path}")
        func = self.get_lambda(element)
        if func is None:
            return new_result(
                entity_path,
                ResultType.ERROR,
                f"Entity {entity_path} has nothing to execute",
                location=element.source,
            )
        compile_result = self.get_compile_result(section)
        if compile_result.has_error():
            return compile_result.error_result(entity_path)
        plan = self.get_execution_plan(
            element,
            func,
            compile_result.model,
            input_parameters,
            collaborators=section.global_state.collaborators,
        )
        return element, plan

    def execute_function(
        self,
        section: SectionState,
        entity_path: str,
        input_parameters: InputParameters,
    ) -> list[ExecutionResult]:
        planned = self._plan(section, entity_path, input_parameters)
        if isinstance(planned, ExecutionResult):
            return [planned]
        element, plan = planned
        executor = section.global_state.collaborators.require_plan_executor()
        output = executor.execute(plan, input_parameters)
        return [
            new_result(
                entity_path,
                ResultType.SUCCESS,
                render_output(output),
                location=element.source,
            )
        ]

    def execute_tds_request(
        self,
        section: SectionState,
        entity_path: str,
        request: TDSRequestDTO,
        input_parameters: InputParameters,
        token: CancellationToken,
    ) -> ExecutionResult:
        """Run a tabular query over the lambda's result; always one result."""
        try:
            with cancellation_scope(token):
                token.check()
                planned = self._plan(section, entity_path, input_parameters)
                if isinstance(planned, ExecutionResult):
                    return planned
                element, plan = planned
                token.check()
                executor = section.global_state.collaborators.require_plan_executor()
                output = executor.execute(
                    plan,
                    input_parameters,
                    tds_request=request,
                    cancellation=token,
                )
                token.check()
                return new_result(
                    entity_path,
                    ResultType.SUCCESS,
                    render_output(output),
                    location=element.source,
                )
        except RequestCancelled as exc:
            logger.info("tabular query %s cancelled", exc.request_id)
            return new_result(entity_path, ResultType.ERROR, str(exc))
        except Exception as exc:
            logger.exception("tabular query failed for %s", entity_path)
            return error_result(exc, entity_path)
