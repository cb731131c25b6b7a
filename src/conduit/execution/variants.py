from __future__ import annotations

import logging
from dataclasses import dataclass

from conduit.cancellation import check_cancelled
from conduit.collaborators import PlanGenerator, PlanPlatform, PlatformExtensions
from conduit.exceptions import UnmatchedExecutionKey
from conduit.json_types import InputParameters
from conduit.model import (
    Execution,
    KeyedExecutionParameter,
    Lambda,
    PureMultiExecution,
    PureSingleExecution,
    RuntimeValue,
)
from conduit.state import CompiledModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleExecutionSpec:
    """One concrete (mapping, runtime, options) binding for an invocable lambda."""

    func: Lambda | None
    mapping: str | None
    runtime: RuntimeValue | None
    execution_options: tuple[tuple[str, str], ...] = ()


def select_variant(
    execution: PureMultiExecution,
    args: InputParameters,
) -> KeyedExecutionParameter:
    value = args.get(execution.execution_key)
    for parameter in execution.execution_parameters:
        if parameter.key == value:
            return parameter
    raise UnmatchedExecutionKey(execution.execution_key, value)


def resolve_execution(
    execution: Execution | None,
    func: Lambda | None,
    args: InputParameters,
) -> SingleExecutionSpec:
    match execution:
        case PureMultiExecution() as multi:
            variant = select_variant(multi, args)
            logger.debug("execution key %s selected variant %s", multi.execution_key, variant.key)
            return SingleExecutionSpec(
                func=func,
                mapping=variant.mapping,
                runtime=variant.runtime,
                execution_options=variant.execution_options,
            )
        case PureSingleExecution() as single:
            return SingleExecutionSpec(
                func=func,
                mapping=single.mapping,
                runtime=single.runtime,
                execution_options=single.execution_options,
            )
        case None:
            raise ValueError("No execution is declared")
        case _:
            raise ValueError(f"Unsupported execution: {type(execution).__name__}")


def generate_plan(
    spec: SingleExecutionSpec,
    model: CompiledModel,
    generator: PlanGenerator,
    extensions: PlatformExtensions,
    platform: PlanPlatform = PlanPlatform.JAVA,
) -> object:
    check_cancelled()
    return generator.generate(spec, model, platform, extensions)
