"""Execution results and the execution paths that produce them."""

from conduit.execution.result import ExecutionResult, ResultType, error_result, new_result

__all__ = ["ExecutionResult", "ResultType", "error_result", "new_result"]
