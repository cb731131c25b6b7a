"""The outcome record every command, test run and query returns."""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from enum import StrEnum
from typing import Sequence

from conduit.text import TextLocation


class ResultType(StrEnum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ExecutionResult:
    """One outcome unit returned to a client.

    ``ids`` reads hierarchically: an entity path, then optionally a test suite
    id, a test id, and so on. ``location`` lets a client navigate back to the
    code that produced the result (a test case, for instance) and is None when
    there is no sensible anchor.
    """

    ids: tuple[str, ...]
    type: ResultType
    message: str
    log_message: str | None = None
    location: TextLocation | None = None

    def __post_init__(self) -> None:
        if self.ids is None:
            raise TypeError("ids may not be None")
        if isinstance(self.ids, str):
            raise TypeError(f"ids must be a sequence of strings, not a bare string: {self.ids!r}")
        ids = tuple(self.ids)
        for item in ids:
            if not isinstance(item, str):
                raise TypeError(f"id may not be {type(item).__name__}: {item!r}")
        if not ids:
            raise ValueError("ids may not be empty")
        if not isinstance(self.type, ResultType):
            raise TypeError("type is required")
        if self.message is None:
            raise TypeError("message is required")
        object.__setattr__(self, "ids", ids)

    def get_log_message(self, return_message_if_absent: bool = False) -> str | None:
        """Return the log message, falling back to ``message`` when asked."""
        if self.log_message is None and return_message_if_absent:
            return self.message
        return self.log_message

    def __str__(self) -> str:
        ids = ", ".join(f'"{item}"' for item in self.ids)
        return f"ExecutionResult{{ids=[{ids}] type={self.type.value} location={self.location}}}"


def new_result(
    ids: str | Sequence[str],
    type: ResultType,
    message: str,
    log_message: str | None = None,
    location: TextLocation | None = None,
) -> ExecutionResult:
    if isinstance(ids, str):
        ids = (ids,)
    return ExecutionResult(
        ids=tuple(ids),
        type=type,
        message=message,
        log_message=log_message,
        location=location,
    )


def format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def error_result(
    exc: BaseException,
    entity_path: str | Sequence[str],
    *,
    message: str | None = None,
    location: TextLocation | None = None,
) -> ExecutionResult:
    if message is None:
        message = str(exc) or "Error"
    return new_result(
        entity_path,
        ResultType.ERROR,
        message,
        log_message=format_exception(exc),
        location=location,
    )
