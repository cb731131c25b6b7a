"""Exception types raised inside the dispatch core.

Everything except ``NeverThrown`` is a domain error that the command boundary
turns into an ERROR-typed execution result.
"""

from __future__ import annotations


class NeverThrown(RuntimeError):
    """Raised by ``never()`` when a path assumed unreachable is reached."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})


class UnmatchedExecutionKey(ValueError):
    """No keyed execution variant matches the runtime argument value."""

    def __init__(self, execution_key: str, value: object):
        super().__init__(f"Missing multi execution entry for value: {value}")
        self.execution_key = execution_key
        self.value = value


class RequestCancelled(RuntimeError):
    def __init__(self, request_id: str):
        super().__init__(f"Request cancelled: {request_id}")
        self.request_id = request_id


class ExecutionServerError(RuntimeError):
    """The external execution server rejected or failed a request."""

    def __init__(self, message: str, *, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class CompileError(RuntimeError):
    """A section (or the project around it) has no usable compiled form."""

    def __init__(self, message: str, *, location: object = None):
        super().__init__(message)
        self.location = location


class CollaboratorMissing(RuntimeError):
    def __init__(self, collaborator: str):
        super().__init__(f"No {collaborator} is configured")
        self.collaborator = collaborator


class RequestAlreadyRunning(RuntimeError):
    def __init__(self, request_id: str):
        super().__init__(f"Request already running: {request_id}")
        self.request_id = request_id
