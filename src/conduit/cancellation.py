"""Cooperative, per-request cancellation.

A token is created for one request id, threaded into the handling call and
polled by code doing long-running work. Nothing here interrupts a thread: a
handler notices cancellation the next time it calls ``check()`` (or
``check_cancelled()`` for the token carried by the current context).
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Callable, Iterator

from conduit.exceptions import RequestAlreadyRunning, RequestCancelled
from conduit.invariants import never

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self, request_id: str) -> None:
        if not request_id:
            never("cancellation token requires a request id")
        self.request_id = str(request_id)
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f"CancellationToken({self.request_id!r}, cancelled={self.is_cancelled()})"

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback run once on cancellation (now, if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def check(self) -> None:
        if self._event.is_set():
            raise RequestCancelled(self.request_id)


class CancellationRegistry:
    """Live tokens keyed by request id, owned by the server."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[str, CancellationToken] = {}

    def __contains__(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._tokens

    @contextmanager
    def scope(self, request_id: str) -> Iterator[CancellationToken]:
        token = CancellationToken(request_id)
        with self._lock:
            if request_id in self._tokens:
                raise RequestAlreadyRunning(request_id)
            self._tokens[request_id] = token
        try:
            yield token
        finally:
            with self._lock:
                self._tokens.pop(request_id, None)

    def cancel(self, request_id: str) -> bool:
        with self._lock:
            token = self._tokens.get(request_id)
        if token is None:
            logger.debug("cancel for unknown or finished request %s", request_id)
            return False
        token.cancel()
        return True


_cancellation_var: ContextVar[CancellationToken | None] = ContextVar(
    "conduit_cancellation",
    default=None,
)


def set_cancellation(token: CancellationToken) -> Token:
    if token is None:
        never("cancellation carrier missing")
    return _cancellation_var.set(token)


def reset_cancellation(token: Token) -> None:
    _cancellation_var.reset(token)


@contextmanager
def cancellation_scope(token: CancellationToken):
    context_token = set_cancellation(token)
    try:
        yield token
    finally:
        reset_cancellation(context_token)


def check_cancelled() -> None:
    token = _cancellation_var.get()
    if token is not None:
        token.check()
