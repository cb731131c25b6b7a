"""Invariant markers for the dispatch core."""

from __future__ import annotations

from typing import NoReturn

from conduit.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    The env payload is diagnostic metadata carried on the raised exception.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)
