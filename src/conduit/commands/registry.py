from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from conduit.text import TextLocation


@dataclass(frozen=True)
class CommandDescriptor:
    entity_path: str
    id: str
    title: str
    location: TextLocation | None = None
    executable_args: Mapping[str, str] = field(default_factory=dict)


class CommandCollector:
    """Registration callback handed to ``collect_commands``.

    Keeps descriptors in the order they were offered and ignores a repeated
    ``(entity_path, id)`` pair.
    """

    def __init__(self) -> None:
        self._descriptors: list[CommandDescriptor] = []
        self._seen: set[tuple[str, str]] = set()

    def __call__(
        self,
        entity_path: str,
        command_id: str,
        title: str,
        location: TextLocation | None,
        executable_args: Mapping[str, str] | None = None,
    ) -> None:
        key = (entity_path, command_id)
        if key in self._seen:
            return
        self._seen.add(key)
        self._descriptors.append(
            CommandDescriptor(
                entity_path=entity_path,
                id=command_id,
                title=title,
                location=location,
                executable_args=dict(executable_args or {}),
            )
        )

    def descriptors(self) -> list[CommandDescriptor]:
        return list(self._descriptors)
