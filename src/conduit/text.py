"""Source spans used to anchor results and references back to text."""

from __future__ import annotations

from dataclasses import dataclass

from conduit.invariants import never


@dataclass(frozen=True, order=True)
class TextPosition:
    line: int
    column: int

    def __post_init__(self) -> None:
        if self.line < 0 or self.column < 0:
            never("negative text position", line=self.line, column=self.column)


@dataclass(frozen=True, order=True)
class TextInterval:
    start: TextPosition
    end: TextPosition

    def __post_init__(self) -> None:
        if self.end < self.start:
            never("text interval ends before it starts", start=self.start, end=self.end)

    @classmethod
    def of(cls, start_line: int, start_column: int, end_line: int, end_column: int) -> "TextInterval":
        return cls(TextPosition(start_line, start_column), TextPosition(end_line, end_column))

    def contains(self, position: TextPosition) -> bool:
        # End column is inclusive, matching how parsers report source spans.
        return self.start <= position <= self.end


@dataclass(frozen=True, order=True)
class TextLocation:
    document_id: str
    text_interval: TextInterval

    @classmethod
    def of(
        cls,
        document_id: str,
        start_line: int,
        start_column: int,
        end_line: int,
        end_column: int,
    ) -> "TextLocation":
        return cls(
            document_id,
            TextInterval.of(start_line, start_column, end_line, end_column),
        )

    def contains(self, position: TextPosition) -> bool:
        return self.text_interval.contains(position)
