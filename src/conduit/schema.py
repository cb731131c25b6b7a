from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from conduit.commands.registry import CommandDescriptor
from conduit.execution.result import ExecutionResult
from conduit.text import TextLocation


class TextPositionDTO(BaseModel):
    line: int
    column: int


class TextLocationDTO(BaseModel):
    document_id: str
    start: TextPositionDTO
    end: TextPositionDTO

    @classmethod
    def from_location(cls, location: TextLocation | None) -> Optional["TextLocationDTO"]:
        if location is None:
            return None
        interval = location.text_interval
        return cls(
            document_id=location.document_id,
            start=TextPositionDTO(line=interval.start.line, column=interval.start.column),
            end=TextPositionDTO(line=interval.end.line, column=interval.end.column),
        )


class ExecutionResultDTO(BaseModel):
    ids: List[str]
    type: str
    message: str
    log_message: Optional[str] = None
    location: Optional[TextLocationDTO] = None

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecutionResultDTO":
        return cls(
            ids=list(result.ids),
            type=result.type.value,
            message=result.message,
            log_message=result.log_message,
            location=TextLocationDTO.from_location(result.location),
        )


class CommandDTO(BaseModel):
    entity_path: str
    id: str
    title: str
    location: Optional[TextLocationDTO] = None
    executable_args: Dict[str, str] = {}

    @classmethod
    def from_descriptor(cls, descriptor: CommandDescriptor) -> "CommandDTO":
        return cls(
            entity_path=descriptor.entity_path,
            id=descriptor.id,
            title=descriptor.title,
            location=TextLocationDTO.from_location(descriptor.location),
            executable_args=dict(descriptor.executable_args),
        )


class ExecuteCommandRequest(BaseModel):
    uri: str
    section_index: Optional[int] = None
    entity_path: str
    command_id: str
    executable_args: Dict[str, str] = {}
    input_parameters: Dict[str, Any] = {}


class TDSFilterDTO(BaseModel):
    column: str
    operation: str
    value: Any = None


class TDSSortDTO(BaseModel):
    column: str
    order: str = "asc"


class TDSRequestDTO(BaseModel):
    """A tabular-data query a grid client applies on top of a function result."""

    columns: List[str] = []
    filter: List[TDSFilterDTO] = []
    sort: List[TDSSortDTO] = []
    group_by: List[str] = []
    start_row: int = 0
    end_row: Optional[int] = None


class TDSQueryRequest(BaseModel):
    uri: str
    section_index: Optional[int] = None
    entity_path: str
    request_id: str = Field(min_length=1)
    request: TDSRequestDTO = TDSRequestDTO()
    input_parameters: Dict[str, Any] = {}


class CancelRequest(BaseModel):
    request_id: str = Field(min_length=1)


class CancelResponseDTO(BaseModel):
    request_id: str
    cancelled: bool
