"""JSON protocol models: the default compiled-model provider.

A document is a JSON object holding sections, each naming its grammar and
listing serialized elements. Source spans are optional everywhere; where
present they are ``{"start": [line, column], "end": [line, column]}`` in the
enclosing document, zero-based and end-inclusive.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Annotated, Callable, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from conduit.exceptions import CompileError
from conduit.json_types import JSONObject
from conduit.model import (
    CompiledService,
    ElementPointer,
    EngineRuntime,
    Expression,
    Function,
    KeyedExecutionParameter,
    Lambda,
    LegacyTest,
    Mapping,
    PackageableElement,
    PostValidation,
    PostValidationAssertion,
    Profile,
    ProfileEntry,
    PureMultiExecution,
    PureSingleExecution,
    Runtime,
    RuntimePointer,
    Service,
    StereotypePointer,
    TaggedValue,
    TestCase,
    TestSuite,
)
from conduit.registration import PROTOCOL_NAME, PROTOCOL_VERSION
from conduit.state import CompileResult, CompiledModel, DocumentState, ParseResult, SectionState
from conduit.text import TextLocation

logger = logging.getLogger(__name__)


class SpanDTO(BaseModel):
    start: Tuple[int, int]
    end: Tuple[int, int]

    @model_validator(mode="after")
    def _ordered(self) -> "SpanDTO":
        if min(*self.start, *self.end) < 0:
            raise ValueError(f"span positions must be non-negative: {self.start} to {self.end}")
        if self.end < self.start:
            raise ValueError(f"span ends before it starts: {self.start} to {self.end}")
        return self

    def to_location(self, document_id: str) -> TextLocation:
        return TextLocation.of(document_id, *self.start, *self.end)


def _location(span: Optional[SpanDTO], document_id: str) -> TextLocation | None:
    return None if span is None else span.to_location(document_id)


class StereotypeDTO(BaseModel):
    profile: str
    value: str
    source: Optional[SpanDTO] = None


class TaggedValueDTO(BaseModel):
    profile: str
    tag: str
    value: str = ""
    source: Optional[SpanDTO] = None


class PointerDTO(BaseModel):
    path: str
    source: Optional[SpanDTO] = None

    def to_model(self, document_id: str) -> ElementPointer:
        return ElementPointer(self.path, _location(self.source, document_id))


class ExpressionDTO(BaseModel):
    kind: str
    source: Optional[SpanDTO] = None
    reference: Optional[str] = None
    children: List["ExpressionDTO"] = []

    def to_model(self, document_id: str) -> Expression:
        return Expression(
            kind=self.kind,
            source=_location(self.source, document_id),
            reference=self.reference,
            children=tuple(child.to_model(document_id) for child in self.children),
        )


class LambdaDTO(BaseModel):
    parameters: List[str] = []
    body: List[ExpressionDTO] = []
    source: Optional[SpanDTO] = None

    def to_model(self, document_id: str) -> Lambda:
        return Lambda(
            parameters=tuple(self.parameters),
            body=tuple(expression.to_model(document_id) for expression in self.body),
            source=_location(self.source, document_id),
        )


class RuntimePointerDTO(BaseModel):
    kind: Literal["pointer"] = "pointer"
    path: str
    source: Optional[SpanDTO] = None

    def to_model(self, document_id: str) -> RuntimePointer:
        return RuntimePointer(self.path, _location(self.source, document_id))


class EngineRuntimeDTO(BaseModel):
    kind: Literal["engine"] = "engine"
    mappings: List[PointerDTO] = []
    connections: List[PointerDTO] = []

    def to_model(self, document_id: str) -> EngineRuntime:
        return EngineRuntime(
            mappings=tuple(pointer.to_model(document_id) for pointer in self.mappings),
            connections=tuple(pointer.to_model(document_id) for pointer in self.connections),
        )


RuntimeDTO = Annotated[Union[RuntimePointerDTO, EngineRuntimeDTO], Field(discriminator="kind")]


def _runtime(runtime: Optional[RuntimeDTO], document_id: str):
    return None if runtime is None else runtime.to_model(document_id)


class SingleExecutionDTO(BaseModel):
    kind: Literal["single"] = "single"
    func: Optional[LambdaDTO] = None
    mapping: Optional[str] = None
    mapping_source: Optional[SpanDTO] = None
    runtime: Optional[RuntimeDTO] = None
    execution_options: Dict[str, str] = {}

    def to_model(self, document_id: str) -> PureSingleExecution:
        return PureSingleExecution(
            func=None if self.func is None else self.func.to_model(document_id),
            mapping=self.mapping,
            runtime=_runtime(self.runtime, document_id),
            execution_options=tuple(sorted(self.execution_options.items())),
            mapping_source=_location(self.mapping_source, document_id),
        )


class KeyedExecutionParameterDTO(BaseModel):
    key: str
    mapping: Optional[str] = None
    mapping_source: Optional[SpanDTO] = None
    runtime: Optional[RuntimeDTO] = None
    execution_options: Dict[str, str] = {}
    source: Optional[SpanDTO] = None

    def to_model(self, document_id: str) -> KeyedExecutionParameter:
        return KeyedExecutionParameter(
            key=self.key,
            mapping=self.mapping,
            runtime=_runtime(self.runtime, document_id),
            execution_options=tuple(sorted(self.execution_options.items())),
            mapping_source=_location(self.mapping_source, document_id),
            source=_location(self.source, document_id),
        )


class MultiExecutionDTO(BaseModel):
    kind: Literal["multi"] = "multi"
    func: Optional[LambdaDTO] = None
    execution_key: str
    execution_parameters: List[KeyedExecutionParameterDTO] = []

    def to_model(self, document_id: str) -> PureMultiExecution:
        return PureMultiExecution(
            func=None if self.func is None else self.func.to_model(document_id),
            execution_key=self.execution_key,
            execution_parameters=tuple(
                parameter.to_model(document_id) for parameter in self.execution_parameters
            ),
        )


ExecutionDTO = Annotated[Union[SingleExecutionDTO, MultiExecutionDTO], Field(discriminator="kind")]


class TestCaseDTO(BaseModel):
    __test__ = False

    id: str
    source: Optional[SpanDTO] = None


class TestSuiteDTO(BaseModel):
    __test__ = False

    id: str
    tests: List[TestCaseDTO] = []
    source: Optional[SpanDTO] = None

    def to_model(self, document_id: str) -> TestSuite:
        return TestSuite(
            id=self.id,
            tests=tuple(TestCase(test.id, _location(test.source, document_id)) for test in self.tests),
            source=_location(self.source, document_id),
        )


class LegacyTestDTO(BaseModel):
    data: str = ""
    source: Optional[SpanDTO] = None


class AssertionDTO(BaseModel):
    id: str
    assertion: Optional[ExpressionDTO] = None


class PostValidationDTO(BaseModel):
    description: str = ""
    parameters: List[ExpressionDTO] = []
    assertions: List[AssertionDTO] = []

    def to_model(self, document_id: str) -> PostValidation:
        return PostValidation(
            description=self.description,
            parameters=tuple(parameter.to_model(document_id) for parameter in self.parameters),
            assertions=tuple(
                PostValidationAssertion(
                    id=assertion.id,
                    assertion=None if assertion.assertion is None else assertion.assertion.to_model(document_id),
                )
                for assertion in self.assertions
            ),
        )


class ElementDTO(BaseModel):
    path: str
    source: Optional[SpanDTO] = None
    stereotypes: List[StereotypeDTO] = []
    tagged_values: List[TaggedValueDTO] = []

    def common(self, document_id: str) -> dict[str, object]:
        return {
            "path": self.path,
            "source": _location(self.source, document_id),
            "stereotypes": tuple(
                StereotypePointer(item.profile, item.value, _location(item.source, document_id))
                for item in self.stereotypes
            ),
            "tagged_values": tuple(
                TaggedValue(item.profile, item.tag, item.value, _location(item.source, document_id))
                for item in self.tagged_values
            ),
        }


class ServiceDTO(ElementDTO):
    kind: Literal["service"] = "service"
    pattern: str = ""
    documentation: str = ""
    execution: Optional[ExecutionDTO] = None
    test_suites: List[TestSuiteDTO] = []
    legacy_test: Optional[LegacyTestDTO] = None
    post_validations: List[PostValidationDTO] = []

    def to_model(self, document_id: str) -> Service:
        return Service(
            **self.common(document_id),
            pattern=self.pattern,
            documentation=self.documentation,
            execution=None if self.execution is None else self.execution.to_model(document_id),
            test_suites=tuple(suite.to_model(document_id) for suite in self.test_suites),
            legacy_test=(
                None
                if self.legacy_test is None
                else LegacyTest(_location(self.legacy_test.source, document_id), self.legacy_test.data)
            ),
        )

    def compiled(self, document_id: str) -> CompiledService:
        func = None
        if self.execution is not None and self.execution.func is not None:
            func = self.execution.func.to_model(document_id)
        return CompiledService(
            path=self.path,
            func=func,
            post_validations=tuple(item.to_model(document_id) for item in self.post_validations),
        )


class MappingDTO(ElementDTO):
    kind: Literal["mapping"] = "mapping"

    def to_model(self, document_id: str) -> Mapping:
        return Mapping(**self.common(document_id))


class RuntimeElementDTO(ElementDTO):
    kind: Literal["runtime"] = "runtime"
    mappings: List[PointerDTO] = []
    connections: List[PointerDTO] = []

    def to_model(self, document_id: str) -> Runtime:
        return Runtime(
            **self.common(document_id),
            runtime=EngineRuntimeDTO(mappings=self.mappings, connections=self.connections).to_model(document_id),
        )


class ProfileEntryDTO(BaseModel):
    name: str
    source: Optional[SpanDTO] = None


class ProfileDTO(ElementDTO):
    kind: Literal["profile"] = "profile"
    stereotype_entries: List[ProfileEntryDTO] = []
    tag_entries: List[ProfileEntryDTO] = []

    def to_model(self, document_id: str) -> Profile:
        return Profile(
            **self.common(document_id),
            stereotype_entries=tuple(
                ProfileEntry(entry.name, _location(entry.source, document_id))
                for entry in self.stereotype_entries
            ),
            tag_entries=tuple(
                ProfileEntry(entry.name, _location(entry.source, document_id))
                for entry in self.tag_entries
            ),
        )


class FunctionDTO(ElementDTO):
    kind: Literal["function"] = "function"
    func: Optional[LambdaDTO] = None
    test_suites: List[TestSuiteDTO] = []

    def to_model(self, document_id: str) -> Function:
        return Function(
            **self.common(document_id),
            func=None if self.func is None else self.func.to_model(document_id),
            test_suites=tuple(suite.to_model(document_id) for suite in self.test_suites),
        )


AnyElementDTO = Annotated[
    Union[ServiceDTO, MappingDTO, RuntimeElementDTO, ProfileDTO, FunctionDTO],
    Field(discriminator="kind"),
]


class SectionDTO(BaseModel):
    grammar: str
    elements: List[AnyElementDTO] = []


@dataclass(frozen=True)
class UnreadableSection:
    """Stand-in body for a document that is not a JSON protocol document."""

    message: str


def _section_bodies(text: str) -> list[tuple[str, object]]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        return [("", UnreadableSection(f"Invalid JSON: {exc}"))]
    if not isinstance(data, dict) or not isinstance(data.get("sections"), list):
        return [("", UnreadableSection("Expected an object with a 'sections' list"))]
    bodies: list[tuple[str, object]] = []
    for raw in data["sections"]:
        grammar = raw.get("grammar") if isinstance(raw, dict) else None
        bodies.append((grammar if isinstance(grammar, str) else "", raw))
    return bodies


class JsonModelProvider:
    def split(self, document: DocumentState) -> Sequence[tuple[str, object]]:
        return _section_bodies(document.text)

    def _section_dto(self, section: SectionState) -> SectionDTO:
        match section.body:
            case UnreadableSection(message=message):
                raise CompileError(message)
            case _:
                return SectionDTO.model_validate(section.body)

    def parse(self, section: SectionState) -> ParseResult:
        try:
            dto = self._section_dto(section)
        except CompileError as exc:
            return ParseResult(error=exc)
        except ValidationError as exc:
            return ParseResult(error=CompileError(f"{section.document_id}: {exc}"))
        document_id = section.document_id
        return ParseResult(elements=tuple(element.to_model(document_id) for element in dto.elements))

    def compile(
        self,
        sections: Sequence[SectionState],
        parse: Callable[[SectionState], ParseResult],
    ) -> CompileResult:
        elements: list[PackageableElement] = []
        compiled_forms: dict[str, object] = {}
        seen: set[str] = set()
        for section in sections:
            parse_result = parse(section)
            if parse_result.error is not None:
                return CompileResult(error=parse_result.error)
            for element in parse_result.elements:
                if element.path in seen:
                    return CompileResult(
                        error=CompileError(f"Duplicate element: {element.path}", location=element.source)
                    )
                seen.add(element.path)
                elements.append(element)
            for dto in self._section_dto(section).elements:
                if isinstance(dto, ServiceDTO):
                    compiled_forms[dto.path] = dto.compiled(section.document_id)
        logger.debug("compiled %d element(s)", len(elements))
        return CompileResult(model=CompiledModel.build(elements, compiled_forms))

    def serialize(
        self,
        sections: Sequence[SectionState],
        *,
        origin: JSONObject | None = None,
    ) -> JSONObject:
        elements: list[JSONObject] = []
        for section in sections:
            dto = self._section_dto(section)
            elements.extend(element.model_dump(mode="json", exclude_none=True) for element in dto.elements)
        payload: JSONObject = {
            "_type": "data",
            "serializer": {"name": PROTOCOL_NAME, "version": PROTOCOL_VERSION},
            "elements": elements,
        }
        if origin is not None:
            payload["origin"] = origin
        return payload
