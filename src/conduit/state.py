"""Documents, sections and the compiled-model snapshot shared across requests."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Sequence, TypeVar

from conduit.exceptions import CompileError
from conduit.execution.result import ExecutionResult, error_result
from conduit.json_types import JSONObject
from conduit.model import PackageableElement, Profile
from conduit.text import TextLocation, TextPosition

if TYPE_CHECKING:
    from conduit.collaborators import Collaborators
    from conduit.config import ServerSettings
    from conduit.extension import GrammarExtension

logger = logging.getLogger(__name__)

ExtensionT = TypeVar("ExtensionT")


@dataclass(frozen=True)
class DocumentState:
    document_id: str
    text: str
    version: int = 0

    def line(self, index: int) -> str:
        lines = self.text.splitlines()
        if 0 <= index < len(lines):
            return lines[index]
        return ""


@dataclass(frozen=True)
class SectionState:
    document: DocumentState
    index: int
    grammar: str
    body: object = field(repr=False)
    global_state: GlobalState = field(repr=False, compare=False, hash=False)

    @property
    def document_id(self) -> str:
        return self.document.document_id

    def line_up_to(self, position: TextPosition) -> str:
        return self.document.line(position.line)[: position.column]


@dataclass(frozen=True)
class ParseResult:
    elements: tuple[PackageableElement, ...] = ()
    error: CompileError | None = None

    def get_element(self, path: str) -> PackageableElement | None:
        for element in self.elements:
            if element.path == path:
                return element
        return None


@dataclass(frozen=True)
class CompiledModel:
    """Read-only snapshot of the compiled project."""

    elements: Mapping[str, PackageableElement]
    compiled_forms: Mapping[str, object]

    @classmethod
    def build(
        cls,
        elements: Iterable[PackageableElement],
        compiled_forms: Mapping[str, object] | None = None,
    ) -> CompiledModel:
        return cls(
            elements=MappingProxyType({element.path: element for element in elements}),
            compiled_forms=MappingProxyType(dict(compiled_forms or {})),
        )

    def element(self, path: str) -> PackageableElement | None:
        return self.elements.get(path)

    def compiled_form(self, path: str) -> object | None:
        return self.compiled_forms.get(path)

    def resolve_element(self, path: str) -> TextLocation | None:
        element = self.elements.get(path)
        return None if element is None else element.source

    def resolve_stereotype(self, profile: str, value: str) -> TextLocation | None:
        match self.elements.get(profile):
            case Profile() as found:
                return found.stereotype_location(value)
            case _:
                return None

    def resolve_tag(self, profile: str, tag: str) -> TextLocation | None:
        match self.elements.get(profile):
            case Profile() as found:
                return found.tag_location(tag)
            case _:
                return None


@dataclass(frozen=True)
class CompileResult:
    model: CompiledModel | None = None
    error: CompileError | None = None

    def has_error(self) -> bool:
        return self.error is not None or self.model is None

    def error_result(self, entity_path: str) -> ExecutionResult:
        error = self.error or CompileError("Project has no compiled model")
        location = error.location if isinstance(error.location, TextLocation) else None
        return error_result(error, entity_path, location=location)


class GlobalState:
    """Workspace-wide state: open documents, their sections, cached results.

    Parse and compile results are immutable snapshots. Changing a document
    drops the cached snapshots; requests already holding one keep using it.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        *,
        settings: ServerSettings | None = None,
        extensions: Sequence[GrammarExtension] | None = None,
    ) -> None:
        from conduit.config import ServerSettings
        from conduit.extension import default_grammar_extensions

        self.collaborators = collaborators
        self.settings = settings if settings is not None else ServerSettings()
        self.extensions: tuple[GrammarExtension, ...] = tuple(
            extensions if extensions is not None else default_grammar_extensions()
        )
        self._lock = threading.RLock()
        self._documents: dict[str, DocumentState] = {}
        self._sections: dict[str, tuple[SectionState, ...]] = {}
        self._parse_results: dict[tuple[str, int], ParseResult] = {}
        self._compile_result: CompileResult | None = None
        self._generation = 0

    def set_document(self, document_id: str, text: str, version: int = 0) -> tuple[SectionState, ...]:
        document = DocumentState(document_id=document_id, text=text, version=version)
        split = self.collaborators.model_provider.split(document)
        sections = tuple(
            SectionState(
                document=document,
                index=index,
                grammar=grammar,
                body=body,
                global_state=self,
            )
            for index, (grammar, body) in enumerate(split)
        )
        with self._lock:
            self._documents[document_id] = document
            self._sections[document_id] = sections
            self._invalidate()
        logger.debug("document %s v%s: %d section(s)", document_id, version, len(sections))
        return sections

    def remove_document(self, document_id: str) -> None:
        with self._lock:
            self._documents.pop(document_id, None)
            self._sections.pop(document_id, None)
            self._invalidate()

    def _invalidate(self) -> None:
        self._generation += 1
        self._parse_results.clear()
        self._compile_result = None

    def document(self, document_id: str) -> DocumentState | None:
        with self._lock:
            return self._documents.get(document_id)

    def sections(self, document_id: str | None = None) -> tuple[SectionState, ...]:
        with self._lock:
            if document_id is not None:
                return self._sections.get(document_id, ())
            return tuple(
                section
                for key in sorted(self._sections)
                for section in self._sections[key]
            )

    def parse(self, section: SectionState) -> ParseResult:
        key = (section.document_id, section.index)
        with self._lock:
            current = self._is_current(section)
            cached = self._parse_results.get(key) if current else None
        if cached is not None:
            return cached
        result = self.collaborators.model_provider.parse(section)
        if current:
            with self._lock:
                if self._is_current(section):
                    self._parse_results[key] = result
        return result

    def _is_current(self, section: SectionState) -> bool:
        return self._documents.get(section.document_id) is section.document

    def compile_result(self) -> CompileResult:
        with self._lock:
            if self._compile_result is not None:
                return self._compile_result
            generation = self._generation
            sections = self.sections()
        result = self.collaborators.model_provider.compile(sections, self.parse)
        if result.error is not None:
            logger.info("project compile failed: %s", result.error)
        with self._lock:
            if self._generation == generation:
                self._compile_result = result
        return result

    def serialize_model(self, *, origin: JSONObject | None = None) -> JSONObject:
        return self.collaborators.model_provider.serialize(
            self.sections(),
            origin=origin,
        )

    def extension_for(self, section: SectionState) -> GrammarExtension | None:
        for extension in self.extensions:
            if extension.name == section.grammar:
                return extension
        return None

    def find_extension(self, kind: type[ExtensionT]) -> ExtensionT | None:
        for extension in self.extensions:
            if isinstance(extension, kind):
                return extension
        return None

    def find_section(self, document_id: str, entity_path: str) -> SectionState | None:
        for section in self.sections(document_id):
            if self.parse(section).get_element(entity_path) is not None:
                return section
        return None
