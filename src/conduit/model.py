"""Construct and compiled-form shapes handed to the core by the model provider.

Protocol-level constructs are what a parser yields for a section. Compiled
forms (``CompiledService``) only exist once the project compiled, and carry
the references that semantic analysis recovers: resolved lambda
sub-expressions and post-validation assertions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias

from conduit.text import TextLocation


@dataclass(frozen=True)
class StereotypePointer:
    profile: str
    value: str
    source: TextLocation | None = None


@dataclass(frozen=True)
class TaggedValue:
    profile: str
    tag: str
    value: str
    source: TextLocation | None = None


@dataclass(frozen=True)
class ElementPointer:
    path: str
    source: TextLocation | None = None


@dataclass(frozen=True)
class Expression:
    """A node of an expression tree.

    ``reference`` is the path of the element the node points at (a class in
    ``Person.all()``, a function in ``->filter(...)``) or None for nodes that
    reference nothing, such as literals.
    """

    kind: str
    source: TextLocation | None = None
    reference: str | None = None
    children: tuple["Expression", ...] = ()


@dataclass(frozen=True)
class Lambda:
    parameters: tuple[str, ...] = ()
    body: tuple[Expression, ...] = ()
    source: TextLocation | None = None


@dataclass(frozen=True)
class RuntimePointer:
    path: str
    source: TextLocation | None = None


@dataclass(frozen=True)
class EngineRuntime:
    """A runtime declared inline instead of pointed at."""

    mappings: tuple[ElementPointer, ...] = ()
    connections: tuple[ElementPointer, ...] = ()


RuntimeValue: TypeAlias = RuntimePointer | EngineRuntime


@dataclass(frozen=True)
class PureSingleExecution:
    func: Lambda | None
    mapping: str | None = None
    runtime: RuntimeValue | None = None
    execution_options: tuple[tuple[str, str], ...] = ()
    mapping_source: TextLocation | None = None


@dataclass(frozen=True)
class KeyedExecutionParameter:
    key: str
    mapping: str | None = None
    runtime: RuntimeValue | None = None
    execution_options: tuple[tuple[str, str], ...] = ()
    mapping_source: TextLocation | None = None
    source: TextLocation | None = None


@dataclass(frozen=True)
class PureMultiExecution:
    func: Lambda | None
    execution_key: str
    execution_parameters: tuple[KeyedExecutionParameter, ...] = ()


Execution: TypeAlias = PureSingleExecution | PureMultiExecution


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    id: str
    source: TextLocation | None = None


@dataclass(frozen=True)
class TestSuite:
    __test__ = False

    id: str
    tests: tuple[TestCase, ...] = ()
    source: TextLocation | None = None


@dataclass(frozen=True)
class LegacyTest:
    """An embedded old-style test block; its body is opaque to the core."""

    source: TextLocation | None = None
    data: str = ""


@dataclass(frozen=True, kw_only=True)
class PackageableElement:
    path: str
    source: TextLocation | None = None
    stereotypes: tuple[StereotypePointer, ...] = ()
    tagged_values: tuple[TaggedValue, ...] = ()

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True, kw_only=True)
class Service(PackageableElement):
    pattern: str = ""
    documentation: str = ""
    execution: Execution | None = None
    test_suites: tuple[TestSuite, ...] = ()
    legacy_test: LegacyTest | None = None


@dataclass(frozen=True, kw_only=True)
class Mapping(PackageableElement):
    pass


@dataclass(frozen=True, kw_only=True)
class Runtime(PackageableElement):
    runtime: EngineRuntime = field(default_factory=EngineRuntime)


@dataclass(frozen=True)
class ProfileEntry:
    name: str
    source: TextLocation | None = None


@dataclass(frozen=True, kw_only=True)
class Profile(PackageableElement):
    stereotype_entries: tuple[ProfileEntry, ...] = ()
    tag_entries: tuple[ProfileEntry, ...] = ()

    def stereotype_location(self, name: str) -> TextLocation | None:
        return _entry_location(self.stereotype_entries, name)

    def tag_location(self, name: str) -> TextLocation | None:
        return _entry_location(self.tag_entries, name)


@dataclass(frozen=True, kw_only=True)
class Function(PackageableElement):
    func: Lambda | None = None
    test_suites: tuple[TestSuite, ...] = ()


def _entry_location(entries: tuple[ProfileEntry, ...], name: str) -> TextLocation | None:
    for entry in entries:
        if entry.name == name:
            return entry.source
    return None


@dataclass(frozen=True)
class PostValidationAssertion:
    id: str
    assertion: Expression | None = None


@dataclass(frozen=True)
class PostValidation:
    description: str = ""
    parameters: tuple[Expression, ...] = ()
    assertions: tuple[PostValidationAssertion | None, ...] = ()


@dataclass(frozen=True)
class CompiledService:
    path: str
    func: Lambda | None = None
    post_validations: tuple[PostValidation | None, ...] = ()
