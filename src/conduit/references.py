"""Deferred lookups from a symbolic pointer in source to its definition.

Discovery yields ``ReferenceResolver | None`` items lazily. A None item marks a
reference that cannot be anchored (no source span); it never stops the rest
of the sequence. A present resolver may still resolve to None when its target
no longer exists in the compiled model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, TypeAlias

from conduit.model import (
    ElementPointer,
    Expression,
    Lambda,
    StereotypePointer,
    TaggedValue,
)
from conduit.state import CompiledModel
from conduit.text import TextLocation, TextPosition

ResolveFn: TypeAlias = Callable[[CompiledModel], TextLocation | None]


@dataclass(frozen=True)
class ReferenceResolver:
    location: TextLocation
    resolver: ResolveFn

    def resolve(self, model: CompiledModel) -> TextLocation | None:
        return self.resolver(model)

    def covers(self, document_id: str, position: TextPosition) -> bool:
        return self.location.document_id == document_id and self.location.contains(position)


ReferenceStream: TypeAlias = Iterator[ReferenceResolver | None]


def new_reference_resolver(
    location: TextLocation | None,
    resolver: ResolveFn,
) -> ReferenceResolver | None:
    if location is None:
        return None
    return ReferenceResolver(location=location, resolver=resolver)


def element_reference(path: str | None, location: TextLocation | None) -> ReferenceResolver | None:
    if path is None:
        return None
    return new_reference_resolver(location, lambda model: model.resolve_element(path))


def pointer_references(pointers: Iterable[ElementPointer]) -> ReferenceStream:
    for pointer in pointers:
        yield element_reference(pointer.path, pointer.source)


def stereotype_references(stereotypes: Iterable[StereotypePointer]) -> ReferenceStream:
    for stereotype in stereotypes:
        yield _stereotype_reference(stereotype)


def _stereotype_reference(stereotype: StereotypePointer) -> ReferenceResolver | None:
    return new_reference_resolver(
        stereotype.source,
        lambda model: model.resolve_stereotype(stereotype.profile, stereotype.value),
    )


def tagged_value_references(tagged_values: Iterable[TaggedValue]) -> ReferenceStream:
    for tagged_value in tagged_values:
        yield _tag_reference(tagged_value)


def _tag_reference(tagged_value: TaggedValue) -> ReferenceResolver | None:
    return new_reference_resolver(
        tagged_value.source,
        lambda model: model.resolve_tag(tagged_value.profile, tagged_value.tag),
    )


def expression_references(expression: Expression | None) -> ReferenceStream:
    """Pre-order walk yielding one item per node that points at an element."""
    if expression is None:
        return
    if expression.reference is not None:
        yield element_reference(expression.reference, expression.source)
    for child in expression.children:
        yield from expression_references(child)


def lambda_references(func: Lambda | None) -> ReferenceStream:
    if func is None:
        return
    for expression in func.body:
        yield from expression_references(expression)


def find_resolver(
    resolvers: Iterable[ReferenceResolver | None],
    document_id: str,
    position: TextPosition,
) -> ReferenceResolver | None:
    for resolver in resolvers:
        if resolver is not None and resolver.covers(document_id, position):
            return resolver
    return None
