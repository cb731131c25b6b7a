"""Grammar extension for runtime constructs.

Other extensions delegate here for the references a runtime value holds,
whether it points at a runtime element or declares one inline.
"""

from __future__ import annotations

import itertools

from conduit.extension import GrammarExtension
from conduit.model import EngineRuntime, PackageableElement, Runtime, RuntimePointer, RuntimeValue
from conduit.references import (
    ReferenceStream,
    element_reference,
    pointer_references,
    stereotype_references,
    tagged_value_references,
)
from conduit.state import SectionState


class RuntimeExtension(GrammarExtension):
    name = "Runtime"
    keywords = ("Runtime", "import")

    def get_runtime_references(self, runtime: RuntimeValue | None) -> ReferenceStream:
        match runtime:
            case RuntimePointer(path=path, source=source):
                yield element_reference(path, source)
            case EngineRuntime() as engine:
                yield from pointer_references(engine.mappings)
                yield from pointer_references(engine.connections)
            case _:
                return

    def get_reference_resolvers(
        self,
        section: SectionState,
        element: PackageableElement,
    ) -> ReferenceStream:
        match element:
            case Runtime() as runtime:
                return itertools.chain(
                    stereotype_references(runtime.stereotypes),
                    tagged_value_references(runtime.tagged_values),
                    self.get_runtime_references(runtime.runtime),
                )
            case _:
                return iter(())
