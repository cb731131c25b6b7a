"""Per-grammar extension base: command discovery, dispatch, references, tests.

Each construct kind is handled by a ``GrammarExtension`` subclass that fills
in the capability hooks (``get_test_suites``, ``collect_commands``,
``dispatch``, ``get_reference_resolvers``). The public entry points
(``get_commands``, ``execute``, ``get_references``, ``find_definition``)
are the boundary the server calls; ``execute`` never raises.
"""

from __future__ import annotations

import logging
import re
from importlib.metadata import entry_points
from typing import Callable, Iterable, Mapping, Sequence

from conduit.commands import command_ids
from conduit.commands.registry import CommandCollector, CommandDescriptor
from conduit.completion import Completion, keyword_completions
from conduit.execution.result import ExecutionResult, ResultType, error_result, new_result
from conduit.json_types import ExecutableArgs, InputParameters
from conduit.model import PackageableElement, TestSuite
from conduit.references import ReferenceStream, find_resolver
from conduit.state import CompileResult, ParseResult, SectionState
from conduit.testing import select_suites, suite_results
from conduit.text import TextLocation, TextPosition

logger = logging.getLogger(__name__)

GRAMMAR_EXTENSIONS_GROUP = "conduit.grammar_extensions"
TEST_SUITE_ARG = "testSuite"
TEST_ARG = "test"

_WORD_BEFORE_CURSOR = re.compile(r"[A-Za-z_]*$")


class GrammarExtension:
    name: str = ""
    keywords: tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    def get_parse_result(self, section: SectionState) -> ParseResult:
        return section.global_state.parse(section)

    def get_compile_result(self, section: SectionState) -> CompileResult:
        return section.global_state.compile_result()

    def get_test_suites(self, element: PackageableElement) -> Sequence[TestSuite]:
        return ()

    def collect_commands(
        self,
        section: SectionState,
        element: PackageableElement,
        consumer: CommandCollector,
    ) -> None:
        if self.get_test_suites(element):
            consumer(
                element.path,
                command_ids.RUN_TESTS_COMMAND_ID,
                command_ids.RUN_TESTS_COMMAND_TITLE,
                element.source,
            )

    def get_commands(self, section: SectionState) -> list[CommandDescriptor]:
        """Commands currently valid for every element of ``section``, in order."""
        collector = CommandCollector()
        parse_result = self.get_parse_result(section)
        for element in parse_result.elements:
            try:
                self.collect_commands(section, element, collector)
            except Exception:
                logger.exception("collecting commands failed for %s", element.path)
        return collector.descriptors()

    def execute(
        self,
        section: SectionState,
        entity_path: str,
        command_id: str,
        executable_args: ExecutableArgs | None = None,
        input_parameters: InputParameters | None = None,
    ) -> list[ExecutionResult]:
        logger.debug("execute %s on %s", command_id, entity_path)
        try:
            return list(
                self.dispatch(
                    section,
                    entity_path,
                    command_id,
                    dict(executable_args or {}),
                    dict(input_parameters or {}),
                )
            )
        except Exception as exc:
            logger.exception("command %s failed for %s", command_id, entity_path)
            return [error_result(exc, entity_path)]

    def dispatch(
        self,
        section: SectionState,
        entity_path: str,
        command_id: str,
        executable_args: Mapping[str, str],
        input_parameters: Mapping[str, object],
    ) -> Iterable[ExecutionResult]:
        if command_id == command_ids.RUN_TESTS_COMMAND_ID:
            return self.run_tests(section, entity_path, executable_args)
        return [
            new_result(entity_path, ResultType.ERROR, f"Unsupported command: {command_id}")
        ]

    def run_tests(
        self,
        section: SectionState,
        entity_path: str,
        executable_args: Mapping[str, str],
    ) -> list[ExecutionResult]:
        element = self.get_parse_result(section).get_element(entity_path)
        if element is None:
            return [
                new_result(entity_path, ResultType.ERROR, f"Unable to find entity {entity_path}")
            ]
        suites = select_suites(
            self.get_test_suites(element),
            executable_args.get(TEST_SUITE_ARG),
            executable_args.get(TEST_ARG),
        )
        if not suites:
            return [
                new_result(
                    entity_path,
                    ResultType.ERROR,
                    f"Unable to find tests for {entity_path}",
                    location=element.source,
                )
            ]
        compile_result = self.get_compile_result(section)
        if compile_result.has_error():
            return [compile_result.error_result(entity_path)]
        collaborators = section.global_state.collaborators
        outcomes = collaborators.require_test_runner().run_test_suites(
            element,
            suites,
            compile_result.model,
            collaborators.platform_extensions(),
        )
        return suite_results(entity_path, suites, outcomes, element.source)

    def get_reference_resolvers(
        self,
        section: SectionState,
        element: PackageableElement,
    ) -> ReferenceStream:
        return iter(())

    def get_references(self, section: SectionState) -> ReferenceStream:
        for element in self.get_parse_result(section).elements:
            yield from self.get_reference_resolvers(section, element)

    def find_definition(
        self,
        section: SectionState,
        position: TextPosition,
    ) -> TextLocation | None:
        resolver = find_resolver(self.get_references(section), section.document_id, position)
        if resolver is None:
            return None
        compile_result = self.get_compile_result(section)
        if compile_result.has_error():
            return None
        return resolver.resolve(compile_result.model)

    def get_completions(
        self,
        section: SectionState,
        position: TextPosition,
    ) -> list[Completion]:
        line = section.line_up_to(position)
        prefix = _WORD_BEFORE_CURSOR.search(line).group(0)
        return keyword_completions(self.keywords, prefix)


def default_grammar_extensions(
    entry_points_fn: Callable[..., object] = entry_points,
) -> list[GrammarExtension]:
    from conduit.function import FunctionExtension
    from conduit.runtime import RuntimeExtension
    from conduit.service import ServiceExtension

    extensions: list[GrammarExtension] = [ServiceExtension(), RuntimeExtension(), FunctionExtension()]
    for entry_point in entry_points_fn(group=GRAMMAR_EXTENSIONS_GROUP):
        factory = entry_point.load()
        extensions.append(factory())
        logger.debug("loaded grammar extension %s", entry_point.name)
    return extensions
