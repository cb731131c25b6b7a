"""Wiring shared by the language server and the CLI.

Builds the collaborators and global state from settings, and routes a request
naming a document and an element to the grammar extension owning it.
"""

from __future__ import annotations

import logging
import urllib.request
from pathlib import Path
from typing import Callable, Iterable, Mapping

from conduit.cancellation import CancellationToken
from conduit.collaborators import Collaborators
from conduit.commands.registry import CommandDescriptor
from conduit.completion import Completion
from conduit.config import ServerSettings, load_object, load_settings
from conduit.execution.function_support import FunctionExecutionSupport
from conduit.execution.result import ExecutionResult, ResultType, new_result
from conduit.protocol_json import JsonModelProvider
from conduit.registration import ExecutionServerClient
from conduit.schema import ExecuteCommandRequest, TDSQueryRequest
from conduit.state import GlobalState, SectionState
from conduit.text import TextLocation, TextPosition

logger = logging.getLogger(__name__)


def build_collaborators(
    settings: ServerSettings,
    *,
    urlopen_fn: Callable[..., object] = urllib.request.urlopen,
    load_fn: Callable[[str], object] = load_object,
) -> Collaborators:
    def configured(key: str) -> object | None:
        spec = settings.collaborator_spec(key)
        if spec is None:
            return None
        logger.info("loading %s from %s", key, spec)
        return load_fn(spec)

    execution_server = None
    if settings.engine_configured:
        execution_server = ExecutionServerClient(
            settings.engine_url,
            timeout_seconds=settings.engine_timeout_seconds,
            urlopen_fn=urlopen_fn,
        )
    return Collaborators(
        model_provider=JsonModelProvider(),
        plan_generator=configured("plan_generator"),
        plan_executor=configured("plan_executor"),
        test_runner=configured("test_runner"),
        execution_server=execution_server,
    )


def build_state(
    root: Path | None = None,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> GlobalState:
    settings = load_settings(root=root, config_path=config_path, env=env)
    return GlobalState(build_collaborators(settings), settings=settings)


def document_id_for(path: Path) -> str:
    return path.resolve().as_uri()


def load_documents(state: GlobalState, paths: Iterable[Path]) -> list[str]:
    document_ids: list[str] = []
    for path in paths:
        document_id = document_id_for(path)
        state.set_document(document_id, path.read_text(encoding="utf-8"))
        document_ids.append(document_id)
    return document_ids


def locate_section(
    state: GlobalState,
    document_id: str,
    entity_path: str,
    section_index: int | None = None,
) -> SectionState | None:
    if section_index is None:
        return state.find_section(document_id, entity_path)
    for section in state.sections(document_id):
        if section.index == section_index:
            return section
    return None


def run_command(state: GlobalState, request: ExecuteCommandRequest) -> list[ExecutionResult]:
    section = locate_section(state, request.uri, request.entity_path, request.section_index)
    if section is None:
        return [
            new_result(request.entity_path, ResultType.ERROR, f"Unable to find entity {request.entity_path}")
        ]
    extension = state.extension_for(section)
    if extension is None:
        return [
            new_result(
                request.entity_path,
                ResultType.ERROR,
                f"No grammar extension handles {section.grammar or 'this section'}",
            )
        ]
    return extension.execute(
        section,
        request.entity_path,
        request.command_id,
        request.executable_args,
        request.input_parameters,
    )


def run_tds_query(
    state: GlobalState,
    request: TDSQueryRequest,
    token: CancellationToken,
) -> ExecutionResult:
    section = locate_section(state, request.uri, request.entity_path, request.section_index)
    extension = None if section is None else state.extension_for(section)
    if not isinstance(extension, FunctionExecutionSupport):
        return new_result(
            request.entity_path,
            ResultType.ERROR,
            f"Unable to find executable entity {request.entity_path}",
        )
    return extension.execute_tds_request(
        section,
        request.entity_path,
        request.request,
        request.input_parameters,
        token,
    )


def document_commands(state: GlobalState, document_id: str) -> list[CommandDescriptor]:
    commands: list[CommandDescriptor] = []
    for section in state.sections(document_id):
        extension = state.extension_for(section)
        if extension is not None:
            commands.extend(extension.get_commands(section))
    return commands


def find_definition(state: GlobalState, document_id: str, position: TextPosition) -> TextLocation | None:
    for section in state.sections(document_id):
        extension = state.extension_for(section)
        if extension is None:
            continue
        location = extension.find_definition(section, position)
        if location is not None:
            return location
    return None


def document_completions(state: GlobalState, document_id: str, position: TextPosition) -> list[Completion]:
    completions: list[Completion] = []
    seen_extensions: set[int] = set()
    for section in state.sections(document_id):
        extension = state.extension_for(section)
        if extension is None or id(extension) in seen_extensions:
            continue
        seen_extensions.add(id(extension))
        for completion in extension.get_completions(section, position):
            if completion not in completions:
                completions.append(completion)
    return completions
