from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from pygls.lsp.server import LanguageServer
from pydantic import ValidationError
from lsprotocol.types import (
    TEXT_DOCUMENT_CODE_LENS,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DEFINITION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    CodeLens,
    CodeLensParams,
    Command,
    CompletionItem,
    CompletionItemKind,
    CompletionParams,
    DefinitionParams,
    Location,
    Position,
    Range,
)

from conduit import __version__
from conduit.cancellation import CancellationRegistry
from conduit.commands import command_ids
from conduit.exceptions import RequestAlreadyRunning
from conduit.execution.result import ResultType, new_result
from conduit.invariants import never
from conduit.json_types import JSONObject
from conduit.schema import (
    CancelRequest,
    CancelResponseDTO,
    CommandDTO,
    ExecuteCommandRequest,
    ExecutionResultDTO,
    TDSQueryRequest,
)
from conduit.state import GlobalState
from conduit.text import TextLocation, TextPosition
from conduit import workspace

logger = logging.getLogger(__name__)

server = LanguageServer("conduit", __version__)

_state: GlobalState | None = None
_requests = CancellationRegistry()


def configure(state: GlobalState | None) -> None:
    """Install the state the handlers use; None rebuilds it on next use."""
    global _state
    _state = state


def _global_state(ls: LanguageServer) -> GlobalState:
    global _state
    if _state is None:
        root = Path(ls.workspace.root_path) if ls.workspace.root_path else None
        _state = workspace.build_state(root=root)
        logger.info("workspace state built for %s", root)
    return _state


def _require_payload(payload: object, *, command: str) -> dict[str, object]:
    # Clients send the request object as the single command argument.
    if isinstance(payload, list) and len(payload) == 1:
        payload = payload[0]
    if payload is None:
        never("missing command payload", command=command)
    if not isinstance(payload, dict):
        never(
            "invalid command payload type",
            command=command,
            payload_type=type(payload).__name__,
        )
    return payload


def _results_payload(results) -> JSONObject:
    return {"results": [ExecutionResultDTO.from_result(result).model_dump() for result in results]}


def _validation_failure(payload: dict[str, object], exc: ValidationError) -> JSONObject:
    entity_path = payload.get("entity_path")
    ids = entity_path if isinstance(entity_path, str) and entity_path else "request"
    return _results_payload([new_result(ids, ResultType.ERROR, str(exc))])


def _to_range(location: TextLocation) -> Range:
    interval = location.text_interval
    # Locations are end-inclusive; LSP ranges are end-exclusive.
    return Range(
        start=Position(line=interval.start.line, character=interval.start.column),
        end=Position(line=interval.end.line, character=interval.end.column + 1),
    )


def _position(position: Position) -> TextPosition:
    return TextPosition(position.line, position.character)


@server.command(command_ids.EXECUTE_WORKSPACE_COMMAND)
@server.thread()
def execute_command(ls: LanguageServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=command_ids.EXECUTE_WORKSPACE_COMMAND)
    try:
        request = ExecuteCommandRequest.model_validate(payload)
    except ValidationError as exc:
        return _validation_failure(payload, exc)
    return _results_payload(workspace.run_command(_global_state(ls), request))


@server.command(command_ids.TDS_REQUEST_WORKSPACE_COMMAND)
@server.thread()
def execute_tds_request(ls: LanguageServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=command_ids.TDS_REQUEST_WORKSPACE_COMMAND)
    try:
        request = TDSQueryRequest.model_validate(payload)
    except ValidationError as exc:
        return _validation_failure(payload, exc)
    try:
        with _requests.scope(request.request_id) as token:
            result = workspace.run_tds_query(_global_state(ls), request, token)
    except RequestAlreadyRunning as exc:
        result = new_result(request.entity_path, ResultType.ERROR, str(exc))
    return _results_payload([result])


@server.command(command_ids.CANCEL_REQUEST_WORKSPACE_COMMAND)
def cancel_request(ls: LanguageServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=command_ids.CANCEL_REQUEST_WORKSPACE_COMMAND)
    try:
        request = CancelRequest.model_validate(payload)
    except ValidationError as exc:
        return {"errors": [str(exc)]}
    cancelled = _requests.cancel(request.request_id)
    return CancelResponseDTO(request_id=request.request_id, cancelled=cancelled).model_dump()


@server.feature(TEXT_DOCUMENT_CODE_LENS)
def code_lens(ls: LanguageServer, params: CodeLensParams) -> list[CodeLens]:
    uri = params.text_document.uri
    lenses: list[CodeLens] = []
    for descriptor in workspace.document_commands(_global_state(ls), uri):
        if descriptor.location is None:
            continue
        request = ExecuteCommandRequest(
            uri=uri,
            entity_path=descriptor.entity_path,
            command_id=descriptor.id,
            executable_args=dict(descriptor.executable_args),
        )
        lenses.append(
            CodeLens(
                range=_to_range(descriptor.location),
                command=Command(
                    title=descriptor.title,
                    command=command_ids.EXECUTE_WORKSPACE_COMMAND,
                    arguments=[request.model_dump()],
                ),
                data=CommandDTO.from_descriptor(descriptor).model_dump(),
            )
        )
    return lenses


@server.feature(TEXT_DOCUMENT_DEFINITION)
def definition(ls: LanguageServer, params: DefinitionParams) -> Location | None:
    location = workspace.find_definition(
        _global_state(ls),
        params.text_document.uri,
        _position(params.position),
    )
    if location is None:
        return None
    return Location(uri=location.document_id, range=_to_range(location))


@server.feature(TEXT_DOCUMENT_COMPLETION)
def completion(ls: LanguageServer, params: CompletionParams) -> list[CompletionItem]:
    completions = workspace.document_completions(
        _global_state(ls),
        params.text_document.uri,
        _position(params.position),
    )
    return [
        CompletionItem(
            label=item.suggestion,
            detail=item.description,
            kind=CompletionItemKind.Keyword if item.description == "Keyword" else CompletionItemKind.Snippet,
        )
        for item in completions
    ]


def _sync_document(ls: LanguageServer, uri: str, version: int | None) -> None:
    document = ls.workspace.get_text_document(uri)
    _global_state(ls).set_document(uri, document.source, version or 0)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    _sync_document(ls, params.text_document.uri, params.text_document.version)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params) -> None:
    _sync_document(ls, params.text_document.uri, params.text_document.version)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: LanguageServer, params) -> None:
    _global_state(ls).remove_document(params.text_document.uri)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server over stdio unless another start function is given."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
