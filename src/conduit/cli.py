from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from conduit.commands import command_ids
from conduit.execution.result import ExecutionResult, ResultType
from conduit.json_types import JSONValue
from conduit.schema import CommandDTO, ExecuteCommandRequest, ExecutionResultDTO, TextLocationDTO
from conduit.state import GlobalState
from conduit import workspace

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)

_FAILING_TYPES = frozenset({ResultType.ERROR, ResultType.FAILURE})


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Root logging level."),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _echo_json(value: JSONValue) -> None:
    typer.echo(json.dumps(value, indent=2, sort_keys=True))


def _open_state(paths: List[Path], root: Path, config: Optional[Path]) -> tuple[GlobalState, list[str]]:
    state = workspace.build_state(root=root, config_path=config)
    missing = [str(path) for path in paths if not path.is_file()]
    if missing:
        raise typer.BadParameter(f"not a file: {', '.join(missing)}")
    return state, workspace.load_documents(state, paths)


def _document_for(state: GlobalState, document_ids: list[str], entity_path: str) -> str:
    for document_id in document_ids:
        if state.find_section(document_id, entity_path) is not None:
            return document_id
    raise typer.BadParameter(f"no loaded document declares {entity_path}")


def _parse_pairs(entries: List[str], *, option: str, decode: bool) -> dict[str, object]:
    pairs: dict[str, object] = {}
    for entry in entries:
        key, sep, raw = entry.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"{option} expects key=value, got {entry!r}")
        if decode:
            try:
                pairs[key] = json.loads(raw)
            except ValueError:
                pairs[key] = raw
        else:
            pairs[key] = raw
    return pairs


def _emit_results(results: list[ExecutionResult]) -> None:
    _echo_json([ExecutionResultDTO.from_result(result).model_dump(mode="json") for result in results])
    if any(result.type in _FAILING_TYPES for result in results):
        raise typer.Exit(code=1)


@app.command()
def serve(
    tcp: Optional[str] = typer.Option(None, "--tcp", help="host:port to listen on instead of stdio."),
) -> None:
    """Run the language server."""
    from conduit import server

    if tcp is None:
        server.start()
        return
    host, sep, port = tcp.rpartition(":")
    if not sep or not port.isdigit():
        raise typer.BadParameter(f"--tcp expects host:port, got {tcp!r}")
    server.start(lambda: server.server.start_tcp(host or "127.0.0.1", int(port)))


@app.command()
def commands(
    paths: List[Path] = typer.Argument(..., help="JSON protocol-model documents."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """List the commands each element currently offers."""
    state, document_ids = _open_state(paths, root, config)
    _echo_json(
        [
            CommandDTO.from_descriptor(descriptor).model_dump(mode="json")
            for document_id in document_ids
            for descriptor in workspace.document_commands(state, document_id)
        ]
    )


@app.command()
def execute(
    paths: List[Path] = typer.Argument(..., help="JSON protocol-model documents."),
    entity: str = typer.Option(..., "--entity", help="Path of the element to run against."),
    command_id: str = typer.Option(command_ids.EXECUTE_COMMAND_ID, "--command"),
    arg: List[str] = typer.Option([], "--arg", help="Executable argument key=value."),
    param: List[str] = typer.Option([], "--param", help="Input parameter key=value (JSON values allowed)."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Dispatch one command to the element's grammar extension."""
    state, document_ids = _open_state(paths, root, config)
    request = ExecuteCommandRequest(
        uri=_document_for(state, document_ids, entity),
        entity_path=entity,
        command_id=command_id,
        executable_args={key: str(value) for key, value in _parse_pairs(arg, option="--arg", decode=False).items()},
        input_parameters=_parse_pairs(param, option="--param", decode=True),
    )
    _emit_results(workspace.run_command(state, request))


@app.command()
def test(
    paths: List[Path] = typer.Argument(..., help="JSON protocol-model documents."),
    entity: str = typer.Option(..., "--entity"),
    suite: Optional[str] = typer.Option(None, "--suite", help="Only this test suite."),
    test_id: Optional[str] = typer.Option(None, "--test", help="Only this test of the suite."),
    legacy: bool = typer.Option(False, "--legacy/--no-legacy", help="Run the legacy test instead."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Run an element's tests and report one result per test or assertion."""
    if test_id is not None and suite is None:
        raise typer.BadParameter("--test requires --suite")
    state, document_ids = _open_state(paths, root, config)
    executable_args: dict[str, str] = {}
    if suite is not None:
        executable_args["testSuite"] = suite
    if test_id is not None:
        executable_args["test"] = test_id
    request = ExecuteCommandRequest(
        uri=_document_for(state, document_ids, entity),
        entity_path=entity,
        command_id=(
            command_ids.RUN_LEGACY_TESTS_COMMAND_ID if legacy else command_ids.RUN_TESTS_COMMAND_ID
        ),
        executable_args=executable_args,
    )
    _emit_results(workspace.run_command(state, request))


@app.command()
def references(
    paths: List[Path] = typer.Argument(..., help="JSON protocol-model documents."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """List every reference span and the definition it resolves to."""
    state, document_ids = _open_state(paths, root, config)
    compile_result = state.compile_result()
    if compile_result.has_error():
        typer.echo(f"compile failed: {compile_result.error}", err=True)
        raise typer.Exit(code=1)
    entries: list[JSONValue] = []
    for document_id in document_ids:
        for section in state.sections(document_id):
            extension = state.extension_for(section)
            if extension is None:
                continue
            for resolver in extension.get_references(section):
                if resolver is None:
                    continue
                target = TextLocationDTO.from_location(resolver.resolve(compile_result.model))
                entries.append(
                    {
                        "location": TextLocationDTO.from_location(resolver.location).model_dump(mode="json"),
                        "target": None if target is None else target.model_dump(mode="json"),
                    }
                )
    _echo_json(entries)
