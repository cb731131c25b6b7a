from __future__ import annotations

import io
import json
import urllib.error

import pytest

from conduit.exceptions import ExecutionServerError
from conduit.registration import (
    REGISTER_SERVICE_PATH,
    ExecutionServerClient,
    format_response,
    registration_origin,
)


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class _RecordingUrlopen:
    def __init__(self, body: bytes = b'{"ok": true}', error: BaseException | None = None) -> None:
        self.body = body
        self.error = error
        self.requests: list[tuple[object, dict[str, object]]] = []

    def __call__(self, request, **kwargs):
        self.requests.append((request, kwargs))
        if self.error is not None:
            raise self.error
        return _Response(self.body)


def test_post_sends_json_to_joined_url() -> None:
    urlopen = _RecordingUrlopen()
    client = ExecutionServerClient("http://engine:6300/api/", timeout_seconds=5.0, urlopen_fn=urlopen)

    assert client.post(REGISTER_SERVICE_PATH, {"b": 1, "a": 2}) == '{"ok": true}'

    ((request, kwargs),) = urlopen.requests
    assert request.full_url == "http://engine:6300/api/service/v1/register_fullInteractive"
    assert request.get_method() == "POST"
    assert json.loads(request.data) == {"a": 2, "b": 1}
    assert request.get_header("Content-type") == "application/json"
    assert kwargs == {"timeout": 5.0}


def test_post_without_timeout_passes_no_timeout() -> None:
    urlopen = _RecordingUrlopen()
    ExecutionServerClient("http://engine", urlopen_fn=urlopen).post("/x", {})
    assert urlopen.requests[0][1] == {}


def test_http_errors_become_execution_server_errors() -> None:
    error = urllib.error.HTTPError(
        "http://engine/x", 500, "Server Error", {}, io.BytesIO(b"stack trace here")
    )
    client = ExecutionServerClient("http://engine", urlopen_fn=_RecordingUrlopen(error=error))
    with pytest.raises(ExecutionServerError) as excinfo:
        client.post("/x", {})
    assert excinfo.value.status == 500
    assert excinfo.value.body == "stack trace here"


def test_unreachable_server_is_reported() -> None:
    error = urllib.error.URLError("connection refused")
    client = ExecutionServerClient("http://engine", urlopen_fn=_RecordingUrlopen(error=error))
    with pytest.raises(ExecutionServerError, match="connection refused"):
        client.post("/x", {})


def test_format_response_pretty_prints_json_without_nulls() -> None:
    assert format_response('{"b": null, "a": [1, {"c": null}]}') == '{\n  "a": [\n    1,\n    {}\n  ]\n}'
    assert format_response("plain text") == "plain text"


def test_registration_origin_points_at_service() -> None:
    origin = registration_origin("model::S")
    assert origin["_type"] == "pointer"
    assert origin["sdlcInfo"]["packageableElementPointers"] == [{"type": "SERVICE", "path": "model::S"}]
