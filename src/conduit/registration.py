"""Client for the external execution server and service registration payloads."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Callable

from conduit.exceptions import ExecutionServerError
from conduit.json_types import JSONObject

logger = logging.getLogger(__name__)

REGISTER_SERVICE_PATH = "/service/v1/register_fullInteractive"
PROTOCOL_NAME = "pure"
PROTOCOL_VERSION = "vX_X_X"


class ExecutionServerClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float | None = None,
        urlopen_fn: Callable[..., object] = urllib.request.urlopen,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._urlopen = urlopen_fn

    def __repr__(self) -> str:
        return f"ExecutionServerClient({self.base_url!r})"

    def post(self, path: str, payload: JSONObject) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        body = json.dumps(payload, sort_keys=True).encode("utf-8")
        req = urllib.request.Request(
            url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        logger.info("POST %s (%d bytes)", url, len(body))
        kwargs = {} if self.timeout_seconds is None else {"timeout": self.timeout_seconds}
        try:
            with self._urlopen(req, **kwargs) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
            raise ExecutionServerError(
                f"Execution server returned {exc.code} for {url}",
                status=exc.code,
                body=detail,
            ) from exc
        except urllib.error.URLError as exc:
            raise ExecutionServerError(f"Unable to reach execution server at {url}: {exc.reason}") from exc


def registration_origin(entity_path: str) -> JSONObject:
    """Origin pointer telling the server which element of the payload to register."""
    return {
        "_type": "pointer",
        "serializer": {"name": PROTOCOL_NAME, "version": PROTOCOL_VERSION},
        "sdlcInfo": {
            "_type": "alloy",
            "baseVersion": "latest",
            "version": "none",
            "packageableElementPointers": [
                {"type": "SERVICE", "path": entity_path},
            ],
        },
    }


def _drop_nulls(value: object) -> object:
    if isinstance(value, dict):
        return {key: _drop_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_nulls(item) for item in value]
    return value


def format_response(text: str) -> str:
    """Pretty-print a JSON response; anything else comes back verbatim."""
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    return json.dumps(_drop_nulls(parsed), indent=2, sort_keys=True)
