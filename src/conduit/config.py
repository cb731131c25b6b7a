from __future__ import annotations

import importlib
import os
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Mapping, TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "conduit.toml"
ENGINE_URL_ENV = "CONDUIT_ENGINE_URL"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

_COLLABORATOR_KEYS = ("plan_generator", "plan_executor", "test_runner")


@dataclass(frozen=True)
class ServerSettings:
    engine_url: str | None = None
    engine_timeout_seconds: float | None = None
    collaborators: tuple[tuple[str, str], ...] = ()

    @property
    def engine_configured(self) -> bool:
        return bool(self.engine_url)

    def collaborator_spec(self, key: str) -> str | None:
        for name, spec in self.collaborators:
            if name == key:
                return spec
        return None


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _as_timeout(value: TomlValue) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


def _as_url(value: TomlValue) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip().rstrip("/")
    return text or None


def load_settings(
    root: Path | None = None,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ServerSettings:
    data = load_config(root=root, config_path=config_path)
    engine = _section(data, "engine")
    collaborators = _section(data, "collaborators")
    environ = os.environ if env is None else env
    engine_url = _as_url(environ.get(ENGINE_URL_ENV)) or _as_url(engine.get("url"))
    return ServerSettings(
        engine_url=engine_url,
        engine_timeout_seconds=_as_timeout(engine.get("timeout_seconds")),
        collaborators=tuple(
            (key, str(collaborators[key]).strip())
            for key in _COLLABORATOR_KEYS
            if isinstance(collaborators.get(key), str) and str(collaborators[key]).strip()
        ),
    )


def load_object(spec: str) -> object:
    """Import ``package.module:attribute``; callables are called with no args."""
    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"expected package.module:attribute, got {spec!r}")
    target: object = importlib.import_module(module_name)
    for part in attribute.split("."):
        target = getattr(target, part)
    return target() if callable(target) else target
