from __future__ import annotations

"""JSON-like value types used at transport and payload boundaries.

Command arguments arrive in two maps: ``ExecutableArgs`` carries the plain
string options a client picked, ``InputParameters`` the typed values bound to
an invocable expression's parameters.
"""

from typing import Mapping, TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONArray: TypeAlias = list[JSONValue]

ExecutableArgs: TypeAlias = Mapping[str, str]
InputParameters: TypeAlias = Mapping[str, object]
