from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Completion:
    description: str
    suggestion: str


def keyword_completions(keywords: Iterable[str], prefix: str) -> list[Completion]:
    if not prefix:
        return []
    return [
        Completion("Keyword", keyword)
        for keyword in keywords
        if keyword.startswith(prefix) and keyword != prefix
    ]


SERVICE_FUNCTION_TRIGGERS: tuple[str, ...] = ("->",)

SERVICE_FUNCTION_SUGGESTIONS: tuple[str, ...] = (
    "filter(x|",
    "project([ x| $x.attribute1 ],['attribute1'])",
    "groupBy([ x| $x.attribute1 ],[ agg(x|$x.attribute2, x|sum($x)) ])",
    "distinct()",
    "limit(10)",
)

SERVICE_BOILERPLATE = """\
Service package::path::serviceName
{
  pattern: 'uri/to/the/service/{parameter1}';
  documentation: 'What the service returns and what its parameters mean.';
  execution: Single
  {
    query: parameter1: String[1] |
      package::path::className.all()
        ->filter(x| $x.attribute1 == $parameter1)
        ->project([ x| $x.attribute1 ], ['id']);
    mapping: package::path::mappingName;
    runtime: package::path::runtimeName;
  }
}
"""


def service_completions(line: str) -> list[Completion]:
    completions: list[Completion] = []
    if not line.strip():
        completions.append(Completion("Service boilerplate", SERVICE_BOILERPLATE))
    if any(line.endswith(trigger) for trigger in SERVICE_FUNCTION_TRIGGERS):
        completions.extend(
            Completion("Function evaluation", suggestion)
            for suggestion in SERVICE_FUNCTION_SUGGESTIONS
        )
    return completions
