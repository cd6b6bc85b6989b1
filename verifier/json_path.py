"""
Dotted/bracketed path lookup into decoded JSON.

    get_path(doc, "data.results[0].price")

Any segment that cannot be resolved yields MISSING instead of raising.
"""
from __future__ import annotations

import re
from typing import Any

_SEGMENT_RE = re.compile(r"^(?P<key>[^\[\]]*)(?P<indexes>(?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")


class _Missing:
    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def _parse_segment(segment: str) -> list[str | int] | None:
    m = _SEGMENT_RE.match(segment)
    if not m:
        return None
    steps: list[str | int] = []
    if m.group("key"):
        steps.append(m.group("key"))
    steps.extend(int(i) for i in _INDEX_RE.findall(m.group("indexes")))
    return steps or None


def _descend(node: Any, steps: list[str | int]) -> Any:
    if not steps:
        return node
    step, rest = steps[0], steps[1:]
    if isinstance(step, int):
        if not isinstance(node, list) or step >= len(node):
            return MISSING
        return _descend(node[step], rest)
    if not isinstance(node, dict) or step not in node:
        return MISSING
    return _descend(node[step], rest)


def get_path(tree: Any, path: str | None) -> Any:
    """Resolve `path` against `tree`; MISSING for any unresolvable segment."""
    if tree is None or not path:
        return MISSING
    steps: list[str | int] = []
    for segment in path.split("."):
        parsed = _parse_segment(segment)
        if parsed is None:
            return MISSING
        steps.extend(parsed)
    return _descend(tree, steps)
