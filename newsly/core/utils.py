"""Utility functions for text processing."""

from __future__ import annotations

import json
from typing import Any

from newsly.core.errors import ExtractionError

_BRACKETS = {"array": ("[", "]"), "object": ("{", "}")}


def _balanced_end(text: str, start: int, opener: str, closer: str) -> int:
    """Return the index just past the literal opening at ``start``, or -1."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return index + 1
    return -1


def extract_json(text: str, kind: str = "array") -> Any:
    """Extract the first balanced JSON array or object literal from text.

    Agents tend to wrap JSON in prose or code fences. Each candidate
    opening bracket is matched to its closing bracket (string and escape
    aware) and the first span that decodes is returned.

    Args:
        text: Free-form text that may contain JSON
        kind: ``"array"`` or ``"object"``

    Returns:
        The decoded list or dict

    Raises:
        ExtractionError: If no decodable literal of that kind is found.
    """
    if kind not in _BRACKETS:
        raise ValueError(f"Unknown JSON kind: {kind}")
    opener, closer = _BRACKETS[kind]
    text = text or ""

    start = text.find(opener)
    while start != -1:
        end = _balanced_end(text, start, opener, closer)
        if end != -1:
            try:
                return json.loads(text[start:end])
            except ValueError:
                pass
        start = text.find(opener, start + 1)

    raise ExtractionError(f"No JSON {kind} found in text: {text[:100]!r}")


def truncate(text: str, limit: int = 100) -> str:
    """Shorten text for log lines."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
