"""Pull the first JSON object out of free-text model replies."""

import json
from typing import Any


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Return the first brace-balanced substring of *text* that parses as an object.

    Models often wrap their JSON in prose or code fences, so the whole text is
    tried first and then every ``{`` is tried as a start position.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()
    try:
        parsed = json.loads(stripped)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    for index, char in enumerate(stripped):
        if char != "{":
            continue
        candidate = _balanced_object(stripped, index)
        if candidate is not None:
            return candidate
    return None


def _balanced_object(text: str, start: int) -> dict[str, Any] | None:
    depth = 0
    in_string = False
    escape = False

    for index in range(start, len(text)):
        char = text[index]

        if escape:
            escape = False
            continue
        if char == "\\":
            if in_string:
                escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start:index + 1])
                except ValueError:
                    return None
                return parsed if isinstance(parsed, dict) else None

    return None
