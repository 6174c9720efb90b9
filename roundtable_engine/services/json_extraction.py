"""
Helpers for pulling a JSON object out of an LLM reply.

Models often wrap the object in prose or a fenced code block, so the reply
is tried as-is, then as the first fenced block, then as the first balanced
{...} span.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Return the first JSON object found in `text`, or None."""
    if not text:
        return None

    for candidate in _candidates(text.strip()):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _candidates(text: str):
    yield text

    fenced = _FENCE.search(text)
    if fenced:
        yield fenced.group(1).strip()

    balanced = _first_balanced_object(text)
    if balanced is not None:
        yield balanced


def _first_balanced_object(text: str) -> str | None:
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == "\"":
                in_string = False
        elif ch == "\"":
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None
