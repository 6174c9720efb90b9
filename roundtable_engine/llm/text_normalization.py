"""Utilities for cleaning LLM reply text before it reaches a conversation."""

from __future__ import annotations

import re

# Reasoning models served through Ollama emit their scratchpad inline
_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)

_MOJIBAKE_REPLACEMENTS = {
    "â€™": "'",
    "â€˜": "'",
    "â€œ": "\"",
    "â€”": "--",
    "â€“": "-",
    "â€¦": "...",
    "Â ": " ",
}


def normalize_mojibake(text: str) -> str:
    """Repair UTF-8 text that was decoded as latin-1 somewhere upstream.

    Left untouched unless the "â" marker shows up.
    """
    if not text or "â" not in text:
        return text

    try:
        return text.encode("latin-1").decode("utf-8")
    except UnicodeError:
        pass

    for bad, good in _MOJIBAKE_REPLACEMENTS.items():
        text = text.replace(bad, good)
    return text


def clean_reply_text(text: str | None) -> str:
    """Strip reasoning blocks, repair mojibake and trim whitespace."""
    if not text:
        return ""
    text = _THINK_BLOCK.sub("", text)
    return normalize_mojibake(text).strip()
