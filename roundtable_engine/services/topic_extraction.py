"""Sentence-based topic and opinion extraction shared by the engine."""

import re

SENTENCE_BOUNDARY = re.compile(r"[。！？.!?]")

TOPIC_FALLBACK_CHARS = 50
OPINION_FALLBACK_CHARS = 100


def _first_sentence(text: str, fallback_chars: int) -> str:
    if not SENTENCE_BOUNDARY.search(text):
        return text[:fallback_chars]
    for segment in SENTENCE_BOUNDARY.split(text):
        segment = segment.strip()
        if segment:
            return segment
    return text[:fallback_chars]


def extract_topic(text: str) -> str:
    """
    First sentence of a message, used to tag memories and history.

    Without any sentence boundary the first 50 characters are used.
    """
    return _first_sentence(text, TOPIC_FALLBACK_CHARS)


def extract_key_opinion(text: str) -> str:
    """First sentence of a reply (first 100 characters if there is no boundary)."""
    return _first_sentence(text, OPINION_FALLBACK_CHARS)
