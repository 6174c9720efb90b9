"""
Repetition Guard

Detects a character stuck repeating itself. Windows of recent replies are
kept per (character, room) instead of one process-wide buffer, so replies
from different characters or rooms never count against each other.
"""

import logging
import random
import re
from collections import Counter, OrderedDict, deque
from typing import Deque, List, Optional, Tuple

from roundtable_engine.config.models import RepetitionConfig

logger = logging.getLogger(__name__)

WindowKey = Tuple[str, str]


def normalize_reply(text: str) -> str:
    """Lowercase and drop all whitespace."""
    return re.sub(r"\s+", "", (text or "").lower())


def reply_similarity(a: str, b: str) -> float:
    """
    Dice coefficient over character bigrams of the normalized texts, in [0, 1].

    Identical texts score 1.0; texts shorter than two characters that differ
    score 0.0. Works the same on CJK text, where words are not space separated.
    """
    first, second = normalize_reply(a), normalize_reply(b)
    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    bigrams = Counter(first[i:i + 2] for i in range(len(first) - 1))
    matches = 0
    for i in range(len(second) - 1):
        bigram = second[i:i + 2]
        if bigrams[bigram] > 0:
            bigrams[bigram] -= 1
            matches += 1
    return 2.0 * matches / (len(first) + len(second) - 2)


class RepetitionGuard:
    """Bounded sliding windows of raw reply texts, keyed by (character, room)."""

    def __init__(
        self,
        config: Optional[RepetitionConfig] = None,
        rng: Optional[random.Random] = None,
        max_windows: int = 1024,
    ):
        self.config = config or RepetitionConfig()
        self.rng = rng or random.Random()
        self.max_windows = max_windows
        self._windows: "OrderedDict[WindowKey, Deque[str]]" = OrderedDict()

    @staticmethod
    def key(character_id: str, room_id: str) -> WindowKey:
        return (character_id, room_id)

    def _window(self, key: WindowKey) -> Deque[str]:
        window = self._windows.get(key)
        if window is None:
            window = deque(maxlen=self.config.window_size)
            self._windows[key] = window
            # Forget the least recently used conversation
            while len(self._windows) > self.max_windows:
                self._windows.popitem(last=False)
        else:
            self._windows.move_to_end(key)
        return window

    def similarity(self, a: str, b: str) -> float:
        return reply_similarity(a, b)

    def is_similar(self, a: str, b: str) -> bool:
        return self.similarity(a, b) >= self.config.similarity_threshold

    def record(self, key: WindowKey, text: str) -> bool:
        """
        Append a reply to the window.

        Returns:
            True when the window is full and every adjacent pair of replies
            in it is at least `similarity_threshold` similar
        """
        window = self._window(key)
        window.append(text)
        if len(window) < self.config.window_size:
            return False

        replies = list(window)
        return all(
            self.is_similar(replies[i], replies[i + 1])
            for i in range(len(replies) - 1)
        )

    def recent(self, key: WindowKey) -> List[str]:
        window = self._windows.get(key)
        return list(window) if window else []

    def clear(self, key: WindowKey) -> None:
        window = self._windows.get(key)
        if window is not None:
            window.clear()

    def pick_redirect(self) -> str:
        return self.rng.choice(self.config.redirect_phrases)
