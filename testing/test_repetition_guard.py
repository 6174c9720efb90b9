"""Tests for the repetition guard."""

import random

from roundtable_engine.config.models import RepetitionConfig
from roundtable_engine.services.repetition_guard import RepetitionGuard, reply_similarity


def test_not_stuck_until_window_is_full():
    guard = RepetitionGuard()
    key = guard.key("nova", "room")
    assert guard.record(key, "same reply") is False
    assert guard.record(key, "same reply") is False
    assert guard.record(key, "same reply") is True


def test_dissimilar_reply_breaks_the_streak():
    guard = RepetitionGuard()
    key = guard.key("nova", "room")
    guard.record(key, "the weather is lovely today")
    guard.record(key, "the weather is lovely today")
    assert guard.record(key, "quantum computers use qubits for parallel computation") is False


def test_windows_are_independent_per_room_and_character():
    guard = RepetitionGuard()
    for room in ("a", "b", "c"):
        assert guard.record(guard.key("nova", room), "same reply") is False
    for character in ("x", "y"):
        assert guard.record(guard.key(character, "a"), "same reply") is False


def test_clear_resets_window():
    guard = RepetitionGuard()
    key = guard.key("nova", "room")
    guard.record(key, "same reply")
    guard.record(key, "same reply")
    guard.clear(key)
    assert guard.recent(key) == []
    assert guard.record(key, "same reply") is False


def test_window_is_bounded():
    guard = RepetitionGuard(RepetitionConfig(window_size=2))
    key = guard.key("nova", "room")
    for text in ("one", "two", "three"):
        guard.record(key, text)
    assert guard.recent(key) == ["two", "three"]


def test_least_recent_window_is_evicted():
    guard = RepetitionGuard(max_windows=2)
    guard.record(guard.key("a", "r"), "x")
    guard.record(guard.key("b", "r"), "x")
    guard.record(guard.key("c", "r"), "x")
    assert guard.recent(guard.key("a", "r")) == []
    assert guard.recent(guard.key("c", "r")) == ["x"]


def test_similarity_normalizes_case_and_whitespace():
    assert reply_similarity("Hello   World", "hello world") == 1.0
    assert reply_similarity("abc", "xyz") == 0.0


def test_similarity_is_bigram_dice():
    # ni ig gh ht / na ac ch ht share one bigram
    assert reply_similarity("night", "nacht") == 0.25
    # 今天 天天 天气 shared out of five bigrams each
    assert reply_similarity("今天天气很好", "今天天气不错") == 0.6
    assert reply_similarity("a", "b") == 0.0


def test_pick_redirect_uses_configured_phrases():
    config = RepetitionConfig()
    guard = RepetitionGuard(config, rng=random.Random(3))
    for _ in range(10):
        assert guard.pick_redirect() in config.redirect_phrases
