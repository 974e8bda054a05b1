# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

from orchestrator.transcription import TranscriptionAggregator


def make_aggregator() -> tuple[TranscriptionAggregator, list[dict[str, Any]]]:
    emitted: list[dict[str, Any]] = []

    def emit(channel: str, payload: dict[str, Any]) -> None:
        assert channel == "transcription"
        emitted.append(payload)

    return TranscriptionAggregator(emit=emit), emitted


# ---------------------------------------------------------------------
# Turn boundaries
# ---------------------------------------------------------------------

def test_close_fragments_form_one_turn():
    agg, emitted = make_aggregator()

    assert agg.on_fragment("What", 0) is True
    assert agg.on_fragment("is", 100) is False
    assert agg.on_fragment("2+2", 200) is False

    assert agg.text == "What is 2+2"
    assert [e["isNewTurn"] for e in emitted] == [True, False, False]
    assert emitted[-1]["text"] == "What is 2+2"


def test_long_gap_starts_a_new_turn():
    agg, emitted = make_aggregator()

    agg.on_fragment("Q1", 0)
    assert agg.on_fragment("Q2", 3000) is True

    assert agg.text == "Q2"
    assert emitted == [
        {"text": "Q1", "isNewTurn": True},
        {"text": "Q2", "isNewTurn": True},
    ]


def test_gap_of_exactly_the_threshold_continues_the_turn():
    agg, _ = make_aggregator()

    agg.on_fragment("a", 0)
    assert agg.on_fragment("b", 500) is False
    assert agg.on_fragment("c", 1001) is True


def test_gap_is_measured_from_the_previous_fragment():
    agg, _ = make_aggregator()

    agg.on_fragment("one", 0)
    agg.on_fragment("two", 400)
    # 800ms after the first fragment but only 400ms after the last one
    assert agg.on_fragment("three", 800) is False
    assert agg.text == "one two three"


def test_fragments_with_own_spacing_are_not_double_spaced():
    agg, _ = make_aggregator()

    agg.on_fragment("What", 0)
    agg.on_fragment(" is", 10)
    agg.on_fragment(" it?", 20)

    assert agg.text == "What is it?"


def test_empty_fragment_is_ignored():
    agg, emitted = make_aggregator()

    assert agg.on_fragment("", 0) is False
    assert not agg.turn_open
    assert emitted == []


# ---------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------

def test_complete_returns_utterance_and_closes_turn():
    agg, _ = make_aggregator()

    agg.on_fragment("hello", 0)
    assert agg.complete() == "hello"
    assert not agg.turn_open
    assert agg.complete() == ""

    # Turn is closed, so even a close fragment starts a new one
    assert agg.on_fragment("next", 50) is True


def test_typed_turn_replaces_open_utterance():
    agg, emitted = make_aggregator()

    agg.on_fragment("spoken", 0)
    agg.start_typed_turn("typed question", 10)

    assert agg.text == "typed question"
    assert emitted[-1] == {"text": "typed question", "isNewTurn": True}
