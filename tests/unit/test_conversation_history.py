# pylint: disable=missing-module-docstring,missing-function-docstring

from constants import REPLAY_CONTEXT_PREFIX
from context.conversation import ConversationHistory, ConversationTurn
from context.replay import build_replay_message


def make_turn(i: int) -> ConversationTurn:
    return ConversationTurn.create(user_text=f"Q{i}", ai_text=f"A{i}")


# ---------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------

def test_eleventh_turn_evicts_the_oldest():
    history = ConversationHistory()
    turns = [make_turn(i) for i in range(11)]

    for turn in turns:
        history.append(turn)

    assert len(history) == 10
    assert history.snapshot() == tuple(turns[1:])


def test_length_never_exceeds_cap():
    history = ConversationHistory(max_turns=3)

    for i in range(20):
        history.append(make_turn(i))
        assert len(history) <= 3

    assert history.user_texts() == ["Q17", "Q18", "Q19"]


def test_snapshot_is_a_copy():
    history = ConversationHistory()
    history.append(make_turn(1))

    snap = history.snapshot()
    history.append(make_turn(2))

    assert len(snap) == 1
    assert len(history.snapshot()) == 2


def test_turn_ui_shape():
    turn = make_turn(7)
    data = turn.to_dict()

    assert set(data) == {"id", "timestamp", "userText", "aiText"}
    assert data["userText"] == "Q7"
    assert data["aiText"] == "A7"
    assert data["id"].startswith("turn_")


# ---------------------------------------------------------------------
# Replay message
# ---------------------------------------------------------------------

def test_replay_message_is_none_without_history():
    assert build_replay_message(ConversationHistory()) is None


def test_replay_message_lists_all_questions_in_order():
    history = ConversationHistory()
    history.append(make_turn(1))
    history.append(make_turn(2))

    message = build_replay_message(history)

    assert message == f"{REPLAY_CONTEXT_PREFIX}\n\nQ1\nQ2"
    assert message is not None
    assert message.startswith("Till now all these questions were asked")
