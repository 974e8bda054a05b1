"""
Reconnection context serialization.

Responsibilities:
- Convert the conversation history into the single message sent to a
  freshly reopened connection, so the backend can answer the last
  question without the lost session state.

Non-responsibilities:
- No sending
- No history storage
"""

from __future__ import annotations

from constants import REPLAY_CONTEXT_PREFIX
from context.conversation import ConversationHistory


def build_replay_message(history: ConversationHistory) -> str | None:
    """
    Summarize all prior user utterances.

    Returns None when there is nothing worth replaying.

    Output format:
        <prefix>

        <question 1>
        <question 2>
        ...
    """
    questions = history.user_texts()
    if not questions:
        return None
    return f"{REPLAY_CONTEXT_PREFIX}\n\n" + "\n".join(questions)
