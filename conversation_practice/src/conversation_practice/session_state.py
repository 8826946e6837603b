"""
Conversation State Data Model

Dataclasses for the state a conversation practice session carries:
transcript messages, the session record, questions/answers and the
running progress counters.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List


TRUNCATION_SUFFIX = "..."


class Role(Enum):
    """Who produced a transcript line."""
    HUMAN = "human"
    MACHINE = "machine"


@dataclass
class ConversationMessage:
    """One line of the visible transcript."""
    role: Role
    text: str
    feedback: Optional[str] = None
    score: Optional[int] = None  # 0-100, machine replies only


@dataclass
class ConversationSession:
    """Interactive session for one 'Start Conversation' action."""
    session_id: str
    task_id: str
    topic: str
    level: str
    started_at: datetime = field(default_factory=datetime.now)


@dataclass
class Question:
    """A prompt posed by the machine; at most one Answer is attached."""
    question_id: str
    session_id: str
    text: str
    answered: bool = False


@dataclass
class Answer:
    question_id: str
    text: str
    feedback: str


@dataclass
class ProgressState:
    """
    Running progress counters.

    average_score is derived from total_score / messages_exchanged on every
    read, so it can never drift from the totals.
    """
    messages_exchanged: int = 0
    correct_words_count: int = 0
    total_score: int = 0

    @property
    def average_score(self) -> int:
        if self.messages_exchanged <= 0:
            return 0
        return round_half_up(self.total_score / self.messages_exchanged)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3, not 2)."""
    return int(math.floor(value + 0.5))


def truncate_text(text: str, limit: int = 1000) -> str:
    """
    Truncate text for storage.

    Texts longer than the limit keep their first (limit - 3) characters
    followed by "...", so the stored value is exactly `limit` characters.
    """
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def messages_as_history(messages: List[ConversationMessage]) -> List[dict]:
    """Convert transcript messages to role-tagged chat history."""
    return [
        {
            "role": "user" if m.role == Role.HUMAN else "assistant",
            "content": m.text,
        }
        for m in messages
    ]
