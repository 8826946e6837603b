"""
Progress Tracker

Running counters for one conversation and the rule deciding when to offer
the learner a chance to finish.
"""

from typing import Iterable, Sequence

from conversation_practice.schemas import WordUsage
from conversation_practice.session_state import ConversationMessage, ProgressState

COMPLETION_PROMPT = (
    "You're doing great! Would you like to continue practicing or complete this exercise?"
)
COMPLETION_MARKER = "complete this exercise"


class ProgressTracker:
    def __init__(self, prompt_after: int = 3):
        self.prompt_after = prompt_after
        self.state = ProgressState()

    def reset(self) -> None:
        self.state = ProgressState()

    def record_turn(self, score: int, used_words: Sequence[WordUsage]) -> ProgressState:
        """Count one analyzed human turn."""
        self.state.messages_exchanged += 1
        self.state.correct_words_count += sum(1 for w in used_words if w.used)
        self.state.total_score += score
        return self.state

    def should_offer_completion(
        self,
        messages: Iterable[ConversationMessage],
        queued_lines: Iterable[str] = (),
    ) -> bool:
        """
        True once enough turns were exchanged and the completion prompt is
        neither in the transcript nor waiting to be spoken.
        """
        if self.state.messages_exchanged < self.prompt_after:
            return False
        if any(COMPLETION_MARKER in m.text for m in messages):
            return False
        return not any(COMPLETION_MARKER in line for line in queued_lines)

    @property
    def average_score(self) -> int:
        return self.state.average_score
