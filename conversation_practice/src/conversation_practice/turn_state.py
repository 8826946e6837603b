"""
Turn State Management

Explicit states and transitions deciding who may act in a conversation:
the machine (speaking), the human (microphone open), or nobody.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from conversation_practice.errors import InvalidTransitionError


class TurnState(Enum):
    """Turn-taking states."""
    IDLE = "idle"                        # Conversation not started
    MACHINE_SPEAKING = "machine_speaking"
    AWAITING_HUMAN = "awaiting_human"    # Microphone active
    ANALYZING_HUMAN = "analyzing_human"  # Transcript captured, analysis in flight
    ENDED = "ended"                      # Terminal


ALLOWED_TRANSITIONS: Dict[TurnState, FrozenSet[TurnState]] = {
    TurnState.IDLE: frozenset({TurnState.MACHINE_SPEAKING, TurnState.ENDED}),
    TurnState.MACHINE_SPEAKING: frozenset({
        TurnState.MACHINE_SPEAKING,
        TurnState.AWAITING_HUMAN,
        TurnState.ENDED,
    }),
    TurnState.AWAITING_HUMAN: frozenset({
        TurnState.ANALYZING_HUMAN,
        TurnState.MACHINE_SPEAKING,
        TurnState.ENDED,
    }),
    TurnState.ANALYZING_HUMAN: frozenset({TurnState.MACHINE_SPEAKING, TurnState.ENDED}),
    TurnState.ENDED: frozenset(),
}


@dataclass
class TransitionRecord:
    """One entry of the transition log."""
    at: float
    from_state: TurnState
    to_state: TurnState
    reason: str = ""


@dataclass
class TurnStateMachine:
    """
    Single authority for the current turn state.

    Holds exactly one state at a time; every change is validated against
    ALLOWED_TRANSITIONS and appended to the transition log. Self-transitions
    (MACHINE_SPEAKING -> MACHINE_SPEAKING while draining the output queue)
    are accepted but not logged.
    """
    state: TurnState = TurnState.IDLE
    clock: Callable[[], float] = time.monotonic
    log: List[TransitionRecord] = field(default_factory=list)

    def can_transition(self, to_state: TurnState) -> bool:
        return to_state in ALLOWED_TRANSITIONS[self.state]

    def transition(self, to_state: TurnState, reason: str = "") -> Optional[TransitionRecord]:
        """
        Move to a new state.

        Args:
            to_state: Target state
            reason: Short label stored in the log

        Returns:
            The logged TransitionRecord, or None for a self-transition

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        if not self.can_transition(to_state):
            raise InvalidTransitionError(self.state, to_state)
        if to_state == self.state:
            return None

        record = TransitionRecord(
            at=self.clock(),
            from_state=self.state,
            to_state=to_state,
            reason=reason,
        )
        self.state = to_state
        self.log.append(record)
        return record

    @property
    def machine_speaking(self) -> bool:
        return self.state == TurnState.MACHINE_SPEAKING

    @property
    def awaiting_human(self) -> bool:
        return self.state == TurnState.AWAITING_HUMAN

    @property
    def is_active(self) -> bool:
        """True between a successful start and the end of the conversation."""
        return self.state not in (TurnState.IDLE, TurnState.ENDED)

    def is_ended(self) -> bool:
        return self.state == TurnState.ENDED
