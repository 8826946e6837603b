"""Exceptions raised by the conversation core."""


class ConversationError(Exception):
    """Base class for conversation practice errors."""


class AuthenticationRequiredError(ConversationError):
    """No usable bearer token; the conversation cannot start."""


class SessionUnavailableError(ConversationError):
    """The conversation session could not be created at all."""


class InvalidTransitionError(ConversationError):
    """A turn state change that the state machine does not allow."""

    def __init__(self, from_state, to_state):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Cannot move from {from_state.value} to {to_state.value}")
