"""
Speech Input Adapter

Wraps a continuous speech recognition engine and turns its raw events into
the few typed events the turn coordinator cares about. Restart policy lives
here: recognition engines stop on their own after silence or errors, and
the adapter quietly restarts them while it is still the human's turn.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from conversation_practice.config import ConversationConfig
from conversation_practice.timers import TimerPurpose, TimerRegistry

logger = logging.getLogger(__name__)

NO_SPEECH_ERROR = "no-speech"


class RecognitionEngine(Protocol):
    """Minimal capability a recognition backend must provide."""

    def start(self) -> None: ...

    def stop(self) -> None: ...


class RecognitionEventKind(Enum):
    STARTED = "started"
    SPEECH_START = "speech_start"
    SPEECH_END = "speech_end"
    RESULT = "result"
    ERROR = "error"
    ENDED = "ended"


@dataclass(frozen=True)
class RecognitionEvent:
    """Raw event reported by a recognition engine."""
    kind: RecognitionEventKind
    transcript: Optional[str] = None
    is_final: bool = False
    error: Optional[str] = None


class InputEventKind(Enum):
    SPEECH_STARTED = "speech_started"
    TRANSCRIPT = "transcript"
    NO_SPEECH = "no_speech"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class InputEvent:
    """Event forwarded to the turn coordinator."""
    kind: InputEventKind
    transcript: Optional[str] = None


InputListener = Callable[[InputEvent], None]


class SpeechInputAdapter:
    """
    Owns one recognition engine for the lifetime of a conversation.

    Usage:
        adapter.acquire(listener, is_human_turn)
        adapter.start()            # microphone on
        engine -> adapter.on_engine_event(RecognitionEvent(...))
        adapter.stop()             # microphone off
        adapter.release()
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        timers: Optional[TimerRegistry] = None,
        config: Optional[ConversationConfig] = None,
    ):
        self.engine = engine
        self.timers = timers or TimerRegistry()
        self.config = config or ConversationConfig()

        self.human_speaking = False
        self.listening = False
        self._listener: Optional[InputListener] = None
        self._is_human_turn: Callable[[], bool] = lambda: False

    # ==================== Lifecycle ====================

    def acquire(self, listener: InputListener, is_human_turn: Callable[[], bool]) -> None:
        self._listener = listener
        self._is_human_turn = is_human_turn
        self.human_speaking = False

    def release(self) -> None:
        self.stop()
        self._listener = None
        self._is_human_turn = lambda: False

    @property
    def acquired(self) -> bool:
        return self._listener is not None

    def start(self) -> bool:
        """
        Start listening.

        Returns:
            True if the engine accepted the start request
        """
        try:
            self.engine.start()
        except Exception as e:
            logger.warning(f"⚠️ [SpeechInput] Could not start recognition: {e}")
            return False
        self.listening = True
        return True

    def stop(self) -> None:
        """Stop listening and forget any pending debounce/restart."""
        self.timers.disarm(TimerPurpose.SPEECH_END)
        self.timers.disarm(TimerPurpose.RECOGNITION_RESTART)
        self.human_speaking = False
        self._stop_engine()

    def _stop_engine(self) -> None:
        self.listening = False
        try:
            self.engine.stop()
        except Exception as e:
            logger.debug(f"[SpeechInput] Error stopping recognition: {e}")

    # ==================== Engine events ====================

    def on_engine_event(self, event: RecognitionEvent) -> None:
        """Entry point for every raw recognition event."""
        if not self.acquired:
            logger.debug(f"[SpeechInput] Ignoring {event.kind.value} (adapter released)")
            return

        if event.kind == RecognitionEventKind.STARTED:
            self.listening = True
            self.human_speaking = False

        elif event.kind == RecognitionEventKind.SPEECH_START:
            self.human_speaking = True
            self.timers.disarm(TimerPurpose.SPEECH_END)
            self._emit(InputEvent(InputEventKind.SPEECH_STARTED))

        elif event.kind == RecognitionEventKind.SPEECH_END:
            # Brief pauses mid-sentence should not end the turn
            self.timers.arm(
                TimerPurpose.SPEECH_END,
                self.config.speech_end_debounce,
                self._on_speech_settled,
            )

        elif event.kind == RecognitionEventKind.RESULT:
            if not event.is_final:
                logger.debug(f"[SpeechInput] Interim: {event.transcript!r}")
                return
            transcript = (event.transcript or "").strip()
            logger.info(f"🎤 [SpeechInput] Final transcript: {transcript!r}")
            self._emit(InputEvent(InputEventKind.TRANSCRIPT, transcript=transcript))

        elif event.kind == RecognitionEventKind.ERROR:
            self._on_error(event.error)

        elif event.kind == RecognitionEventKind.ENDED:
            self._on_ended()

    def _on_speech_settled(self) -> None:
        self.human_speaking = False
        self._stop_engine()

    def _on_error(self, error: Optional[str]) -> None:
        if error == NO_SPEECH_ERROR and self._is_human_turn():
            self._stop_engine()
            self.timers.arm(
                TimerPurpose.RECOGNITION_RESTART,
                self.config.no_speech_restart_delay,
                self._restart_after_no_speech,
            )
            return
        logger.warning(f"⚠️ [SpeechInput] Recognition error: {error}")

    def _restart_after_no_speech(self) -> None:
        if not self._is_human_turn():
            return
        # The engine may already have been restarted by its own end event
        if self.listening or self.start():
            self._emit(InputEvent(InputEventKind.NO_SPEECH))
        else:
            self._schedule_retry()

    def _on_ended(self) -> None:
        self.listening = False
        if not self._is_human_turn() or self.human_speaking:
            return
        logger.debug("[SpeechInput] Recognition ended during human turn, restarting")
        if not self.start():
            self._schedule_retry()

    def _schedule_retry(self) -> None:
        self.timers.arm(
            TimerPurpose.RECOGNITION_RESTART,
            self.config.recognition_retry_delay,
            self._retry_start,
        )

    def _retry_start(self) -> None:
        if not self._is_human_turn():
            return
        if not self.start():
            logger.error("❌ [SpeechInput] Failed to restart recognition again")
            self._emit(InputEvent(InputEventKind.UNAVAILABLE))

    def _emit(self, event: InputEvent) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception as e:
            logger.error(f"❌ [SpeechInput] Listener failed on {event.kind.value}: {e}", exc_info=True)
