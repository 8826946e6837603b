"""
Purpose-keyed Timers

One cancellable timer per purpose. Arming a purpose that is already armed
replaces the old timer, so a state change can never leave two no-response
timers (or two watchdogs) racing each other.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class TimerPurpose(Enum):
    NO_RESPONSE = "no-response"
    INACTIVITY = "inactivity"
    SYNTHESIS_WATCHDOG = "synthesis-watchdog"
    SPEECH_END = "speech-end"
    RECOGNITION_RESTART = "recognition-restart"
    COMPLETION_PROMPT = "completion-prompt"


class TimerRegistry:
    """Cancellable timers on the running event loop, keyed by purpose."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Dict[TimerPurpose, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def arm(self, purpose: TimerPurpose, delay: float, callback: Callable[[], None]) -> None:
        """
        Schedule callback after delay seconds, replacing any timer with the
        same purpose.
        """
        self.disarm(purpose)
        self._handles[purpose] = self._get_loop().call_later(delay, self._fire, purpose, callback)

    def _fire(self, purpose: TimerPurpose, callback: Callable[[], None]) -> None:
        self._handles.pop(purpose, None)
        try:
            callback()
        except Exception as e:
            logger.error(f"❌ [Timers] {purpose.value} callback failed: {e}", exc_info=True)

    def disarm(self, purpose: TimerPurpose) -> bool:
        """Cancel a timer. Returns True if one was armed."""
        handle = self._handles.pop(purpose, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def disarm_all(self) -> None:
        for purpose in list(self._handles):
            self.disarm(purpose)

    def is_armed(self, purpose: TimerPurpose) -> bool:
        return purpose in self._handles

    @property
    def armed(self):
        return set(self._handles)
