"""
Console speech engines

Text stand-ins for a microphone and a speaker: machine lines are printed,
and each line typed by the learner is reported as one finished utterance.
"""

import asyncio
import sys
from typing import Callable, Optional, TextIO

from conversation_practice.speech_input import RecognitionEvent, RecognitionEventKind
from conversation_practice.speech_output import ChunkCallback


class ConsoleSynthesisEngine:
    def __init__(self, out: TextIO = sys.stdout, prefix: str = "🤖 "):
        self.out = out
        self.prefix = prefix

    def speak(self, text: str, on_done: ChunkCallback) -> None:
        self.out.write(f"{self.prefix}{text}\n")
        self.out.flush()
        asyncio.get_running_loop().call_soon(on_done, None)

    def cancel(self) -> None:
        pass


class ConsoleRecognitionEngine:
    """
    Turns typed lines into recognition events.

    Lines typed while the engine is stopped are dropped, the same way a
    closed microphone hears nothing.
    """

    def __init__(self, out: TextIO = sys.stdout):
        self.out = out
        self.listening = False
        self.on_event: Optional[Callable[[RecognitionEvent], None]] = None

    def start(self) -> None:
        if self.listening:
            raise RuntimeError("recognition already started")
        self.listening = True
        self._emit(RecognitionEvent(RecognitionEventKind.STARTED))

    def stop(self) -> None:
        if not self.listening:
            return
        self.listening = False
        # Reported on the next loop iteration, like a browser's onend
        asyncio.get_running_loop().call_soon(self._emit, RecognitionEvent(RecognitionEventKind.ENDED))

    def feed(self, line: str) -> bool:
        """Deliver one typed line. Returns False if nobody was listening."""
        if not self.listening:
            self.out.write("(microphone is off, wait for your turn)\n")
            self.out.flush()
            return False
        self._emit(RecognitionEvent(RecognitionEventKind.SPEECH_START))
        self._emit(RecognitionEvent(RecognitionEventKind.RESULT, transcript=line, is_final=True))
        self._emit(RecognitionEvent(RecognitionEventKind.SPEECH_END))
        return True

    def _emit(self, event: RecognitionEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)
