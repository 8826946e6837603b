"""
Speech Output Adapter

Speaks machine lines through a text-to-speech engine one sentence at a
time. Long texts are split into sentence chunks (engines tend to cut off or
stall on long utterances), repeated sentences are dropped, and a watchdog
frees the turn if the engine never reports completion.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from conversation_practice.config import ConversationConfig
from conversation_practice.timers import TimerPurpose, TimerRegistry

logger = logging.getLogger(__name__)

# A sentence is a run of non-terminators followed by terminators, or the
# trailing fragment at the end of the text.
_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")
_WHITESPACE = re.compile(r"\s+")

ChunkCallback = Callable[[Optional[str]], None]


class SynthesisEngine(Protocol):
    """Minimal capability a text-to-speech backend must provide."""

    def speak(self, text: str, on_done: ChunkCallback) -> None:
        """Speak text, then call on_done(None), or on_done(error) on failure."""
        ...

    def cancel(self) -> None: ...


@dataclass(frozen=True)
class Voice:
    name: str
    lang: str


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE.findall(text or "") if s.strip()]


def dedupe_sentences(sentences: Sequence[str]) -> List[str]:
    """Drop sentences already seen (case and whitespace insensitive)."""
    seen = set()
    unique = []
    for sentence in sentences:
        normalized = _WHITESPACE.sub(" ", sentence.lower())
        if normalized in seen:
            continue
        seen.add(normalized)
        unique.append(sentence)
    return unique


def prepare_chunks(text: str) -> List[str]:
    """Sentence-sized, de-duplicated chunks ready for synthesis."""
    return dedupe_sentences(split_sentences(text))


def choose_voice(voices: Sequence[Voice], preferred: Optional[str] = None) -> Optional[Voice]:
    """
    Pick an English voice.

    An explicitly preferred name wins, then a voice whose name mentions
    "female", then the first English voice.
    """
    english = [v for v in voices if "en-" in v.lang]
    if preferred:
        for voice in voices:
            if voice.name == preferred:
                return voice
    for voice in english:
        if "female" in voice.name.lower():
            return voice
    return english[0] if english else None


class SpeechOutputAdapter:
    """Sequential, chunked speech output with an anti-deadlock watchdog."""

    def __init__(
        self,
        engine: SynthesisEngine,
        timers: Optional[TimerRegistry] = None,
        config: Optional[ConversationConfig] = None,
        preferred_voice: Optional[str] = None,
    ):
        self.engine = engine
        self.timers = timers or TimerRegistry()
        self.config = config or ConversationConfig()
        self.preferred_voice = preferred_voice

        self.speaking = False
        self.voice: Optional[Voice] = None
        self._acquired = False
        self._generation = 0
        self._pending: Optional[asyncio.Future] = None

    def acquire(self) -> None:
        self._acquired = True
        # Voice selection is optional: not every engine exposes voices
        list_voices = getattr(self.engine, "voices", None)
        set_voice = getattr(self.engine, "set_voice", None)
        if callable(list_voices) and callable(set_voice):
            self.voice = choose_voice(list_voices(), self.preferred_voice)
            if self.voice:
                set_voice(self.voice)
                logger.info(f"🔊 [SpeechOutput] Using voice: {self.voice.name}")

    def release(self) -> None:
        self.cancel()
        self._acquired = False

    async def speak(self, text: str) -> None:
        """
        Speak text and return once every chunk has finished.

        A call made while another line is still being spoken is ignored
        and returns after the busy grace delay.
        """
        if self.speaking:
            logger.info("🔊 [SpeechOutput] Already speaking, not starting new utterance")
            await asyncio.sleep(self.config.busy_grace_delay)
            return

        chunks = prepare_chunks(text)
        if not chunks:
            logger.debug("[SpeechOutput] No speech chunks to process")
            await asyncio.sleep(self.config.empty_speech_delay)
            return

        loop = asyncio.get_running_loop()
        self.speaking = True
        self._generation += 1
        generation = self._generation
        self._pending = loop.create_future()
        pending = self._pending

        try:
            self.engine.cancel()
        except Exception as e:
            logger.debug(f"[SpeechOutput] Error cancelling previous speech: {e}")

        self.timers.arm(
            TimerPurpose.SYNTHESIS_WATCHDOG,
            self.config.synthesis_watchdog,
            lambda: self._on_watchdog(generation),
        )
        logger.debug(f"[SpeechOutput] Speaking {len(chunks)} chunk(s), generation {generation}")
        self._speak_chunk(loop, generation, chunks, 0)

        try:
            await pending
        finally:
            if self._generation == generation:
                self.timers.disarm(TimerPurpose.SYNTHESIS_WATCHDOG)
        await asyncio.sleep(self.config.post_speech_delay)

    def _speak_chunk(self, loop, generation: int, chunks: List[str], index: int) -> None:
        if generation != self._generation:
            return
        if index >= len(chunks):
            self._finish(generation)
            return

        done = False

        def on_done(error: Optional[str] = None) -> None:
            nonlocal done
            if done:
                return
            done = True
            if error:
                logger.warning(f"⚠️ [SpeechOutput] Speech error in chunk {index}: {error}")
            # Continue on the loop so synchronous engines cannot recurse deeply
            loop.call_soon(self._speak_chunk, loop, generation, chunks, index + 1)

        try:
            self.engine.speak(chunks[index], on_done)
        except Exception as e:
            on_done(str(e))

    def _finish(self, generation: int) -> None:
        if generation != self._generation:
            return
        self.speaking = False
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self._pending = None

    def _on_watchdog(self, generation: int) -> None:
        if not self.speaking or generation != self._generation:
            return
        logger.warning(f"⚠️ [SpeechOutput] Speech watchdog triggered for generation {generation}")
        try:
            self.engine.cancel()
        except Exception as e:
            logger.debug(f"[SpeechOutput] Error cancelling stalled speech: {e}")
        self._finish(generation)

    def cancel(self) -> None:
        """Stop speaking immediately and release any waiting speak() call."""
        self.timers.disarm(TimerPurpose.SYNTHESIS_WATCHDOG)
        try:
            self.engine.cancel()
        except Exception as e:
            logger.debug(f"[SpeechOutput] Error cancelling speech: {e}")
        if self.speaking:
            self._finish(self._generation)
        # Stale chunk callbacks from the cancelled utterance are ignored
        self._generation += 1
