"""
Unit Tests for Speech Input Adapter

Tests event translation, the speech-end debounce and restart policy.
"""

import asyncio

import pytest

from conversation_practice.speech_input import (
    InputEventKind,
    RecognitionEvent,
    RecognitionEventKind,
    SpeechInputAdapter,
)
from conversation_practice.timers import TimerPurpose, TimerRegistry


class TestSpeechInputAdapter:
    """Test suite for SpeechInputAdapter."""

    @pytest.fixture
    def turn(self):
        return {"human": True}

    @pytest.fixture
    def events(self):
        return []

    @pytest.fixture
    def make_adapter(self, fast_config, turn, events):
        def _make(engine):
            adapter = SpeechInputAdapter(engine, TimerRegistry(), fast_config)
            engine.on_event = adapter.on_engine_event
            adapter.acquire(events.append, lambda: turn["human"])
            return adapter
        return _make

    @pytest.mark.asyncio
    async def test_final_result_forwarded(self, make_adapter, recognition, events):
        adapter = make_adapter(recognition)
        assert adapter.start()

        recognition.emit(RecognitionEvent(RecognitionEventKind.RESULT, transcript="interim", is_final=False))
        recognition.say("  I love startups  ")

        kinds = [e.kind for e in events]
        assert kinds == [InputEventKind.SPEECH_STARTED, InputEventKind.TRANSCRIPT]
        assert events[1].transcript == "I love startups"

    @pytest.mark.asyncio
    async def test_speech_end_debounce_stops_recognition(self, make_adapter, recognition):
        adapter = make_adapter(recognition)
        adapter.start()

        recognition.emit(RecognitionEvent(RecognitionEventKind.SPEECH_START))
        assert adapter.human_speaking
        recognition.emit(RecognitionEvent(RecognitionEventKind.SPEECH_END))
        assert adapter.timers.is_armed(TimerPurpose.SPEECH_END)

        await asyncio.sleep(0.05)

        assert not adapter.human_speaking
        assert recognition.stop_calls >= 1

    @pytest.mark.asyncio
    async def test_speech_resuming_cancels_debounce(self, make_adapter, recognition):
        adapter = make_adapter(recognition)
        adapter.start()

        recognition.emit(RecognitionEvent(RecognitionEventKind.SPEECH_START))
        recognition.emit(RecognitionEvent(RecognitionEventKind.SPEECH_END))
        recognition.emit(RecognitionEvent(RecognitionEventKind.SPEECH_START))

        assert not adapter.timers.is_armed(TimerPurpose.SPEECH_END)
        assert adapter.human_speaking

    @pytest.mark.asyncio
    async def test_ended_during_human_turn_restarts(self, make_adapter, recognition):
        adapter = make_adapter(recognition)
        adapter.start()

        recognition.listening = False
        recognition.emit(RecognitionEvent(RecognitionEventKind.ENDED))

        assert recognition.start_calls == 2
        assert recognition.listening

    @pytest.mark.asyncio
    async def test_ended_outside_human_turn_stays_off(self, make_adapter, recognition, turn):
        adapter = make_adapter(recognition)
        adapter.start()
        turn["human"] = False

        adapter.stop()
        await asyncio.sleep(0.01)

        assert recognition.start_calls == 1
        assert not recognition.listening

    @pytest.mark.asyncio
    async def test_restart_retried_once(self, make_adapter, make_recognition, events):
        engine = make_recognition(failing_starts=1)
        adapter = make_adapter(engine)

        engine.emit(RecognitionEvent(RecognitionEventKind.ENDED))
        assert engine.start_calls == 1
        await asyncio.sleep(0.05)

        assert engine.start_calls == 2
        assert engine.listening
        assert events == []

    @pytest.mark.asyncio
    async def test_second_restart_failure_reports_unavailable(self, make_adapter, make_recognition, events):
        engine = make_recognition(failing_starts=2)
        make_adapter(engine)

        engine.emit(RecognitionEvent(RecognitionEventKind.ENDED))
        await asyncio.sleep(0.05)

        assert engine.start_calls == 2
        assert [e.kind for e in events] == [InputEventKind.UNAVAILABLE]

    @pytest.mark.asyncio
    async def test_no_speech_restarts_and_reports(self, make_adapter, recognition, events):
        adapter = make_adapter(recognition)
        adapter.start()

        recognition.emit(RecognitionEvent(RecognitionEventKind.ERROR, error="no-speech"))
        assert not adapter.listening
        await asyncio.sleep(0.05)

        assert recognition.listening
        assert InputEventKind.NO_SPEECH in [e.kind for e in events]

    @pytest.mark.asyncio
    async def test_other_errors_only_logged(self, make_adapter, recognition, events, caplog):
        adapter = make_adapter(recognition)
        adapter.start()

        recognition.emit(RecognitionEvent(RecognitionEventKind.ERROR, error="network"))

        assert events == []
        assert "Recognition error: network" in caplog.text

    @pytest.mark.asyncio
    async def test_released_adapter_ignores_events(self, make_adapter, recognition, events):
        adapter = make_adapter(recognition)
        adapter.release()

        recognition.say("Hello there")

        assert events == []
        assert not adapter.acquired

    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self, fast_config, recognition):
        adapter = SpeechInputAdapter(recognition, TimerRegistry(), fast_config)
        recognition.on_event = adapter.on_engine_event

        def broken_listener(event):
            raise RuntimeError("listener bug")

        adapter.acquire(broken_listener, lambda: True)
        adapter.start()
        recognition.say("Hello there")

        assert adapter.human_speaking
