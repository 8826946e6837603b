"""
Shared fixtures: scripted speech engines, a mock backend and a config with
millisecond timings so whole conversations run in well under a second.
"""

import asyncio
import json
import os
import sys
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest

# Add package source to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "conversation_practice", "src"))

from conversation_practice.backend_client import BackendClient
from conversation_practice.config import ConversationConfig
from conversation_practice.speech_input import RecognitionEvent, RecognitionEventKind

API_BASE = "http://backend.test/api"


class FakeBackend:
    """Route table behind an httpx.MockTransport; records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[Tuple[str, str, Optional[dict], httpx.Request]] = []

    def on(self, method: str, path: str, status: int = 200, body=None, error: Exception = None, handler=None):
        """Register a response; paths ending in '*' match by prefix."""
        def respond(request: httpx.Request) -> httpx.Response:
            if error is not None:
                raise error
            if handler is not None:
                return handler(request)
            if isinstance(body, (dict, list)):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body or "")

        self.routes[(method, path)] = respond
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len("/api"):]
        payload = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, payload, request))

        route = self.routes.get((request.method, path))
        if route is None:
            for (method, pattern), candidate in self.routes.items():
                if method == request.method and pattern.endswith("*") and path.startswith(pattern[:-1]):
                    route = candidate
                    break
        if route is None:
            return httpx.Response(404, json={"error": f"no route for {request.method} {path}"})
        return route(request)

    def calls(self, method: str, path: str) -> List[Optional[dict]]:
        """Bodies of requests matching method and path (or path prefix ending in '*')."""
        if path.endswith("*"):
            return [b for m, p, b, _ in self.requests if m == method and p.startswith(path[:-1])]
        return [b for m, p, b, _ in self.requests if m == method and p == path]

    def client(self, token: Optional[str] = "test-token", config: Optional[ConversationConfig] = None) -> BackendClient:
        return BackendClient(
            API_BASE,
            lambda: token,
            config=config,
            transport=httpx.MockTransport(self.handle),
        )


class FakeSynthesisEngine:
    """Finishes every utterance on the next loop iteration unless told to hang."""

    def __init__(self, hang: bool = False, on_speak: Optional[Callable[[str], None]] = None):
        self.hang = hang
        self.on_speak = on_speak
        self.spoken: List[str] = []
        self.cancel_count = 0
        self.pending = []

    def speak(self, text, on_done):
        self.spoken.append(text)
        if self.on_speak is not None:
            self.on_speak(text)
        if self.hang:
            self.pending.append(on_done)
        else:
            asyncio.get_running_loop().call_soon(on_done, None)

    def cancel(self):
        self.cancel_count += 1


class FakeRecognitionEngine:
    """Scripted microphone: tests call say() to produce a final transcript."""

    def __init__(self, failing_starts: int = 0, on_start: Optional[Callable[[], None]] = None):
        self.failing_starts = failing_starts
        self.on_start = on_start
        self.listening = False
        self.start_calls = 0
        self.stop_calls = 0
        self.on_event: Optional[Callable[[RecognitionEvent], None]] = None

    def start(self):
        self.start_calls += 1
        if self.failing_starts > 0:
            self.failing_starts -= 1
            raise RuntimeError("recognition service not allowed")
        self.listening = True
        if self.on_start is not None:
            self.on_start()
        self.emit(RecognitionEvent(RecognitionEventKind.STARTED))

    def stop(self):
        self.stop_calls += 1
        if not self.listening:
            return
        self.listening = False
        asyncio.get_running_loop().call_soon(self.emit, RecognitionEvent(RecognitionEventKind.ENDED))

    def emit(self, event: RecognitionEvent):
        if self.on_event is not None:
            self.on_event(event)

    def say(self, transcript: str):
        self.emit(RecognitionEvent(RecognitionEventKind.SPEECH_START))
        self.emit(RecognitionEvent(RecognitionEventKind.RESULT, transcript=transcript, is_final=True))
        self.emit(RecognitionEvent(RecognitionEventKind.SPEECH_END))


@pytest.fixture
def fast_config():
    return ConversationConfig(
        api_base_url=API_BASE,
        no_response_timeout=5.0,
        inactivity_timeout=5.0,
        synthesis_watchdog=1.0,
        speech_end_debounce=0.01,
        microphone_activation_delay=0.01,
        recognition_retry_delay=0.01,
        no_speech_restart_delay=0.01,
        busy_grace_delay=0.01,
        post_speech_delay=0.0,
        empty_speech_delay=0.0,
        completion_prompt_delay=0.02,
        redirect_delay=0.0,
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def synthesis():
    return FakeSynthesisEngine()


@pytest.fixture
def hanging_synthesis():
    return FakeSynthesisEngine(hang=True)


@pytest.fixture
def recognition():
    return FakeRecognitionEngine()


@pytest.fixture
def make_recognition():
    return FakeRecognitionEngine


@pytest.fixture
def wait_until():
    async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)
    return _wait_until
