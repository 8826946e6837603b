"""
Practice a topic conversation from the terminal

Machine lines are printed; type your answer when the microphone is active.
Commands: /complete finishes the exercise, /stop saves and leaves, /quit
exits without saving.

Usage:
    CONVERSATION_AUTH_TOKEN=... python scripts/practice_console.py innovation-and-technology --level 2
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add package source to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "conversation_practice" / "src"))

from conversation_practice.backend_client import BackendClient
from conversation_practice.completion import CompletionController
from conversation_practice.config import ConversationConfig
from conversation_practice.console_engines import ConsoleRecognitionEngine, ConsoleSynthesisEngine
from conversation_practice.context_loader import load_conversation_context
from conversation_practice.logger import get_logger, setup_logging
from conversation_practice.recorder import ConversationRecorder
from conversation_practice.response_analyzer import ResponseAnalyzer
from conversation_practice.speech_input import SpeechInputAdapter
from conversation_practice.speech_output import SpeechOutputAdapter
from conversation_practice.timers import TimerRegistry
from conversation_practice.topic_helpers import highlight_required_words
from conversation_practice.turn_coordinator import ConversationCoordinator

log = get_logger("practice_console")


async def read_line() -> str:
    return await asyncio.get_running_loop().run_in_executor(None, sys.stdin.readline)


async def main(topic: str, level: str, task_id: str = None, api_url: str = None) -> int:
    config = ConversationConfig.from_env()
    if api_url:
        config.api_base_url = api_url

    async with BackendClient(config=config) as client:
        context = await load_conversation_context(client, topic, level, task_id)
        if context.error:
            log.error(context.error)
            return 1

        print("=" * 70)
        print(highlight_required_words(context.post_content, context.required_words))
        print(f"\nTry to use: {', '.join(context.required_words)}")
        print("=" * 70)

        timers = TimerRegistry()
        recognition = ConsoleRecognitionEngine()
        speech_input = SpeechInputAdapter(recognition, timers, config)
        recognition.on_event = speech_input.on_engine_event
        speech_output = SpeechOutputAdapter(ConsoleSynthesisEngine(), timers, config)

        left = asyncio.Event()
        coordinator = ConversationCoordinator(
            topic=topic,
            level=level,
            task_id=context.task_id,
            speech_input=speech_input,
            speech_output=speech_output,
            analyzer=ResponseAnalyzer(client),
            recorder=ConversationRecorder(client, config),
            completion=CompletionController(client, config, navigator=lambda route: left.set()),
            config=config,
            timers=timers,
            required_words=context.required_words,
            learned_words=context.learned_words,
            post_content=context.post_content,
            task_started_at=context.task_started_at,
        )

        if not await coordinator.start():
            log.error(f"Could not start conversation: {coordinator.error}")
            return 1

        try:
            while not left.is_set():
                line = await read_line()
                if not line:
                    await coordinator.stop()
                    break
                line = line.strip()
                if line == "/quit":
                    break
                if line == "/stop":
                    await coordinator.stop()
                    break
                if line == "/complete":
                    outcome = await coordinator.complete()
                    if outcome is None:
                        continue
                    break
                if line:
                    recognition.feed(line)
        finally:
            await coordinator.close()

        state = coordinator.progress_state
        log.section("Session summary", {
            "messages_exchanged": state.messages_exchanged,
            "average_score": state.average_score,
            "correct_words": state.correct_words_count,
        })
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Practice an English conversation about a topic")
    parser.add_argument("topic", help="Topic slug, e.g. innovation-and-technology")
    parser.add_argument("--level", default="1", help="Current level on this topic")
    parser.add_argument("--task-id", default=None, help="Existing task id (a new task is created otherwise)")
    parser.add_argument("--api-url", default=None, help="Backend API base URL")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.debug else logging.INFO)
    raise SystemExit(asyncio.run(main(args.topic, args.level, args.task_id, args.api_url)))
