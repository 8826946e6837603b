"""
Turn Coordinator

Runs one spoken conversation on a single event loop:

    start -> speak welcome + first question -> microphone on
          -> final transcript -> analyze -> speak reply + next question
          -> microphone on -> ... -> stop/complete

The coordinator is the only writer of the turn state. The machine and the
human never hold the turn at the same time: queuing a machine line closes
the microphone first, and the microphone is only opened once the output
queue has drained.
"""

import asyncio
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Set

from conversation_practice.auth import get_auth_token, verify_token as default_verify_token
from conversation_practice.completion import CompletionController, CompletionOutcome
from conversation_practice.config import ConversationConfig
from conversation_practice.echo_filter import is_echo
from conversation_practice.errors import (
    AuthenticationRequiredError,
    ConversationError,
    SessionUnavailableError,
)
from conversation_practice.logger import get_logger
from conversation_practice.progress_tracker import COMPLETION_PROMPT, ProgressTracker
from conversation_practice.recorder import ConversationRecorder
from conversation_practice.response_analyzer import ResponseAnalyzer
from conversation_practice.schemas import FeedbackResponse
from conversation_practice.session_state import (
    ConversationMessage,
    ConversationSession,
    ProgressState,
    Role,
)
from conversation_practice.speech_input import InputEvent, InputEventKind, SpeechInputAdapter
from conversation_practice.speech_output import SpeechOutputAdapter
from conversation_practice.timers import TimerPurpose, TimerRegistry
from conversation_practice.topic_helpers import first_question_for, format_topic_name
from conversation_practice.turn_state import TurnState, TurnStateMachine

log = get_logger(__name__)

MICROPHONE_ACTIVE = "🎤 Microphone is active. Please speak now."
WAITING_REMINDER = "I'm waiting for your response. Please speak clearly when the microphone is active."
MICROPHONE_TROUBLE = "I'm having trouble with the microphone. Please try refreshing the page."
NO_RESPONSE = "I didn't hear your response. Let's move on to the next question."
INACTIVITY_REMINDER = "Are you still there? I'm waiting for your response."
ANALYSIS_TROUBLE = "I'm having trouble understanding. Let's try again."
SAVING_PROGRESS = "Saving your progress..."
COMPLETED = "Great job! You've completed the conversation practice."
TASK_RECORDED = "Task completed! You can now return to topics or try another activity."

# Leading characters of a reply compared against queued lines
DUPLICATE_PREFIX_CHARS = 20


class ConversationCoordinator:
    """
    Owns the turn state, the output queue and the timers of one conversation.

    Collaborators are injected so the whole flow runs against fake speech
    engines and a mocked backend in tests.
    """

    def __init__(
        self,
        *,
        topic: str,
        level: str,
        task_id: Optional[str],
        speech_input: SpeechInputAdapter,
        speech_output: SpeechOutputAdapter,
        analyzer: ResponseAnalyzer,
        recorder: ConversationRecorder,
        completion: CompletionController,
        config: Optional[ConversationConfig] = None,
        timers: Optional[TimerRegistry] = None,
        token_provider: Callable[[], Optional[str]] = get_auth_token,
        verify_token: Callable[[Optional[str]], Optional[dict]] = default_verify_token,
        required_words: Sequence[str] = (),
        learned_words: Sequence[str] = (),
        post_content: str = "",
        task_started_at: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.topic = topic
        self.level = level
        self.task_id = task_id
        self.speech_input = speech_input
        self.speech_output = speech_output
        self.analyzer = analyzer
        self.recorder = recorder
        self.completion = completion
        self.config = config or ConversationConfig()
        self.timers = timers or speech_input.timers
        self.token_provider = token_provider
        self.verify_token = verify_token
        self.required_words = list(required_words)
        self.learned_words = list(learned_words)
        self.post_content = post_content
        self.task_started_at = task_started_at

        self.turns = TurnStateMachine(clock=clock)
        self.messages: List[ConversationMessage] = []
        self.progress = ProgressTracker(self.config.completion_prompt_after)
        self.queue: Deque[str] = deque()
        self.error: Optional[str] = None
        self.first_question = first_question_for(topic)
        self.outcome: Optional[CompletionOutcome] = None
        self.session: Optional[ConversationSession] = None

        self._deferred: List[str] = []
        self._last_spoken_line = ""
        self._waiting_reminder_posted = False
        self._completing = False
        self._drain_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    # ==================== Public state ====================

    @property
    def state(self) -> TurnState:
        return self.turns.state

    @property
    def is_active(self) -> bool:
        return self.turns.is_active

    @property
    def progress_state(self) -> ProgressState:
        return self.progress.state

    @property
    def session_id(self) -> Optional[str]:
        return self.recorder.session_id

    # ==================== Start ====================

    async def start(self) -> bool:
        """
        Start the conversation.

        Returns:
            True once the welcome line and first question are queued. On
            failure `error` is set and the coordinator stays IDLE.
        """
        if self.turns.is_active:
            log.warning("Conversation already running")
            return False
        if self.turns.is_ended():
            self.error = "Conversation has ended"
            return False

        self.error = None
        try:
            self._check_preconditions()
        except ConversationError as e:
            self.error = str(e)
            log.warning(f"Cannot start conversation: {e}")
            return False

        self.messages.clear()
        self.progress.reset()
        self.queue.clear()
        self._deferred.clear()
        self.recorder.reset()
        self.session = None
        self._last_spoken_line = ""
        self._waiting_reminder_posted = False

        self.speech_input.acquire(self._on_input_event, lambda: self.turns.awaiting_human)
        self.speech_output.acquire()

        log.section("Conversation started", {
            "topic": self.topic,
            "level": self.level,
            "task_id": self.task_id,
        })

        try:
            session_id = await self.recorder.create_session(self.task_id)
            if not session_id:
                raise SessionUnavailableError("Failed to create conversation session")
        except ConversationError as e:
            self.error = str(e)
            log.error("Could not create session", error=e)
            self._release_adapters()
            return False

        self.session = ConversationSession(session_id, self.task_id, self.topic, self.level)
        self.turns.transition(TurnState.MACHINE_SPEAKING, "start")

        welcome = (
            f"Welcome to our conversation about {format_topic_name(self.topic)}! "
            "Let's practice English together."
        )
        self._post(Role.MACHINE, welcome)
        self._post(Role.MACHINE, self.first_question)
        question = self.recorder.new_question(self.first_question)
        self._spawn(self.recorder.save_question(question))

        self._enqueue(welcome)
        self._enqueue(self.first_question)
        return True

    def _check_preconditions(self) -> None:
        token = self.token_provider()
        if not token or self.verify_token(token) is None:
            raise AuthenticationRequiredError("Authentication required")
        if not self.task_id:
            raise SessionUnavailableError("Task ID is required to start a conversation")

    # ==================== Output queue ====================

    def _enqueue(self, line: str) -> None:
        """Queue a machine line, taking the turn back from the human if needed."""
        state = self.turns.state
        if state in (TurnState.IDLE, TurnState.ENDED):
            return
        if state == TurnState.ANALYZING_HUMAN:
            # Spoken after the analysis result
            self._deferred.append(line)
            return
        if state == TurnState.AWAITING_HUMAN:
            self.timers.disarm(TimerPurpose.NO_RESPONSE)
            self.speech_input.stop()
            self.turns.transition(TurnState.MACHINE_SPEAKING, "line queued")

        self.queue.append(line)
        self._ensure_draining()

    def _ensure_draining(self) -> None:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = self._spawn(self._drain())

    async def _drain(self) -> None:
        while not self.turns.is_ended():
            while self.queue and not self.turns.is_ended():
                line = self.queue.popleft()
                self._last_spoken_line = line
                await self.speech_output.speak(line)

            if self.turns.is_ended():
                return
            await asyncio.sleep(self.config.microphone_activation_delay)
            if self.queue:
                continue
            if self.turns.machine_speaking:
                self._activate_microphone()
            return

    def _activate_microphone(self) -> None:
        self.turns.transition(TurnState.AWAITING_HUMAN, "microphone active")

        if not self.speech_input.start():
            self._post(Role.MACHINE, MICROPHONE_TROUBLE, feedback="Microphone error")
        elif not (self.messages and self.messages[-1].text == MICROPHONE_ACTIVE):
            self._post(Role.MACHINE, MICROPHONE_ACTIVE, feedback="Your turn to speak")

        self._arm_no_response()

    # ==================== Human input ====================

    def _on_input_event(self, event: InputEvent) -> None:
        if event.kind == InputEventKind.SPEECH_STARTED:
            # Restart the countdowns; they wait while the human is speaking
            if self.turns.awaiting_human:
                self._arm_no_response()
            if self.timers.is_armed(TimerPurpose.INACTIVITY):
                self._arm_inactivity()

        elif event.kind == InputEventKind.TRANSCRIPT:
            self._on_transcript(event.transcript or "")

        elif event.kind == InputEventKind.NO_SPEECH:
            if self.turns.awaiting_human and not self._waiting_reminder_posted:
                self._waiting_reminder_posted = True
                self._post(Role.MACHINE, WAITING_REMINDER, feedback="Microphone is listening")

        elif event.kind == InputEventKind.UNAVAILABLE:
            self._post(Role.MACHINE, MICROPHONE_TROUBLE, feedback="Microphone error")

    def _on_transcript(self, transcript: str) -> None:
        if not self.turns.awaiting_human:
            log.debug(f"Ignoring transcript outside the human turn ({self.turns.state.value})")
            return
        if len(transcript) <= 1:
            log.debug(f"Ignoring too-short transcript {transcript!r}")
            self._arm_no_response()
            return
        if is_echo(transcript, self._last_spoken_line, self.config.echo_similarity_threshold):
            log.info(f"Detected echo of machine speech, ignoring: {transcript!r}")
            self._arm_no_response()
            return

        self.timers.disarm(TimerPurpose.NO_RESPONSE)
        self._arm_inactivity()
        self.speech_input.stop()
        self.turns.transition(TurnState.ANALYZING_HUMAN, "transcript accepted")

        history = list(self.messages)
        self._post(Role.HUMAN, transcript)
        self._spawn(self._analyze(transcript, history))

    async def _analyze(self, transcript: str, history: List[ConversationMessage]) -> None:
        try:
            response = await self.analyzer.analyze(
                transcript,
                self.topic,
                required_words=self.required_words,
                learned_words=self.learned_words,
                post_content=self.post_content,
                messages=history,
            )
        except Exception as e:
            log.error("Error processing response", error=e)
            if self.turns.is_ended():
                return
            self.turns.transition(TurnState.MACHINE_SPEAKING, "analysis failed")
            self._post(
                Role.MACHINE,
                ANALYSIS_TROUBLE,
                feedback="Technical issue occurred. Please try responding again.",
            )
            self._enqueue(ANALYSIS_TROUBLE)
            self._flush_deferred()
            return

        if self.turns.is_ended():
            return
        self._apply_analysis(transcript, response)

    def _apply_analysis(self, transcript: str, response: FeedbackResponse) -> None:
        reply = f"{response.text}\n\n{response.next_question}"
        self._post(Role.MACHINE, reply, feedback=response.feedback, score=response.score)

        self.turns.transition(TurnState.MACHINE_SPEAKING, "analysis complete")
        prefix = response.text[:DUPLICATE_PREFIX_CHARS]
        if not any(prefix in line for line in self.queue):
            self._enqueue(reply)
        self._flush_deferred()

        answered_id = self.recorder.current_question_id
        next_question = self.recorder.new_question(response.next_question)
        self._spawn(self._record_exchange(answered_id, transcript, response, next_question))

        state = self.progress.record_turn(response.score, response.used_words)
        log.info(
            f"Turn scored {response.score}"
            f"{' (fallback)' if response.is_fallback else ''}, "
            f"average {state.average_score} over {state.messages_exchanged} turn(s)"
        )

        if self.progress.should_offer_completion(self.messages, self.queue):
            self.timers.arm(
                TimerPurpose.COMPLETION_PROMPT,
                self.config.completion_prompt_delay,
                self._offer_completion,
            )

    async def _record_exchange(self, answered_id, transcript, response, next_question) -> None:
        await self.recorder.record_answer(answered_id, transcript, response.feedback_record())
        await self.recorder.save_question(next_question)

    def _flush_deferred(self) -> None:
        deferred, self._deferred = self._deferred, []
        for line in deferred:
            self._enqueue(line)

    # ==================== Timers ====================

    def _arm_no_response(self) -> None:
        self.timers.arm(TimerPurpose.NO_RESPONSE, self.config.no_response_timeout, self._on_no_response)

    def _arm_inactivity(self) -> None:
        self.timers.arm(TimerPurpose.INACTIVITY, self.config.inactivity_timeout, self._on_inactivity)

    def _on_no_response(self) -> None:
        if not self.turns.awaiting_human:
            return
        if self.speech_input.human_speaking:
            self._arm_no_response()
            return
        log.info("No response from the human, moving on")
        self.speech_input.stop()
        self._post(Role.MACHINE, NO_RESPONSE)
        self._enqueue(NO_RESPONSE)
        self._enqueue("Let's try again. " + self.first_question)

    def _on_inactivity(self) -> None:
        if not self.turns.awaiting_human:
            return
        if self.speech_input.human_speaking:
            self._arm_inactivity()
            return
        self._post(Role.MACHINE, INACTIVITY_REMINDER)
        self._enqueue(INACTIVITY_REMINDER)

    def _offer_completion(self) -> None:
        if not self.turns.is_active:
            return
        if not self.progress.should_offer_completion(self.messages, list(self.queue) + self._deferred):
            return
        self._post(
            Role.MACHINE,
            COMPLETION_PROMPT,
            feedback='You can say "complete" to finish or continue responding to practice more.',
        )
        question = self.recorder.new_question(COMPLETION_PROMPT)
        self._spawn(self.recorder.save_question(question))
        self._enqueue(COMPLETION_PROMPT)

    # ==================== Ending ====================

    def _end(self, reason: str) -> None:
        if self.turns.is_ended():
            return
        self.turns.transition(TurnState.ENDED, reason)
        self.timers.disarm_all()
        self.speech_input.stop()
        self.speech_output.cancel()
        self.queue.clear()
        self._deferred.clear()
        if self._drain_task is not None and self._drain_task is not asyncio.current_task():
            self._drain_task.cancel()

    async def stop(self) -> Optional[CompletionOutcome]:
        """End the conversation, save progress (total score) and leave the page."""
        if self.turns.is_ended():
            return None
        self._end("stop")
        if not self.task_id:
            log.warning("Conversation stopped without a task, nothing to save")
            return None
        self._post(
            Role.MACHINE,
            SAVING_PROGRESS,
            feedback="Please wait while we update your level.",
        )
        log.section("Conversation stopped", {"messages_exchanged": self.progress.state.messages_exchanged})

        self.outcome = await self._finish(prefer_average=False)
        self.completion.navigate()
        return self.outcome

    async def complete(self) -> Optional[CompletionOutcome]:
        """Finish the exercise (average score), announce it and leave the page."""
        if self._completing or self.turns.is_ended() or not self.task_id:
            return None
        self._completing = True
        try:
            self._end("complete")
            average = self.progress.average_score
            feedback = f"Your average score: {average}/100"
            self._post(Role.MACHINE, COMPLETED, feedback=feedback)
            log.section("Conversation completed", {"average_score": average})

            if self.recorder.session_id:
                await self.recorder.record_question(COMPLETED)

            announcement = asyncio.ensure_future(self.speech_output.speak(f"{COMPLETED} {feedback}"))
            self.outcome = await self._finish(prefer_average=True)
            await announcement

            if not self.outcome.saved:
                # Failures are already logged by the completion controller
                log.warning("Leaving the conversation with unsaved progress")

            self._post(Role.MACHINE, TASK_RECORDED, feedback="✅ Task completion recorded")
            await self.speech_output.speak(TASK_RECORDED)
            await asyncio.sleep(self.config.redirect_delay)
            self.completion.navigate()
            return self.outcome
        finally:
            self._completing = False

    async def _finish(self, prefer_average: bool) -> CompletionOutcome:
        return await self.completion.finish(
            task_id=self.task_id,
            topic=self.topic,
            level=self.level,
            session_id=self.recorder.session_id,
            questions_count=self.recorder.questions_count,
            progress=self.progress.state,
            task_started_at=self.task_started_at,
            prefer_average=prefer_average,
        )

    async def close(self) -> None:
        """Tear down: end the conversation if running and release everything."""
        if self.turns.is_active:
            self._end("closed")
        self.timers.disarm_all()

        pending = [t for t in self._tasks if t is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._release_adapters()

    def _release_adapters(self) -> None:
        self.speech_input.release()
        self.speech_output.release()

    # ==================== Helpers ====================

    def _post(self, role: Role, text: str, feedback: Optional[str] = None, score: Optional[int] = None) -> None:
        self.messages.append(ConversationMessage(role=role, text=text, feedback=feedback, score=score))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Background task failed", error=error)
