"""
Session / Question / Answer Recorder

Persists the interactive session, each machine question and the human's
answer to it. Recording is best-effort: every failure is logged and
swallowed so a flaky backend never interrupts the conversation. Ids are
generated locally first, so callers always get a usable id back.
"""

import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional

import httpx

from conversation_practice.backend_client import BackendClient, error_message
from conversation_practice.config import ConversationConfig
from conversation_practice.errors import ConversationError
from conversation_practice.schemas import (
    AnswerUpdateRequest,
    QuestionCreateRequest,
    SessionCreateRequest,
)
from conversation_practice.session_state import Answer, Question, truncate_text

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class ConversationRecorder:
    """Best-effort persistence of one conversation's session and Q/A pairs."""

    def __init__(
        self,
        client: BackendClient,
        config: Optional[ConversationConfig] = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.client = client
        self.config = config or ConversationConfig()
        self.id_factory = id_factory

        self.session_id: Optional[str] = None
        self.current_question_id: Optional[str] = None
        self.questions_count = 0
        self.questions: Dict[str, Question] = {}
        self.answers: Dict[str, Answer] = {}

    def reset(self) -> None:
        self.session_id = None
        self.current_question_id = None
        self.questions_count = 0
        self.questions = {}
        self.answers = {}

    # ==================== Session ====================

    async def create_session(self, task_id: str) -> str:
        """
        Create the interactive session for a task.

        The session id is generated locally and adopted immediately; if the
        server answers with a different SessionId, the server's wins.

        Returns:
            The session id in effect
        """
        session_id = self.id_factory()
        self.session_id = session_id

        logger.info(f"💾 [Recorder] Creating interactive session for task {task_id}")
        body = SessionCreateRequest(session_id=session_id, task_id=task_id)
        try:
            response = await self.client.create_interactive_session(body)
        except (httpx.HTTPError, ConversationError) as e:
            logger.error(f"❌ [Recorder] Error creating interactive session: {e}")
            return session_id

        if not response.is_success:
            message = error_message(response, "Failed to create interactive session")
            logger.error(f"❌ [Recorder] Interactive session creation failed: {message}")
            return session_id

        data = self._json(response)
        server_id = data.get("SessionId") if isinstance(data, dict) else None
        if server_id and server_id != session_id:
            logger.info(f"💾 [Recorder] Server assigned session id {server_id}")
            self.session_id = server_id
        return self.session_id

    # ==================== Questions ====================

    def new_question(self, text: str, session_id: Optional[str] = None) -> Question:
        """
        Allocate a question and make it current without touching the network.

        Identical texts always get distinct ids.
        """
        question = Question(
            question_id=self.id_factory(),
            session_id=session_id or self.session_id or "",
            text=truncate_text(text, self.config.max_stored_text),
        )
        self.questions[question.question_id] = question
        self.current_question_id = question.question_id
        self.questions_count += 1
        return question

    async def save_question(self, question: Question) -> bool:
        """Persist a question allocated by new_question()."""
        if not question.session_id:
            logger.error("❌ [Recorder] Cannot record question: missing session id")
            return False

        body = QuestionCreateRequest(
            question_id=question.question_id,
            session_id=question.session_id,
            question_text=question.text,
        )
        try:
            response = await self.client.create_question(body)
        except (httpx.HTTPError, ConversationError) as e:
            logger.error(f"❌ [Recorder] Error recording question: {e}")
            return False

        if not response.is_success:
            message = error_message(response, "Failed to record question")
            logger.error(f"❌ [Recorder] Question recording failed: {message}")
            return False

        logger.debug(f"[Recorder] Question {question.question_id} recorded")
        return True

    async def record_question(self, text: str) -> Optional[str]:
        """
        Create and persist a question.

        Returns:
            The new question id, or None when there is no session yet
        """
        if not self.session_id:
            logger.error("❌ [Recorder] Cannot record question: missing session id")
            return None
        question = self.new_question(text)
        await self.save_question(question)
        return question.question_id

    # ==================== Answers ====================

    async def record_answer(self, question_id: Optional[str], text: str, feedback: Any) -> bool:
        """
        Attach the human's answer to a question.

        Args:
            question_id: Question being answered
            text: Transcript (truncated for storage)
            feedback: Feedback string, or a structure serialized to JSON

        Returns:
            True if the backend stored the answer
        """
        if not self.session_id or not question_id:
            logger.error("❌ [Recorder] Cannot record answer: missing session id or question id")
            return False

        question = self.questions.get(question_id)
        if question is not None and question.answered:
            logger.warning(f"⚠️ [Recorder] Question {question_id} already has an answer")
            return False

        if isinstance(feedback, str):
            feedback_text = feedback
        else:
            try:
                feedback_text = json.dumps(feedback)
            except (TypeError, ValueError) as e:
                logger.warning(f"⚠️ [Recorder] Could not serialize feedback, storing empty string: {e}")
                feedback_text = ""

        answer = Answer(question_id, truncate_text(text, self.config.max_stored_text), feedback_text)
        body = AnswerUpdateRequest(answer_text=answer.text, feedback=answer.feedback)
        try:
            response = await self.client.update_question(question_id, body)
        except (httpx.HTTPError, ConversationError) as e:
            logger.error(f"❌ [Recorder] Error recording answer: {e}")
            return False

        if not response.is_success:
            message = error_message(response, "Failed to record answer")
            logger.error(f"❌ [Recorder] Answer recording failed: {message}")
            return False

        if question is not None:
            question.answered = True
        self.answers[question_id] = answer
        logger.debug(f"[Recorder] Answer for question {question_id} recorded")
        return True

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
