"""
Response Analyzer

Turns one human transcript into feedback, a score and the next question.
The remote analysis service is preferred; anything short of a complete,
well-formed answer from it (rate limiting, server errors, bad JSON, missing
fields, transport failures) is answered by the local fallback generator so
the conversation never stalls.
"""

import logging
import math
import random
from typing import Any, Dict, Optional, Sequence

import httpx
from pydantic import ValidationError

from conversation_practice.backend_client import BackendClient
from conversation_practice.errors import ConversationError
from conversation_practice.fallback_responses import (
    DEFAULT_SCORING,
    FallbackScoring,
    generate_fallback_response,
    heuristic_score,
)
from conversation_practice.schemas import AnalysisRequest, ChatTurn, FeedbackResponse
from conversation_practice.session_state import ConversationMessage, messages_as_history
from conversation_practice.topic_helpers import format_topic_name

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("text", "feedback", "nextQuestion")


class ResponseAnalyzer:
    """Remote analysis with a local, seeded fallback."""

    def __init__(
        self,
        client: BackendClient,
        rng: Optional[random.Random] = None,
        scoring: FallbackScoring = DEFAULT_SCORING,
    ):
        self.client = client
        self.rng = rng or random.Random()
        self.scoring = scoring

    async def analyze(
        self,
        transcript: str,
        topic: str,
        required_words: Sequence[str] = (),
        learned_words: Sequence[str] = (),
        post_content: str = "",
        messages: Sequence[ConversationMessage] = (),
    ) -> FeedbackResponse:
        """
        Analyze a human answer.

        Args:
            transcript: Accepted final transcript
            topic: Topic slug
            required_words: Words the learner should use
            learned_words: Words already learned on this topic
            post_content: Post the conversation is about
            messages: Transcript so far, oldest first

        Returns:
            FeedbackResponse, remote when possible, otherwise is_fallback=True
        """
        request = AnalysisRequest(
            text=transcript,
            topic=topic,
            formatted_topic=format_topic_name(topic),
            learned_words=list(learned_words),
            required_words=list(required_words),
            post_content=post_content or "",
            previous_messages=[ChatTurn(**turn) for turn in messages_as_history(list(messages))],
        )

        try:
            response = await self.client.analyze_conversation(request)
        except (httpx.HTTPError, ConversationError) as e:
            logger.error(f"❌ [Analyzer] Request failed: {type(e).__name__}: {e}")
            return self._fallback(transcript, topic, required_words)

        if response.status_code == 429:
            logger.warning("⚠️ [Analyzer] Rate limit reached, using fallback response")
            return self._fallback(transcript, topic, required_words)

        if not response.is_success:
            logger.error(f"❌ [Analyzer] API response error: {response.status_code}")
            return self._fallback(transcript, topic, required_words)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"❌ [Analyzer] Error parsing API response: {e}")
            return self._fallback(transcript, topic, required_words)

        result = self._parse(data, transcript)
        if result is None:
            return self._fallback(transcript, topic, required_words)
        return result

    def _parse(self, data: Any, transcript: str) -> Optional[FeedbackResponse]:
        if not isinstance(data, dict) or not all(data.get(key) for key in REQUIRED_FIELDS):
            logger.error(f"❌ [Analyzer] Invalid API response format: {data!r}")
            return None

        payload: Dict[str, Any] = dict(data)
        if not isinstance(payload.get("usedWords"), list):
            payload["usedWords"] = []

        # A missing or unusable score is replaced by the local heuristic
        score = payload.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
            used = sum(1 for w in payload["usedWords"] if isinstance(w, dict) and w.get("used"))
            score = heuristic_score(transcript, used, self.scoring)
        payload["score"] = max(0, min(100, int(round(score))))

        try:
            return FeedbackResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"❌ [Analyzer] API response failed validation: {e}")
            return None

    def _fallback(self, transcript: str, topic: str, required_words: Sequence[str]) -> FeedbackResponse:
        return generate_fallback_response(
            transcript, topic, list(required_words), rng=self.rng, scoring=self.scoring
        )
