"""
Completion Controller

Computes the final score of a conversation and persists it: the task is
marked complete and the user's topic level is updated. Each call is
independent; a failure in one is logged and does not prevent the other.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from conversation_practice.backend_client import BackendClient, error_message
from conversation_practice.config import ConversationConfig
from conversation_practice.errors import ConversationError
from conversation_practice.schemas import LevelUpdateRequest, TaskCompletionRequest
from conversation_practice.session_state import ProgressState, round_half_up
from conversation_practice.topic_helpers import format_topic_name

logger = logging.getLogger(__name__)

TOPICS_ROUTE = "/topics"

Navigator = Callable[[str], None]


@dataclass
class CompletionOutcome:
    final_score: int
    duration_seconds: int
    task_saved: bool
    level_saved: bool

    @property
    def saved(self) -> bool:
        return self.task_saved and self.level_saved


def parse_level(level: Optional[str], default: int = 1) -> int:
    """Numeric level from a route parameter ("2" -> 2)."""
    try:
        return int(str(level).strip())
    except (TypeError, ValueError):
        return default


class CompletionController:
    def __init__(
        self,
        client: BackendClient,
        config: Optional[ConversationConfig] = None,
        navigator: Optional[Navigator] = None,
        wall_clock: Callable[[], float] = lambda: datetime.now(timezone.utc).timestamp(),
    ):
        self.client = client
        self.config = config or ConversationConfig()
        self.navigator = navigator
        self.wall_clock = wall_clock

    def final_score(self, progress: ProgressState, prefer_average: bool = False) -> int:
        """
        Score persisted for the task.

        With no score recorded but some exchanges, the share of correct words
        per message is used instead. The result is clamped to
        [completion_score_floor, 100].
        """
        if progress.total_score <= 0 and progress.messages_exchanged > 0:
            score = round_half_up(100 * progress.correct_words_count / progress.messages_exchanged)
        elif prefer_average:
            score = progress.average_score
        else:
            score = progress.total_score
        return max(self.config.completion_score_floor, min(100, score))

    async def finish(
        self,
        task_id: str,
        topic: str,
        level: Optional[str],
        session_id: Optional[str],
        questions_count: int,
        progress: ProgressState,
        task_started_at: Optional[float] = None,
        prefer_average: bool = False,
    ) -> CompletionOutcome:
        """
        Persist task completion and the level update.

        Args:
            task_id: Task being completed
            topic: Topic slug
            level: Level route parameter
            session_id: Interactive session id, if one was created
            questions_count: Questions recorded in this session
            progress: Final progress counters
            task_started_at: Wall-clock timestamp of the task start
            prefer_average: Score from the average (complete) instead of the total (stop)

        Returns:
            CompletionOutcome describing what was saved
        """
        score = self.final_score(progress, prefer_average)
        duration = 0
        if task_started_at is not None:
            duration = max(0, math.floor(self.wall_clock() - task_started_at))

        logger.info(f"🏁 [Completion] Marking task {task_id} complete with score {score} after {duration}s")

        task_body = TaskCompletionRequest(
            task_id=task_id,
            task_score=score,
            duration_task=duration,
            completion_date=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            session_id=session_id,
            questions_count=questions_count,
            messages_exchanged=progress.messages_exchanged,
        )
        task_saved = await self._send("Task completion", self.client.complete_task(task_body))

        level_body = LevelUpdateRequest(
            topic_name=format_topic_name(topic),
            current_level=parse_level(level),
            earned_score=score,
            task_id=task_id,
        )
        level_saved = await self._send("Level update", self.client.update_user_level(level_body))

        return CompletionOutcome(
            final_score=score,
            duration_seconds=duration,
            task_saved=task_saved,
            level_saved=level_saved,
        )

    def navigate(self, route: str = TOPICS_ROUTE) -> None:
        """Leave the conversation page."""
        if self.navigator is None:
            logger.info(f"🏁 [Completion] No navigator configured, staying put (wanted {route})")
            return
        logger.info(f"🏁 [Completion] Redirecting to {route}")
        self.navigator(route)

    async def _send(self, label: str, call) -> bool:
        try:
            response = await call
        except (httpx.HTTPError, ConversationError) as e:
            logger.error(f"❌ [Completion] {label} failed: {e}")
            return False

        if not response.is_success:
            logger.error(f"❌ [Completion] {label} failed: {error_message(response, response.reason_phrase)}")
            return False

        logger.info(f"✅ [Completion] {label} saved")
        return True
