"""
Conversation Context Loader

Gathers everything a conversation page needs before "Start Conversation":
the task id (creating the task when none was given), the post the
conversation is about, the words the learner should use and the words
already learned on the topic.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx

from conversation_practice.backend_client import BackendClient
from conversation_practice.errors import ConversationError
from conversation_practice.topic_helpers import (
    create_fallback_post,
    extract_important_words,
    generate_topic_words,
)

logger = logging.getLogger(__name__)


@dataclass
class ConversationContext:
    topic: str
    level: str
    task_id: Optional[str] = None
    task_started_at: Optional[float] = None
    post_content: str = ""
    required_words: List[str] = field(default_factory=list)
    learned_words: List[str] = field(default_factory=list)
    post_is_fallback: bool = False
    error: Optional[str] = None


async def create_task(client: BackendClient, topic: str, level: str) -> Optional[str]:
    """Create a conversation task and return its TaskId (None on failure)."""
    try:
        response = await client.create_task(topic, level)
    except (httpx.HTTPError, ConversationError) as e:
        logger.error(f"❌ [Context] Error creating conversation task: {e}")
        return None

    if not response.is_success:
        logger.error(f"❌ [Context] Failed to create conversation task: {response.status_code}")
        return None

    try:
        data = response.json()
    except ValueError:
        data = None
    task_id = data.get("TaskId") if isinstance(data, dict) else None
    if task_id:
        logger.info(f"📚 [Context] Created conversation task {task_id}")
    return task_id


async def load_post(client: BackendClient, topic: str):
    """
    Post content and required words for a topic.

    Returns:
        (post_content, required_words, is_fallback)
    """
    post_content, required_words = "", []
    try:
        response = await client.create_post(topic)
        if response.is_success:
            data = response.json()
            if isinstance(data, dict):
                post_content = data.get("text") or ""
                words = data.get("requiredWords")
                if isinstance(words, list):
                    required_words = [w for w in words if isinstance(w, str) and w]
        else:
            logger.warning(f"⚠️ [Context] Post request failed: {response.status_code}")
    except (httpx.HTTPError, ConversationError, ValueError) as e:
        logger.error(f"❌ [Context] Error loading post content: {e}")

    if not post_content:
        logger.info(f"📚 [Context] Using fallback post for {topic}")
        return create_fallback_post(topic), generate_topic_words(topic), True

    if not required_words:
        required_words = extract_important_words(post_content) or generate_topic_words(topic)
    return post_content, required_words, False


def parse_learned_words(data: Any) -> List[str]:
    """Accept both the {success, data: [{Word}]} and the legacy [{Word}] shapes."""
    if isinstance(data, dict) and data.get("success") and isinstance(data.get("data"), list):
        items = data["data"]
    elif isinstance(data, list):
        items = data
    else:
        logger.warning(f"⚠️ [Context] Received empty or invalid learned words response: {data!r}")
        return []
    return [item["Word"] for item in items if isinstance(item, dict) and item.get("Word")]


async def load_learned_words(client: BackendClient, topic: str) -> List[str]:
    try:
        response = await client.learned_words(topic)
        if not response.is_success:
            logger.error(f"❌ [Context] Failed to fetch learned words: {response.status_code}")
            return []
        words = parse_learned_words(response.json())
    except (httpx.HTTPError, ConversationError, ValueError) as e:
        logger.error(f"❌ [Context] Error loading learned words: {e}")
        return []
    logger.info(f"📚 [Context] Loaded {len(words)} learned words")
    return words


async def load_conversation_context(
    client: BackendClient,
    topic: str,
    level: str,
    task_id: Optional[str] = None,
) -> ConversationContext:
    """
    Load the task, post and vocabulary for one conversation.

    Failures degrade: a missing post is replaced by a topic-keyed stand-in
    and missing learned words by an empty list. Only a task that cannot be
    created is reported through context.error.
    """
    context = ConversationContext(topic=topic, level=level, task_id=task_id)

    if not context.task_id:
        context.task_id = await create_task(client, topic, level)
        if not context.task_id:
            context.error = "Failed to initialize conversation task"
    if context.task_id:
        context.task_started_at = datetime.now(timezone.utc).timestamp()

    post_content, required_words, is_fallback = await load_post(client, topic)
    context.post_content = post_content
    context.required_words = required_words
    context.post_is_fallback = is_fallback
    context.learned_words = await load_learned_words(client, topic)
    return context
