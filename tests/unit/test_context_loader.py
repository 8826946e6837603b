"""
Unit Tests for Conversation Context Loader
"""

import httpx
import pytest

from conversation_practice.context_loader import (
    load_conversation_context,
    load_learned_words,
    load_post,
    parse_learned_words,
)
from conversation_practice.topic_helpers import generate_topic_words

TOPIC = "innovation-and-technology"


class TestLoadPost:
    """Test suite for post loading."""

    @pytest.mark.asyncio
    async def test_post_with_required_words(self, backend):
        backend.on("POST", f"/create-post/{TOPIC}", body={
            "text": "Israeli startups lead in cyber research.",
            "requiredWords": ["startup", "cyber", ""],
        })

        post, words, is_fallback = await load_post(backend.client(), TOPIC)

        assert post == "Israeli startups lead in cyber research."
        assert words == ["startup", "cyber"]
        assert not is_fallback
        assert backend.calls("POST", f"/create-post/{TOPIC}") == [{}]

    @pytest.mark.asyncio
    async def test_words_extracted_when_missing(self, backend):
        backend.on("POST", f"/create-post/{TOPIC}", body={
            "text": "Drones help farmers everywhere. Farmers trust drones.",
        })

        _, words, is_fallback = await load_post(backend.client(), TOPIC)

        assert words == ["drones", "farmers", "help", "everywhere", "trust"]
        assert not is_fallback

    @pytest.mark.asyncio
    @pytest.mark.parametrize("route", [
        {"status": 500, "body": {"error": "generation failed"}},
        {"status": 200, "body": {"text": ""}},
        {"status": 200, "body": "not json"},
        {"error": httpx.ConnectError("connection refused")},
    ])
    async def test_fallback_post(self, backend, route):
        backend.on("POST", f"/create-post/{TOPIC}", **route)

        post, words, is_fallback = await load_post(backend.client(), TOPIC)

        assert is_fallback
        assert "innovation" in post
        assert words == generate_topic_words(TOPIC)


class TestLearnedWords:
    """Test suite for learned words parsing and loading."""

    def test_wrapped_shape(self):
        data = {"success": True, "data": [{"Word": "startup"}, {"Word": "cyber"}, {"Other": 1}]}
        assert parse_learned_words(data) == ["startup", "cyber"]

    def test_legacy_list_shape(self):
        assert parse_learned_words([{"Word": "research"}, {"Word": ""}]) == ["research"]

    @pytest.mark.parametrize("data", [None, {"success": False}, {"data": "nope"}, "words"])
    def test_invalid_shapes(self, data):
        assert parse_learned_words(data) == []

    @pytest.mark.asyncio
    async def test_query_parameter(self, backend):
        backend.on("GET", "/words/learned", body=[{"Word": "innovation"}])

        words = await load_learned_words(backend.client(), TOPIC)

        assert words == ["innovation"]
        request = backend.requests[0][3]
        assert request.url.params["topic"] == TOPIC

    @pytest.mark.asyncio
    async def test_failure_gives_empty_list(self, backend):
        backend.on("GET", "/words/learned", status=401, body={"error": "Unauthorized"})
        assert await load_learned_words(backend.client(), TOPIC) == []


class TestLoadConversationContext:
    """Test suite for the full context load."""

    @pytest.fixture
    def content_routes(self, backend):
        backend.on("POST", f"/create-post/{TOPIC}", body={"text": "Post text", "requiredWords": ["startup"]})
        backend.on("GET", "/words/learned", body={"success": True, "data": [{"Word": "cyber"}]})
        return backend

    @pytest.mark.asyncio
    async def test_creates_task_when_missing(self, content_routes):
        content_routes.on("POST", "/tasks", body={"TaskId": "task-9"})

        context = await load_conversation_context(content_routes.client(), TOPIC, "2")

        assert context.task_id == "task-9"
        assert context.task_started_at is not None
        assert context.error is None
        assert context.post_content == "Post text"
        assert context.required_words == ["startup"]
        assert context.learned_words == ["cyber"]
        assert content_routes.calls("POST", "/tasks") == [
            {"TopicName": TOPIC, "Level": "2", "TaskType": "conversation"}
        ]

    @pytest.mark.asyncio
    async def test_existing_task_reused(self, content_routes):
        context = await load_conversation_context(content_routes.client(), TOPIC, "2", task_id="task-1")

        assert context.task_id == "task-1"
        assert content_routes.calls("POST", "/tasks") == []

    @pytest.mark.asyncio
    async def test_task_failure_reported(self, content_routes):
        content_routes.on("POST", "/tasks", status=500, body={"error": "insert failed"})

        context = await load_conversation_context(content_routes.client(), TOPIC, "2")

        assert context.task_id is None
        assert context.task_started_at is None
        assert context.error == "Failed to initialize conversation task"
        # Content still loads so the page can render
        assert context.post_content == "Post text"
