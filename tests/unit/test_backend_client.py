"""
Unit Tests for Backend Client and Wire Models
"""

import pytest
import httpx
from pydantic import ValidationError

from conversation_practice.backend_client import BackendClient, error_message
from conversation_practice.errors import AuthenticationRequiredError
from conversation_practice.schemas import (
    AnalysisRequest,
    AnswerUpdateRequest,
    ChatTurn,
    FeedbackResponse,
    WordUsage,
)


class TestWireModels:
    """Test suite for wire field naming."""

    def test_analysis_request_aliases(self):
        body = AnalysisRequest(
            text="Hello",
            topic="society",
            formatted_topic="Society",
            previous_messages=[ChatTurn(role="user", content="Hi")],
        ).to_wire()

        assert body == {
            "text": "Hello",
            "topic": "society",
            "formattedTopic": "Society",
            "level": "intermediate",
            "learnedWords": [],
            "requiredWords": [],
            "postContent": "",
            "previousMessages": [{"role": "user", "content": "Hi"}],
        }

    def test_feedback_response_from_wire(self):
        response = FeedbackResponse.model_validate({
            "text": "Nice",
            "feedback": "Good grammar",
            "usedWords": [{"word": "culture", "used": True}, {"word": "heritage"}],
            "nextQuestion": "Why?",
            "score": 75,
        })

        assert response.next_question == "Why?"
        assert response.used_word_count == 1
        assert response.feedback_record() == {
            "feedback": "Good grammar",
            "score": 75,
            "usedWords": [{"word": "culture", "used": True}, {"word": "heritage", "used": False}],
        }

    def test_fallback_flag_not_serialized(self):
        response = FeedbackResponse(text="t", feedback="f", next_question="q", score=70, is_fallback=True)

        assert "is_fallback" not in response.to_wire()
        assert response.to_wire()["nextQuestion"] == "q"

    def test_score_bounds_enforced(self):
        with pytest.raises(ValidationError):
            FeedbackResponse(text="t", feedback="f", next_question="q", score=101)

    def test_word_usage_context_omitted_when_absent(self):
        assert WordUsage(word="tradition").to_wire() == {"word": "tradition", "used": False}


class TestBackendClient:
    """Test suite for BackendClient."""

    @pytest.mark.asyncio
    async def test_headers_and_base_url(self, backend):
        backend.on("PATCH", "/question/*", body={"success": True})
        client = backend.client(token="abc")

        response = await client.update_question("q 1/2", AnswerUpdateRequest(answer_text="a", feedback="f"))

        assert response.status_code == 200
        method, path, payload, request = backend.requests[0]
        assert method == "PATCH"
        assert request.url.raw_path.decode() == "/api/question/q%201%2F2"
        assert request.headers["Authorization"] == "Bearer abc"
        assert payload == {"AnswerText": "a", "Feedback": "f"}

    @pytest.mark.asyncio
    async def test_missing_token_raises_before_sending(self, backend):
        client = backend.client(token=None)

        with pytest.raises(AuthenticationRequiredError):
            await client.create_task("society", "1")
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, backend):
        async with backend.client() as client:
            assert client.base_url == "http://backend.test/api"
        assert client._client.is_closed

    def test_trailing_slash_trimmed(self):
        client = BackendClient("http://backend.test/api/", lambda: "t")
        assert client.base_url == "http://backend.test/api"

    @pytest.mark.parametrize("response,expected", [
        (httpx.Response(500, json={"error": "database down"}), "database down"),
        (httpx.Response(502, text="Bad gateway"), "Bad gateway"),
        (httpx.Response(500, text=""), "Request failed"),
    ])
    def test_error_message(self, response, expected):
        assert error_message(response, "Request failed") == expected
