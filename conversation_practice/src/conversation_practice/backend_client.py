"""
Backend client for conversation practice

Thin async wrapper over the web app's REST routes. Every call carries the
bearer token from the auth collaborator. Methods return the raw
httpx.Response: each caller applies its own failure policy (fallback,
swallow-and-log, or surface).
"""

import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from conversation_practice.auth import get_auth_token
from conversation_practice.config import ConversationConfig
from conversation_practice.errors import AuthenticationRequiredError
from conversation_practice.logger import get_logger
from conversation_practice.schemas import (
    AnalysisRequest,
    AnswerUpdateRequest,
    LevelUpdateRequest,
    QuestionCreateRequest,
    SessionCreateRequest,
    TaskCompletionRequest,
    TaskCreateRequest,
)

log = get_logger(__name__)

TokenProvider = Callable[[], Optional[str]]


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        *,
        config: Optional[ConversationConfig] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or ConversationConfig()
        self.base_url = (base_url or self.config.api_base_url).rstrip("/")
        self.token_provider = token_provider or get_auth_token
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    def _headers(self) -> Dict[str, str]:
        token = self.token_provider()
        if not token:
            raise AuthenticationRequiredError("Authentication required")
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        kwargs: Dict[str, Any] = {"headers": self._headers()}
        if json is not None:
            kwargs["json"] = json
        if params is not None:
            kwargs["params"] = params
        if timeout is not None:
            kwargs["timeout"] = timeout

        log.request(method, path, data=json)
        started = time.monotonic()
        response = await self._client.request(method, path, **kwargs)
        log.response(response.status_code, path, time.monotonic() - started)
        return response

    # ==================== Tasks ====================

    async def create_task(self, topic_name: str, level: str) -> httpx.Response:
        body = TaskCreateRequest(topic_name=topic_name, level=level)
        return await self.request("POST", "/tasks", json=body.to_wire())

    async def complete_task(self, body: TaskCompletionRequest) -> httpx.Response:
        return await self.request("PUT", "/tasks", json=body.to_wire())

    async def update_user_level(self, body: LevelUpdateRequest) -> httpx.Response:
        return await self.request("POST", "/user-level/update", json=body.to_wire())

    # ==================== Sessions & questions ====================

    async def create_interactive_session(self, body: SessionCreateRequest) -> httpx.Response:
        return await self.request(
            "POST", "/interactive-session", json=body.to_wire(), timeout=self.config.recorder_timeout
        )

    async def create_question(self, body: QuestionCreateRequest) -> httpx.Response:
        return await self.request(
            "POST", "/question", json=body.to_wire(), timeout=self.config.recorder_timeout
        )

    async def update_question(self, question_id: str, body: AnswerUpdateRequest) -> httpx.Response:
        return await self.request(
            "PATCH",
            f"/question/{quote(question_id, safe='')}",
            json=body.to_wire(),
            timeout=self.config.recorder_timeout,
        )

    # ==================== Content ====================

    async def analyze_conversation(self, body: AnalysisRequest) -> httpx.Response:
        return await self.request(
            "POST", "/analyze-conversation", json=body.to_wire(), timeout=self.config.analysis_timeout
        )

    async def create_post(self, topic_name: str) -> httpx.Response:
        return await self.request("POST", f"/create-post/{quote(topic_name, safe='')}", json={})

    async def learned_words(self, topic_name: str) -> httpx.Response:
        return await self.request("GET", "/words/learned", params={"topic": topic_name})

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def error_message(response: httpx.Response, default: str) -> str:
    """Best-effort error text from a failed response."""
    try:
        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
    except ValueError:
        pass
    return response.text or default

