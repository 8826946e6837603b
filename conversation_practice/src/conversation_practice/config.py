"""
Conversation Practice Configuration

Every timing, threshold and scoring constant used by the conversation core
lives here so deployments (and tests) can tune them without touching code.
Values can be overridden through CONVERSATION_* environment variables.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv


@dataclass
class ConversationConfig:
    """Tunable settings for one conversation practice page."""
    api_base_url: str = "http://localhost:3000/api"
    language: str = "en-US"

    # Network
    recorder_timeout: float = 8.0
    analysis_timeout: float = 30.0

    # Turn taking (seconds)
    no_response_timeout: float = 20.0
    inactivity_timeout: float = 30.0
    synthesis_watchdog: float = 30.0
    speech_end_debounce: float = 1.0
    microphone_activation_delay: float = 0.5
    recognition_retry_delay: float = 0.5
    no_speech_restart_delay: float = 0.3
    busy_grace_delay: float = 0.5
    post_speech_delay: float = 0.3
    empty_speech_delay: float = 0.1
    completion_prompt_delay: float = 7.0
    redirect_delay: float = 2.0

    # Heuristics
    completion_prompt_after: int = 3
    echo_similarity_threshold: float = 0.7
    completion_score_floor: int = 60
    max_stored_text: int = 1000

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ConversationConfig":
        """
        Build a config from environment variables.

        Each field maps to CONVERSATION_<FIELD_NAME_UPPER>, e.g.
        CONVERSATION_NO_RESPONSE_TIMEOUT=15.

        Args:
            env_file: Optional .env path (defaults to python-dotenv lookup)

        Returns:
            ConversationConfig with overrides applied
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        overrides = {}
        for f in fields(cls):
            raw = os.getenv(f"CONVERSATION_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            if f.type in (float, "float"):
                overrides[f.name] = float(raw)
            elif f.type in (int, "int"):
                overrides[f.name] = int(raw)
            else:
                overrides[f.name] = raw
        return cls(**overrides)
