"""
Wire Models

Pydantic models for the JSON bodies exchanged with the backend. Field names
are snake_case in Python and keep the backend's own spelling on the wire.
"""

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with backend field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ==================== Analysis ====================

class WordUsage(WireModel):
    word: str
    used: bool = False
    context: Optional[str] = None


class ChatTurn(WireModel):
    role: str  # "user" | "assistant"
    content: str


class AnalysisRequest(WireModel):
    text: str
    topic: str
    formatted_topic: str = Field(alias="formattedTopic")
    level: str = "intermediate"
    learned_words: List[str] = Field(default_factory=list, alias="learnedWords")
    required_words: List[str] = Field(default_factory=list, alias="requiredWords")
    post_content: str = Field(default="", alias="postContent")
    previous_messages: List[ChatTurn] = Field(default_factory=list, alias="previousMessages")


class FeedbackResponse(WireModel):
    """Result of analyzing one human turn (remote or local fallback)."""
    text: str
    feedback: str
    used_words: List[WordUsage] = Field(default_factory=list, alias="usedWords")
    next_question: str = Field(alias="nextQuestion")
    score: int = Field(default=0, ge=0, le=100)
    # Local bookkeeping only, never sent over the wire
    is_fallback: bool = Field(default=False, exclude=True)

    @property
    def used_word_count(self) -> int:
        return sum(1 for w in self.used_words if w.used)

    def feedback_record(self) -> Dict[str, Any]:
        """Structured feedback stored alongside an answer."""
        return {
            "feedback": self.feedback,
            "score": self.score,
            "usedWords": [w.to_wire() for w in self.used_words],
        }


# ==================== Tasks & sessions ====================

class TaskCreateRequest(WireModel):
    topic_name: str = Field(alias="TopicName")
    level: str = Field(alias="Level")
    task_type: str = Field(default="conversation", alias="TaskType")


class TaskCompletionRequest(WireModel):
    task_id: str = Field(alias="taskId")
    task_score: int = Field(alias="TaskScore")
    duration_task: int = Field(alias="DurationTask")
    completion_date: str = Field(alias="CompletionDate")
    session_id: Optional[str] = Field(default=None, alias="SessionId")
    questions_count: int = Field(default=0, alias="QuestionsCount")
    messages_exchanged: int = Field(default=0, alias="MessagesExchanged")


class LevelUpdateRequest(WireModel):
    topic_name: str = Field(alias="topicName")
    current_level: int = Field(alias="currentLevel")
    earned_score: int = Field(alias="earnedScore")
    task_id: str = Field(alias="taskId")
    is_completed: bool = Field(default=True, alias="isCompleted")


class SessionCreateRequest(WireModel):
    session_id: str = Field(alias="SessionId")
    task_id: str = Field(alias="taskId")
    session_type: str = Field(default="conversation", alias="sessionType")


class QuestionCreateRequest(WireModel):
    question_id: str = Field(alias="QuestionId")
    session_id: str = Field(alias="SessionId")
    question_text: str = Field(alias="QuestionText")


class AnswerUpdateRequest(WireModel):
    answer_text: str = Field(alias="AnswerText")
    feedback: str = Field(alias="Feedback")
