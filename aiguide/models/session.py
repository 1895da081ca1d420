from enum import Enum
from typing import List, Literal

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    CREATED = "created"
    AWAITING_RECOMMENDATION = "awaiting_recommendation"
    AWAITING_FEEDBACK = "awaiting_feedback"
    CLOSED = "closed"


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class Recommendation(BaseModel):
    """
    The {model, prompt} pair the conversation is converging on.
    """

    model: str = Field(..., description="Recommended model name")
    prompt: str = Field(..., description="Optimised prompt body")


class Session(BaseModel):
    """
    Process-local state of one task-to-recommendation conversation.
    """

    session_id: str = Field(..., description="Opaque id derived from creation time")
    user_task: str = Field(..., description="Original task text")
    messages: List[ChatMessage] = Field(default_factory=list)
    conversation_log: str = Field(
        "", description="Append-only human-readable log; not machine-parsed"
    )
    iteration_count: int = Field(1, ge=1)
    recommendations: List[Recommendation] = Field(default_factory=list)
    state: SessionState = SessionState.CREATED
    created_at: float = Field(..., description="Creation timestamp (epoch seconds)")
    updated_at: float = Field(..., description="Last mutation timestamp (epoch seconds)")

    def append_log(self, line: str) -> None:
        self.conversation_log += line

    @property
    def latest_recommendation(self) -> Recommendation | None:
        return self.recommendations[-1] if self.recommendations else None


__all__ = ["ChatMessage", "Recommendation", "Session", "SessionState"]
