from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from aiguide.models import ChatMessage, Recommendation, SessionState


class _CamelModel(BaseModel):
    # Wire format is camelCase; Python attributes stay snake_case.
    model_config = ConfigDict(populate_by_name=True)


class StartSessionRequest(_CamelModel):
    user_task: Optional[str] = Field(default=None, alias="userTask")


class StartSessionResponse(_CamelModel):
    session_id: str = Field(..., alias="sessionId")
    iteration_count: int = Field(..., alias="iterationCount")
    message: str = "会话创建成功"


class RecommendRequest(_CamelModel):
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class FeedbackRequest(_CamelModel):
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    user_feedback: Optional[str] = Field(default=None, alias="userFeedback")


class IntentAnalysis(BaseModel):
    """
    Classifier judgment echoed back to the client; keys follow the
    upstream model's JSON contract, hence snake_case.
    """

    should_continue: bool
    reason: str = ""
    user_intent: str = ""
    continuation_type: Optional[str] = None


class FeedbackResponse(_CamelModel):
    should_continue: bool = Field(..., alias="shouldContinue")
    analysis: Optional[IntentAnalysis] = None
    iteration_count: int = Field(..., alias="iterationCount")
    message: str


class SessionSnapshot(_CamelModel):
    session_id: str = Field(..., alias="sessionId")
    user_task: str = Field(..., alias="userTask")
    state: SessionState
    iteration_count: int = Field(..., alias="iterationCount")
    recommendations: list[Recommendation] = Field(default_factory=list)
    conversation_history: str = Field("", alias="conversationHistory")
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: float = Field(..., alias="createdAt")
    updated_at: float = Field(..., alias="updatedAt")


class ExportResponse(_CamelModel):
    session_id: str = Field(..., alias="sessionId")
    user_task: str = Field(..., alias="userTask")
    # Empty object when no recommendation was ever parsed.
    final_recommendation: Dict[str, Any] = Field(
        default_factory=dict, alias="finalRecommendation"
    )
    all_recommendations: list[Recommendation] = Field(
        default_factory=list, alias="allRecommendations"
    )
    conversation_history: str = Field("", alias="conversationHistory")
    iteration_count: int = Field(..., alias="iterationCount")
    export_time: str = Field(..., alias="exportTime")


class HealthResponse(BaseModel):
    status: str = "ok"


__all__ = [
    "StartSessionRequest",
    "StartSessionResponse",
    "RecommendRequest",
    "FeedbackRequest",
    "IntentAnalysis",
    "FeedbackResponse",
    "SessionSnapshot",
    "ExportResponse",
    "HealthResponse",
]
