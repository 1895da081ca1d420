from .session import (
    ExportResponse,
    FeedbackRequest,
    FeedbackResponse,
    HealthResponse,
    IntentAnalysis,
    RecommendRequest,
    SessionSnapshot,
    StartSessionRequest,
    StartSessionResponse,
)

__all__ = [
    "ExportResponse",
    "FeedbackRequest",
    "FeedbackResponse",
    "HealthResponse",
    "IntentAnalysis",
    "RecommendRequest",
    "SessionSnapshot",
    "StartSessionRequest",
    "StartSessionResponse",
]
