from .session import ChatMessage, Recommendation, Session, SessionState

__all__ = [
    "ChatMessage",
    "Recommendation",
    "Session",
    "SessionState",
]
