from .session_service import SessionService

__all__ = ["SessionService"]
