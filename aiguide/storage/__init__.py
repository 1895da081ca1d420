from .session_store import InMemorySessionStore, SessionStore

__all__ = ["InMemorySessionStore", "SessionStore"]
