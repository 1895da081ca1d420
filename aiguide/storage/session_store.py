"""
Session storage.

`SessionStore` is the seam the service layer talks to; the only
implementation today keeps sessions in a process-wide dict, so every
session is lost on restart. There is no expiry and no eviction.
"""

from __future__ import annotations

import abc
import asyncio
import time
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from aiguide.errors import NotFoundError, SessionBusyError
from aiguide.logging_config import logger
from aiguide.models import Session


class SessionStore(abc.ABC):
    @abc.abstractmethod
    async def new_session_id(self) -> str:
        """Return an id not used by any stored session."""

    @abc.abstractmethod
    async def create(self, session: Session) -> Session:
        ...

    @abc.abstractmethod
    async def get(self, session_id: str) -> Optional[Session]:
        ...

    @abc.abstractmethod
    async def save(self, session: Session) -> None:
        ...

    @abc.abstractmethod
    def lock(self, session_id: str) -> AbstractAsyncContextManager[None]:
        """
        Single-flight guard for mutations of one session. Raises
        SessionBusyError instead of waiting when the session is in use.
        Unknown ids raise NotFoundError.
        """

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources held by the store."""


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_id = 0

    def __len__(self) -> int:
        return len(self._sessions)

    async def new_session_id(self) -> str:
        # Millisecond timestamp, bumped past collisions and past the last
        # issued id so ids stay unique and increasing within the process.
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        while str(candidate) in self._sessions:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    async def create(self, session: Session) -> Session:
        if session.session_id in self._sessions:
            raise ValueError(f"Session '{session.session_id}' already exists")
        self._sessions[session.session_id] = session
        self._locks[session.session_id] = asyncio.Lock()
        return session

    async def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    async def save(self, session: Session) -> None:
        session.updated_at = time.time()
        self._sessions[session.session_id] = session

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            raise NotFoundError("会话不存在", details={"session_id": session_id})
        # No await between the check and the acquire, so this cannot race
        # with another coroutine on the same loop.
        if lock.locked():
            logger.info("Session %s is busy; rejecting concurrent request", session_id)
            raise SessionBusyError(
                "会话正在处理其他请求，请稍后再试", details={"session_id": session_id}
            )
        async with lock:
            yield

    async def close(self) -> None:
        logger.info("Closing in-memory session store (%d sessions dropped)", len(self))
        self._sessions.clear()
        self._locks.clear()


__all__ = ["SessionStore", "InMemorySessionStore"]
