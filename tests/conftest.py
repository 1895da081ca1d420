"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that `import aiguide`
works consistently in all tests, and provides small fakes for the upstream.
"""

import sys
from pathlib import Path
from typing import AsyncIterator, List, Optional, Sequence

import pytest


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from aiguide.models import ChatMessage  # noqa: E402


class FakeChatClient:
    """
    Stand-in for UpstreamChatClient that replays canned output.
    """

    def __init__(
        self,
        *,
        stream_parts: Sequence[str] = (),
        stream_error: Optional[Exception] = None,
        reply: str = "",
        reply_error: Optional[Exception] = None,
    ) -> None:
        self.stream_parts = list(stream_parts)
        self.stream_error = stream_error
        self.reply = reply
        self.reply_error = reply_error
        self.completed: List[List[ChatMessage]] = []
        self.streamed: List[List[ChatMessage]] = []

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        self.completed.append(list(messages))
        if self.reply_error is not None:
            raise self.reply_error
        return self.reply

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        self.streamed.append(list(messages))
        for part in self.stream_parts:
            yield part
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture
def fake_chat() -> FakeChatClient:
    return FakeChatClient(
        stream_parts=[
            "推荐使用 DeepSeek-Chat。\n",
            '{"model": "DeepSeek-Chat", ',
            '"prompt": "你是一位诗人，请写一首七言绝句。"}',
        ],
        reply='{"should_continue": true, "reason": "用户不满意", '
        '"user_intent": "希望调整", "continuation_type": "modification"}',
    )


@pytest.fixture
def make_chat():
    return FakeChatClient
