"""
Feedback intent classification.

The judgment itself is delegated to the upstream model through a single
non-streaming call; this module builds the instruction prompt, extracts the
JSON verdict and turns it into a tagged outcome.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from .errors import ParseError, UpstreamError
from .logging_config import logger
from .models import ChatMessage
from .schemas import IntentAnalysis
from .upstream import UpstreamChatClient

INTENT_SYSTEM_PROMPT = "你是一个专业的对话意图分析助手。请准确判断用户是否需要继续对话。"

INTENT_PROMPT_TEMPLATE = """
请分析用户的最新反馈，判断用户是否要求继续对话或添加新需求。

对话历史上下文：
{conversation_log}

用户最新反馈：
"{user_feedback}"

分析标准：
1. 如果用户表达了对当前推荐或提示词的【不满意】、【需要修改】、【有疑问】、【想要调整】等，则需要继续对话
2. 如果用户提出【新的需求】、【添加内容】、【补充信息】等，则需要继续对话
3. 如果用户只是表达【满意】、【认可】、【感谢】且没有新需求，则可以结束对话
4. 如果用户要求【更多】、【另外】、【还有】等内容，则需要继续对话

你的分析结果必须以以下JSON格式输出：
{{
  "should_continue": true或false,
  "reason": "分析原因",
  "user_intent": "用户的意图描述",
  "continuation_type": "如果should_continue为true，说明是哪种类型的继续：'modification'表示修改需求，'addition'表示添加需求，'clarification'表示澄清需求"
}}

请确保只输出JSON，不要有其他内容。
"""


class ContinuationCategory(str, Enum):
    MODIFICATION = "modification"
    CLARIFICATION = "clarification"
    ADDITION = "addition"

    @classmethod
    def parse(cls, value: Any) -> "ContinuationCategory":
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.ADDITION


@dataclass(frozen=True)
class ContinueIntent:
    reason: str
    user_intent: str
    category: ContinuationCategory

    def to_analysis(self) -> IntentAnalysis:
        return IntentAnalysis(
            should_continue=True,
            reason=self.reason,
            user_intent=self.user_intent,
            continuation_type=self.category.value,
        )


@dataclass(frozen=True)
class StopIntent:
    reason: str
    user_intent: str

    def to_analysis(self) -> IntentAnalysis:
        return IntentAnalysis(
            should_continue=False, reason=self.reason, user_intent=self.user_intent
        )


@dataclass(frozen=True)
class UnknownIntent:
    error: str


IntentOutcome = Union[ContinueIntent, StopIntent, UnknownIntent]


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Return the first well-formed JSON object embedded in ``text``.

    Every '{' is tried as a starting point; the first one that decodes to
    an object wins. Never raises.
    """
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            value, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        idx = text.find("{", idx + 1)
    return None


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ParseError(f"should_continue is not a boolean: {value!r}")


def interpret_verdict(verdict: dict[str, Any]) -> IntentOutcome:
    """
    Map the model's JSON verdict onto a tagged outcome.
    """
    try:
        should_continue = _coerce_bool(verdict.get("should_continue"))
    except ParseError as exc:
        return UnknownIntent(error=str(exc))

    reason = str(verdict.get("reason") or "")
    user_intent = str(verdict.get("user_intent") or "")
    if should_continue:
        return ContinueIntent(
            reason=reason,
            user_intent=user_intent,
            category=ContinuationCategory.parse(verdict.get("continuation_type")),
        )
    return StopIntent(reason=reason, user_intent=user_intent)


class IntentClassifier:
    def __init__(self, chat_client: UpstreamChatClient) -> None:
        self._chat = chat_client

    @staticmethod
    def build_messages(user_feedback: str, conversation_log: str) -> list[ChatMessage]:
        prompt = INTENT_PROMPT_TEMPLATE.format(
            conversation_log=conversation_log, user_feedback=user_feedback
        )
        return [
            ChatMessage(role="system", content=INTENT_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

    async def classify(self, user_feedback: str, conversation_log: str) -> IntentOutcome:
        """
        Classify the latest feedback. Failures yield UnknownIntent, never an
        exception; deciding what "unknown" means is up to the caller.
        """
        messages = self.build_messages(user_feedback, conversation_log)
        try:
            reply = await self._chat.complete(messages)
        except UpstreamError as exc:
            logger.warning("分析用户意图失败: %s", exc)
            return UnknownIntent(error=str(exc))

        verdict = extract_json_object(reply)
        if verdict is None:
            logger.warning("Intent reply contained no JSON object: %r", reply[:200])
            return UnknownIntent(error="no JSON object in classifier reply")

        outcome = interpret_verdict(verdict)
        if isinstance(outcome, UnknownIntent):
            logger.warning("Unusable intent verdict %r: %s", verdict, outcome.error)
        return outcome


__all__ = [
    "ContinuationCategory",
    "ContinueIntent",
    "StopIntent",
    "UnknownIntent",
    "IntentOutcome",
    "IntentClassifier",
    "extract_json_object",
    "interpret_verdict",
]
