"""
Session lifecycle: start -> recommend -> feedback -> (recommend | closed).

The service owns every state transition; route handlers only translate
between HTTP and these calls.
"""

from __future__ import annotations

import datetime
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Literal, Optional

from aiguide.errors import (
    AIGuideError,
    InvalidSessionStateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from aiguide.intent import (
    ContinuationCategory,
    ContinueIntent,
    IntentClassifier,
    StopIntent,
    UnknownIntent,
)
from aiguide.logging_config import logger
from aiguide.models import ChatMessage, Session, SessionState
from aiguide.prompt_templates import load_prompt_template
from aiguide.recommendation import parse_recommendation
from aiguide.schemas import ExportResponse, FeedbackResponse, SessionSnapshot
from aiguide.settings import settings
from aiguide.storage import SessionStore
from aiguide.upstream import UpstreamChatClient

SESSION_SYSTEM_PROMPT = (
    "你是一个专业的AI模型推荐和提示词优化助手。"
    "请严格按照用户提供的提示词模板进行工作，确保输出格式正确。"
)

FEEDBACK_TEMPLATES: Dict[ContinuationCategory, str] = {
    ContinuationCategory.MODIFICATION: (
        '用户对之前的推荐提出了修改意见："{feedback}"\n\n'
        "用户意图：{intent}\n\n"
        "请根据用户的修改意见，重新优化推荐方案。"
    ),
    ContinuationCategory.CLARIFICATION: (
        '用户需要澄清或解释："{feedback}"\n\n'
        "用户意图：{intent}\n\n"
        "请先解答用户的疑问，然后根据澄清后的需求重新优化推荐。"
    ),
    ContinuationCategory.ADDITION: (
        '用户提出了新的需求或补充要求："{feedback}"\n\n'
        "用户意图：{intent}\n\n"
        "请综合考虑用户的原始任务和这个新需求，重新优化推荐方案。"
    ),
}

CONTINUE_MESSAGE = "将根据反馈进行优化"
STOP_MESSAGE = "用户满意，可以结束对话"

IntentFallback = Literal["continue", "stop"]


def build_feedback_message(
    category: ContinuationCategory, user_feedback: str, user_intent: str
) -> str:
    template = FEEDBACK_TEMPLATES.get(category, FEEDBACK_TEMPLATES[ContinuationCategory.ADDITION])
    return template.format(feedback=user_feedback, intent=user_intent or user_feedback)


def _require_text(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value.strip()


class SessionService:
    def __init__(
        self,
        store: SessionStore,
        chat_client: UpstreamChatClient,
        *,
        classifier: Optional[IntentClassifier] = None,
        intent_fallback: Optional[IntentFallback] = None,
    ) -> None:
        self.store = store
        self.chat = chat_client
        self.classifier = classifier or IntentClassifier(chat_client)
        self.intent_fallback: IntentFallback = intent_fallback or settings.intent_fallback

    async def _load(self, session_id: Optional[str]) -> Session:
        sid = _require_text(session_id, "会话ID不能为空")
        session = await self.store.get(sid)
        if session is None:
            raise NotFoundError("会话不存在", details={"session_id": sid})
        return session

    async def start_session(self, user_task: Optional[str]) -> Session:
        task = _require_text(user_task, "用户任务不能为空")
        template = load_prompt_template()

        now = time.time()
        session = Session(
            session_id=await self.store.new_session_id(),
            user_task=task,
            created_at=now,
            updated_at=now,
        )
        session.messages = [
            ChatMessage(role="system", content=SESSION_SYSTEM_PROMPT),
            ChatMessage(role="user", content=f"{template}\n\n用户任务：\n{task}"),
        ]
        session.append_log(f"用户初始任务: {task}\n")
        session.state = SessionState.AWAITING_RECOMMENDATION
        await self.store.create(session)
        logger.info("Session %s created (task_chars=%d)", session.session_id, len(task))
        return session

    async def ensure_exists(self, session_id: Optional[str]) -> str:
        session = await self._load(session_id)
        return session.session_id

    async def stream_recommendation(self, session_id: str) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream one assistant turn as event dicts: any number of
        {"type": "chunk"} events followed by exactly one terminal
        {"type": "complete"} or {"type": "error"} event.

        The session is only mutated after the upstream stream finished
        successfully; an error or a client disconnect leaves it untouched.
        """
        try:
            async with self.store.lock(session_id):
                session = await self._load(session_id)
                if session.state is not SessionState.AWAITING_RECOMMENDATION:
                    raise InvalidSessionStateError(
                        "当前会话状态不允许获取推荐",
                        details={"state": session.state.value},
                    )

                parts: list[str] = []
                async with aclosing(self.chat.stream(list(session.messages))) as deltas:
                    async for delta in deltas:
                        parts.append(delta)
                        yield {"type": "chunk", "content": delta}
                full_response = "".join(parts)

                session.messages.append(ChatMessage(role="assistant", content=full_response))
                summary = full_response[: settings.conversation_summary_chars]
                session.append_log(
                    f"\n第{session.iteration_count}轮AI回复摘要: {summary}...\n"
                )
                recommendation = parse_recommendation(full_response)
                if recommendation is not None:
                    session.recommendations.append(recommendation)
                session.state = SessionState.AWAITING_FEEDBACK
                await self.store.save(session)

                logger.info(
                    "Session %s iteration %d streamed (chars=%d, recommendation=%s)",
                    session_id,
                    session.iteration_count,
                    len(full_response),
                    recommendation is not None,
                )
                yield {
                    "type": "complete",
                    "fullResponse": full_response,
                    "recommendation": (
                        recommendation.model_dump() if recommendation else None
                    ),
                    "iterationCount": session.iteration_count,
                }
        except UpstreamError as exc:
            logger.error("流式推荐失败 session=%s: %s", session_id, exc)
            yield {"type": "error", "message": f"API调用失败: {exc.message}"}
        except AIGuideError as exc:
            yield {"type": "error", "message": exc.message}

    async def analyze_feedback(
        self, session_id: Optional[str], user_feedback: Optional[str]
    ) -> FeedbackResponse:
        session = await self._load(session_id)
        feedback = _require_text(user_feedback, "用户反馈不能为空")

        async with self.store.lock(session.session_id):
            if session.state is not SessionState.AWAITING_FEEDBACK:
                raise InvalidSessionStateError(
                    "当前会话状态不允许提交反馈",
                    details={"state": session.state.value},
                )

            outcome = await self.classifier.classify(feedback, session.conversation_log)
            session.append_log(f"\n第{session.iteration_count}轮用户反馈: {feedback}\n")

            analysis = None
            if isinstance(outcome, UnknownIntent):
                logger.warning(
                    "Session %s: intent unknown (%s); applying '%s' policy",
                    session.session_id,
                    outcome.error,
                    self.intent_fallback,
                )
                if self.intent_fallback == "continue":
                    outcome = ContinueIntent(
                        reason=outcome.error,
                        user_intent=feedback,
                        category=ContinuationCategory.ADDITION,
                    )
                else:
                    outcome = StopIntent(reason=outcome.error, user_intent="")
            else:
                analysis = outcome.to_analysis()

            if isinstance(outcome, ContinueIntent):
                session.messages.append(
                    ChatMessage(
                        role="user",
                        content=build_feedback_message(
                            outcome.category, feedback, outcome.user_intent
                        ),
                    )
                )
                session.iteration_count += 1
                session.append_log(
                    f"用户意图: {outcome.user_intent} (类型: {outcome.category.value})\n"
                )
                session.state = SessionState.AWAITING_RECOMMENDATION
                message = CONTINUE_MESSAGE
            else:
                session.state = SessionState.CLOSED
                message = STOP_MESSAGE

            await self.store.save(session)
            logger.info(
                "Session %s feedback -> %s (iteration=%d)",
                session.session_id,
                session.state.value,
                session.iteration_count,
            )
            return FeedbackResponse(
                should_continue=isinstance(outcome, ContinueIntent),
                analysis=analysis,
                iteration_count=session.iteration_count,
                message=message,
            )

    async def get_snapshot(self, session_id: Optional[str]) -> SessionSnapshot:
        session = await self._load(session_id)
        return SessionSnapshot(
            session_id=session.session_id,
            user_task=session.user_task,
            state=session.state,
            iteration_count=session.iteration_count,
            recommendations=list(session.recommendations),
            conversation_history=session.conversation_log,
            messages=list(session.messages),
            created_at=session.created_at,
            updated_at=session.updated_at,
        )

    async def export(self, session_id: Optional[str]) -> ExportResponse:
        session = await self._load(session_id)
        latest = session.latest_recommendation
        return ExportResponse(
            session_id=session.session_id,
            user_task=session.user_task,
            final_recommendation=latest.model_dump() if latest else {},
            all_recommendations=list(session.recommendations),
            conversation_history=session.conversation_log,
            iteration_count=session.iteration_count,
            export_time=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        )


__all__ = ["SessionService", "build_feedback_message", "FEEDBACK_TEMPLATES"]
