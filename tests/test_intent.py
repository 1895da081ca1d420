import pytest

from aiguide.errors import UpstreamError
from aiguide.intent import (
    ContinuationCategory,
    ContinueIntent,
    IntentClassifier,
    StopIntent,
    UnknownIntent,
    extract_json_object,
    interpret_verdict,
)


def test_extract_json_object_skips_prose_and_broken_objects():
    text = '好的，分析如下 {broken 然后 {"should_continue": false, "reason": "满意"} 结束 {"x": 1}'

    assert extract_json_object(text) == {"should_continue": False, "reason": "满意"}


def test_extract_json_object_handles_code_fences():
    text = '```json\n{\n  "should_continue": true,\n  "reason": "需要修改"\n}\n```'

    assert extract_json_object(text) == {"should_continue": True, "reason": "需要修改"}


def test_extract_json_object_returns_none_without_object():
    assert extract_json_object("没有 JSON") is None
    assert extract_json_object("[1, 2, 3]") is None
    assert extract_json_object("{ unterminated") is None


def test_interpret_verdict_continue_with_category():
    outcome = interpret_verdict(
        {
            "should_continue": True,
            "reason": "用户有疑问",
            "user_intent": "想了解温度参数",
            "continuation_type": "clarification",
        }
    )

    assert outcome == ContinueIntent(
        reason="用户有疑问",
        user_intent="想了解温度参数",
        category=ContinuationCategory.CLARIFICATION,
    )


@pytest.mark.parametrize("raw", [None, "", "something-else", 3])
def test_interpret_verdict_defaults_category_to_addition(raw):
    outcome = interpret_verdict({"should_continue": True, "continuation_type": raw})

    assert isinstance(outcome, ContinueIntent)
    assert outcome.category is ContinuationCategory.ADDITION


def test_interpret_verdict_stop_accepts_string_boolean():
    outcome = interpret_verdict({"should_continue": "false", "reason": "满意"})

    assert outcome == StopIntent(reason="满意", user_intent="")


def test_interpret_verdict_non_boolean_is_unknown():
    assert isinstance(interpret_verdict({"should_continue": "maybe"}), UnknownIntent)
    assert isinstance(interpret_verdict({"reason": "no flag"}), UnknownIntent)


def test_build_messages_embeds_feedback_and_log():
    messages = IntentClassifier.build_messages("再短一点", "用户初始任务: 写一首诗\n")

    assert [m.role for m in messages] == ["system", "user"]
    assert '"再短一点"' in messages[1].content
    assert "用户初始任务: 写一首诗" in messages[1].content
    assert '"should_continue"' in messages[1].content


@pytest.mark.asyncio
async def test_classify_modification(make_chat):
    chat = make_chat(
        reply='分析结果：{"should_continue": true, "reason": "不满意", '
        '"user_intent": "希望调整", "continuation_type": "modification"}'
    )

    outcome = await IntentClassifier(chat).classify("还不够好，能再调整一下吗", "log")

    assert isinstance(outcome, ContinueIntent)
    assert outcome.category is ContinuationCategory.MODIFICATION
    assert len(chat.completed) == 1


@pytest.mark.asyncio
async def test_classify_stop(make_chat):
    chat = make_chat(reply='{"should_continue": false, "reason": "感谢", "user_intent": "结束"}')

    outcome = await IntentClassifier(chat).classify("谢谢，很好", "log")

    assert isinstance(outcome, StopIntent)
    assert outcome.to_analysis().should_continue is False


@pytest.mark.asyncio
async def test_classify_upstream_failure_is_unknown_not_stop(make_chat):
    chat = make_chat(reply_error=UpstreamError("Upstream HTTP error 500", upstream_status=500))

    outcome = await IntentClassifier(chat).classify("谢谢", "log")

    assert isinstance(outcome, UnknownIntent)


@pytest.mark.asyncio
async def test_classify_unparseable_reply_is_unknown(make_chat):
    chat = make_chat(reply="我觉得用户应该继续。")

    outcome = await IntentClassifier(chat).classify("嗯", "log")

    assert isinstance(outcome, UnknownIntent)
