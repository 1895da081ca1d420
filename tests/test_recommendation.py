from aiguide.models import Recommendation
from aiguide.recommendation import parse_recommendation


def test_parses_trailing_json_object():
    text = (
        "分析：这是一个创意写作任务。\n"
        '最终推荐：{"model": "Claude 3.5 Sonnet", "prompt": "请写一首关于秋天的诗。"}'
    )

    rec = parse_recommendation(text)

    assert rec == Recommendation(model="Claude 3.5 Sonnet", prompt="请写一首关于秋天的诗。")


def test_last_matching_object_wins():
    text = (
        '初稿：{"model": "GPT-4o", "prompt": "初版"}\n'
        '修订后：{"model": "DeepSeek-Chat", "prompt": "终版"}'
    )

    rec = parse_recommendation(text)

    assert rec is not None
    assert rec.model == "DeepSeek-Chat"
    assert rec.prompt == "终版"


def test_literal_newlines_inside_strings_are_normalised():
    text = '{"model": "DeepSeek-Chat",\r\n "prompt": "第一行\n第二行"}'

    rec = parse_recommendation(text)

    assert rec is not None
    assert rec.prompt == "第一行 第二行"


def test_key_order_does_not_matter():
    rec = parse_recommendation('{"prompt": "写诗", "model": "Qwen-Max"}')

    assert rec is not None
    assert rec.model == "Qwen-Max"


def test_objects_without_both_keys_are_ignored():
    text = '{"model": "GPT-4o"} 之后 {"prompt": "只有提示词"}'

    assert parse_recommendation(text) is None


def test_empty_fields_yield_no_result():
    assert parse_recommendation('{"model": "", "prompt": "x"}') is None
    assert parse_recommendation('{"model": "GPT-4o", "prompt": "   "}') is None


def test_non_string_fields_yield_no_result():
    assert parse_recommendation('{"model": 4, "prompt": "x"}') is None


def test_malformed_last_candidate_yields_no_result():
    text = (
        '{"model": "GPT-4o", "prompt": "ok"}\n'
        '{"model": "DeepSeek-Chat", "prompt": "unterminated}'
    )

    assert parse_recommendation(text) is None


def test_nested_objects_are_not_matched():
    text = '{"model": "GPT-4o", "prompt": "x", "meta": {"a": 1}}'

    assert parse_recommendation(text) is None


def test_empty_or_missing_text():
    assert parse_recommendation("") is None
    assert parse_recommendation(None) is None
    assert parse_recommendation("没有任何 JSON") is None


def test_parsing_is_idempotent():
    samples = [
        '推荐 {"model": "GPT-4o", "prompt": "写诗"}',
        '{"model": "GPT-4o", "prompt": broken}',
        "plain text",
    ]
    for text in samples:
        assert parse_recommendation(text) == parse_recommendation(text)
