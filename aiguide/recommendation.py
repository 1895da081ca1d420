"""
Best-effort extraction of the final {"model": ..., "prompt": ...} object
from free-form model output.

Upstream formatting is not guaranteed, so absence of a recommendation is a
normal outcome and never an error.
"""

import json
import re
from typing import Any, Optional

from .errors import ParseError
from .logging_config import logger
from .models import Recommendation

# A flat object: braces with no nested braces in between.
_FLAT_OBJECT_RE = re.compile(r"\{[^{}]*\}", re.DOTALL)


def _candidates(text: str) -> list[str]:
    return [
        match.group(0)
        for match in _FLAT_OBJECT_RE.finditer(text)
        if '"model"' in match.group(0) and '"prompt"' in match.group(0)
    ]


def _decode(candidate: str) -> dict[str, Any]:
    normalised = candidate.replace("\n", " ").replace("\r", "").strip()
    try:
        data = json.loads(normalised)
    except json.JSONDecodeError as exc:
        raise ParseError(str(exc)) from exc
    if not isinstance(data, dict):
        raise ParseError("recommendation candidate is not an object")
    return data


def parse_recommendation(text: Optional[str]) -> Optional[Recommendation]:
    """
    Return the recommendation embedded in ``text``, or None.

    Only the last flat object mentioning both "model" and "prompt" is
    considered; both fields must be non-empty strings.
    """
    if not text:
        return None
    candidates = _candidates(text)
    if not candidates:
        return None

    try:
        data = _decode(candidates[-1])
    except ParseError as exc:
        logger.debug("解析推荐结果失败: %s", exc)
        return None

    model = data.get("model")
    prompt = data.get("prompt")
    if not isinstance(model, str) or not isinstance(prompt, str):
        return None
    model, prompt = model.strip(), prompt.strip()
    if not model or not prompt:
        return None
    return Recommendation(model=model, prompt=prompt)


__all__ = ["parse_recommendation"]
