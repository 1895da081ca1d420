import json
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import httpx

from .errors import UpstreamConfigurationError, UpstreamError
from .logging_config import logger
from .models import ChatMessage
from .settings import build_upstream_headers, settings

SSE_DATA_PREFIX = "data: "
SSE_DONE_SENTINEL = "[DONE]"


def _extract_delta_text(frame: Dict[str, Any]) -> str:
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


async def iter_sse_deltas(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Turn upstream SSE lines into incremental text deltas.

    - `data: [DONE]` terminates the sequence.
    - Any other `data: ` frame is decoded as JSON; its
      choices[0].delta.content is yielded when non-empty.
    - Malformed frames are logged and skipped.
    - Lines without the `data: ` prefix (blank separators, comments,
      keep-alives) are ignored.
    """
    async for raw_line in lines:
        line = raw_line.strip()
        if not line.startswith(SSE_DATA_PREFIX):
            continue
        data = line[len(SSE_DATA_PREFIX):]
        if data == SSE_DONE_SENTINEL:
            return
        try:
            frame = json.loads(data)
        except json.JSONDecodeError as exc:
            logger.warning("解析流式数据失败: %s; frame=%r", exc, data[:200])
            continue
        if not isinstance(frame, dict):
            logger.warning("Skipping non-object stream frame: %r", data[:200])
            continue
        text = _extract_delta_text(frame)
        if text:
            yield text


class UpstreamChatClient:
    """
    Thin wrapper around one OpenAI-compatible chat-completion endpoint,
    offering a blocking call and a streaming call. Nothing is retried.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        stream_max_tokens: Optional[int] = None,
        completion_max_tokens: Optional[int] = None,
    ) -> None:
        self._http = http_client
        self.api_key = api_key if api_key is not None else settings.upstream_api_key
        self.url = url or settings.upstream_chat_url
        self.model = model or settings.upstream_model
        self.temperature = (
            temperature if temperature is not None else settings.upstream_temperature
        )
        self.stream_max_tokens = stream_max_tokens or settings.upstream_stream_max_tokens
        self.completion_max_tokens = (
            completion_max_tokens or settings.upstream_completion_max_tokens
        )

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise UpstreamConfigurationError("DeepSeek API密钥未配置")
        return build_upstream_headers(self.api_key)

    def _payload(
        self, messages: Sequence[ChatMessage], *, stream: bool
    ) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.model_dump() for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.stream_max_tokens if stream else self.completion_max_tokens,
            "stream": stream,
        }

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        """
        Non-streaming call; returns choices[0].message.content.
        """
        headers = self._headers()
        payload = self._payload(messages, stream=False)
        try:
            resp = await self._http.post(self.url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("API调用失败 %s: %s", self.url, exc)
            raise UpstreamError("Upstream transport error", text=str(exc)) from exc

        if resp.status_code >= 400:
            logger.warning(
                "Upstream HTTP error %s for %s; response=%s",
                resp.status_code,
                self.url,
                resp.text,
            )
            raise UpstreamError(
                f"Upstream HTTP error {resp.status_code}",
                upstream_status=resp.status_code,
                text=resp.text,
            )

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Unexpected upstream body from %s: %s", self.url, resp.text[:500])
            raise UpstreamError(
                "Malformed upstream response",
                upstream_status=resp.status_code,
                text=resp.text,
            ) from exc
        if not isinstance(content, str):
            raise UpstreamError("Malformed upstream response", text=resp.text)
        return content

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """
        Streaming call exposed as a lazy, non-restartable iterator of text
        deltas. Normal exhaustion means the upstream finished; closing the
        iterator early tears down the upstream connection.

        Raises UpstreamError on HTTP status >= 400 or transport failure,
        whether before or after the first delta.
        """
        headers = self._headers()
        payload = self._payload(messages, stream=True)
        logger.info("upstream stream: opening POST %s (model=%s)", self.url, self.model)

        delta_count = 0
        try:
            async with self._http.stream(
                "POST", self.url, headers=headers, json=payload
            ) as resp:
                if resp.status_code >= 400:
                    text = (await resp.aread()).decode("utf-8", errors="ignore")
                    logger.warning(
                        "Upstream streaming HTTP error %s for %s; response=%s",
                        resp.status_code,
                        self.url,
                        text,
                    )
                    raise UpstreamError(
                        f"Upstream HTTP error {resp.status_code}",
                        upstream_status=resp.status_code,
                        text=text,
                    )

                async for delta in iter_sse_deltas(resp.aiter_lines()):
                    delta_count += 1
                    if delta_count == 1:
                        logger.info("upstream stream: first delta from %s", self.url)
                    yield delta
        except httpx.HTTPError as exc:
            logger.warning("流式响应错误 %s after %d deltas: %s", self.url, delta_count, exc)
            raise UpstreamError(
                "Upstream streaming transport error", text=str(exc)
            ) from exc

        logger.info("upstream stream: finished %s, deltas=%d", self.url, delta_count)


__all__ = ["UpstreamChatClient", "iter_sse_deltas"]
