import json
from typing import Any, AsyncIterator, Dict


def encode_sse_event(payload: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


async def iter_sse_events(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[bytes]:
    """
    Encode event dicts as SSE frames, closing the source when the response
    is torn down (e.g. the browser disconnected).
    """
    try:
        async for event in events:
            yield encode_sse_event(event)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


__all__ = ["encode_sse_event", "iter_sse_events"]
