from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from aiguide.deps import get_session_service
from aiguide.schemas import (
    ExportResponse,
    FeedbackRequest,
    FeedbackResponse,
    RecommendRequest,
    SessionSnapshot,
    StartSessionRequest,
    StartSessionResponse,
)
from aiguide.services import SessionService
from aiguide.sse import iter_sse_events

router = APIRouter(prefix="/api", tags=["sessions"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/session/start", response_model=StartSessionResponse)
async def start_session_endpoint(
    body: StartSessionRequest,
    service: SessionService = Depends(get_session_service),
) -> StartSessionResponse:
    session = await service.start_session(body.user_task)
    return StartSessionResponse(
        session_id=session.session_id, iteration_count=session.iteration_count
    )


@router.post("/recommend/stream")
async def recommend_stream_endpoint(
    body: RecommendRequest,
    service: SessionService = Depends(get_session_service),
) -> StreamingResponse:
    """
    Stream one recommendation round as server-sent events.

    Unknown or missing session ids are rejected with a JSON error before
    the event stream starts.
    """
    session_id = await service.ensure_exists(body.session_id)
    return StreamingResponse(
        iter_sse_events(service.stream_recommendation(session_id)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/analyze/feedback", response_model=FeedbackResponse, response_model_exclude_none=True)
async def analyze_feedback_endpoint(
    body: FeedbackRequest,
    service: SessionService = Depends(get_session_service),
) -> FeedbackResponse:
    return await service.analyze_feedback(body.session_id, body.user_feedback)


@router.get("/session/{session_id}", response_model=SessionSnapshot)
async def get_session_endpoint(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> SessionSnapshot:
    return await service.get_snapshot(session_id)


@router.get("/export/{session_id}", response_model=ExportResponse)
async def export_session_endpoint(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> ExportResponse:
    return await service.export(session_id)


__all__ = ["router"]
