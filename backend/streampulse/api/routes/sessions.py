"""
StreamPulse - Session History Routes
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from streampulse.api.deps import get_history_store, get_history_service
from streampulse.core.config import settings
from streampulse.schemas.session import (
    SessionSummary, HistoricalMetrics, ObsStatusSnapshot,
    SessionComparisonResponse, SessionStartResponse
)
from streampulse.services.history_service import SessionHistoryService
from streampulse.services.session_comparator import compare, summarize
from streampulse.services.session_history import SessionHistoryStore

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("", response_model=List[SessionSummary])
async def list_sessions(
    service: SessionHistoryService = Depends(get_history_service)
):
    """List completed sessions, newest first"""
    return await service.load_sessions()


@router.post("/start", response_model=SessionStartResponse)
async def start_session(
    store: SessionHistoryStore = Depends(get_history_store)
):
    """Start recording a session from the live metrics"""
    session_id = await store.start_session()
    return SessionStartResponse(session_id=session_id)


@router.post("/end", response_model=Optional[SessionSummary])
async def end_session(
    store: SessionHistoryStore = Depends(get_history_store)
):
    """End the active session, null when none was active"""
    return await store.end_session()


@router.put("/obs-status")
async def update_obs_status(
    status: ObsStatusSnapshot,
    store: SessionHistoryStore = Depends(get_history_store)
):
    """Push the latest capture software status for recorded samples"""
    store.update_obs_status(status)
    return {"message": "Status updated"}


@router.get("/compare", response_model=SessionComparisonResponse)
async def compare_sessions(
    before: str,
    after: str,
    locale: Optional[str] = None,
    store: SessionHistoryStore = Depends(get_history_store)
):
    """Compare two sessions, `after` being the later one"""
    before_summary = await store.get_session_summary(before)
    after_summary = await store.get_session_summary(after)
    return SessionComparisonResponse(
        before=before_summary,
        after=after_summary,
        result=compare(before_summary, after_summary),
        summary=summarize(before_summary, after_summary, locale or settings.comparison_locale)
    )


@router.get("/selection", response_model=List[str])
async def get_selection(
    service: SessionHistoryService = Depends(get_history_service)
):
    return service.selected_session_ids


@router.post("/selection/{session_id}", response_model=List[str])
async def select_session(
    session_id: str,
    service: SessionHistoryService = Depends(get_history_service)
):
    """Select a session for comparison (at most two)"""
    return service.select_session(session_id)


@router.delete("/selection/{session_id}", response_model=List[str])
async def deselect_session(
    session_id: str,
    service: SessionHistoryService = Depends(get_history_service)
):
    return service.deselect_session(session_id)


@router.delete("/selection", response_model=List[str])
async def clear_selection(
    service: SessionHistoryService = Depends(get_history_service)
):
    service.clear_selection()
    return service.selected_session_ids


@router.get("/selection/comparison", response_model=Optional[SessionComparisonResponse])
async def compare_selection(
    service: SessionHistoryService = Depends(get_history_service)
):
    """Compare the selected sessions, null until two are selected"""
    compared = service.compare_selected()
    if compared is None:
        return None

    result, summary = compared
    return SessionComparisonResponse(
        before=service.find_session(result.before_session_id),
        after=service.find_session(result.after_session_id),
        result=result,
        summary=summary
    )


@router.get("/error")
async def get_error(
    service: SessionHistoryService = Depends(get_history_service)
):
    """Last history load error, if any"""
    return {"error": service.error}


@router.delete("/error")
async def clear_error(
    service: SessionHistoryService = Depends(get_history_service)
):
    service.clear_error()
    return {"error": None}


@router.get("/{session_id}", response_model=SessionSummary)
async def get_session(
    session_id: str,
    store: SessionHistoryStore = Depends(get_history_store)
):
    """Summary of one session (provisional while it is active)"""
    return await store.get_session_summary(session_id)


@router.get("/{session_id}/metrics", response_model=List[HistoricalMetrics])
async def get_session_metrics(
    session_id: str,
    from_ms: int = Query(0, ge=0),
    to_ms: Optional[int] = Query(None, ge=0),
    service: SessionHistoryService = Depends(get_history_service)
):
    """Recorded samples of a session within a time range"""
    upper = to_ms if to_ms is not None else 2 ** 62
    return await service.load_metrics(session_id, from_ms, upper)
