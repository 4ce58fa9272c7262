"""
StreamPulse - Session History Service
One-shot session list / metrics range loading with a clearable error.
"""
from typing import List, Optional, Tuple

from loguru import logger

from streampulse.core.errors import TransportError, SessionNotFound
from streampulse.schemas.session import (
    SessionSummary, HistoricalMetrics, ComparisonResult, ComparisonSummary
)
from streampulse.services.session_comparator import compare, summarize, DEFAULT_LOCALE
from streampulse.services.session_history import SessionHistoryStore

MAX_SELECTED_SESSIONS = 2


class SessionHistoryService:
    """
    View state for the session history screen.

    Failed loads record `error` and re-raise; nothing is retried until the
    caller asks again.
    """

    def __init__(self, store: SessionHistoryStore, locale: str = DEFAULT_LOCALE):
        self.store = store
        self.locale = locale
        self.sessions: List[SessionSummary] = []
        self.selected_session_ids: List[str] = []
        self.metrics_data: List[HistoricalMetrics] = []
        self.is_loading = False
        self.error: Optional[str] = None

    async def load_sessions(self) -> List[SessionSummary]:
        self.is_loading = True
        self.error = None
        try:
            self.sessions = await self.store.fetch_sessions()
            return self.sessions
        except TransportError as e:
            self.error = f"Failed to load sessions: {e}"
            logger.error(self.error)
            raise
        finally:
            self.is_loading = False

    async def load_metrics(self, session_id: str, from_ms: int, to_ms: int) -> List[HistoricalMetrics]:
        self.is_loading = True
        self.error = None
        try:
            self.metrics_data = await self.store.fetch_metrics_range(session_id, from_ms, to_ms)
            return self.metrics_data
        except TransportError as e:
            self.error = f"Failed to load metrics: {e}"
            logger.error(self.error)
            raise
        finally:
            self.is_loading = False

    def select_session(self, session_id: str) -> List[str]:
        """Select a session; a third selection pushes out the oldest one"""
        if session_id in self.selected_session_ids:
            return self.selected_session_ids

        if len(self.selected_session_ids) >= MAX_SELECTED_SESSIONS:
            self.selected_session_ids = self.selected_session_ids[1:] + [session_id]
        else:
            self.selected_session_ids = self.selected_session_ids + [session_id]
        return self.selected_session_ids

    def deselect_session(self, session_id: str) -> List[str]:
        self.selected_session_ids = [sid for sid in self.selected_session_ids if sid != session_id]
        return self.selected_session_ids

    def clear_selection(self) -> None:
        self.selected_session_ids = []
        self.metrics_data = []

    def clear_error(self) -> None:
        self.error = None

    def find_session(self, session_id: str) -> SessionSummary:
        for session in self.sessions:
            if session.session_id == session_id:
                return session
        raise SessionNotFound(session_id)

    def compare_selected(self) -> Optional[Tuple[ComparisonResult, ComparisonSummary]]:
        """Compare the two selected sessions, in selection order"""
        if len(self.selected_session_ids) < MAX_SELECTED_SESSIONS:
            return None

        before = self.find_session(self.selected_session_ids[0])
        after = self.find_session(self.selected_session_ids[1])
        return compare(before, after), summarize(before, after, self.locale)
