"""
Session history service tests
"""
import pytest

from streampulse.core.errors import TransportError, SessionNotFound
from streampulse.services.history_service import SessionHistoryService
from tests.conftest import make_summary


class FakeStore:
    """Store double returning canned sessions or raising"""

    def __init__(self, sessions=None, failure=None):
        self.sessions = sessions or []
        self.failure = failure
        self.range_calls = []

    async def fetch_sessions(self):
        if self.failure:
            raise self.failure
        return list(self.sessions)

    async def fetch_metrics_range(self, session_id, from_ms, to_ms):
        self.range_calls.append((session_id, from_ms, to_ms))
        if self.failure:
            raise self.failure
        return []


@pytest.fixture
def sessions():
    return [
        make_summary("s3", quality_score=85.0),
        make_summary("s2", quality_score=80.0),
        make_summary("s1", quality_score=70.0),
    ]


class TestLoading:
    """Test one-shot loading and error state"""

    @pytest.mark.asyncio
    async def test_load_sessions(self, sessions):
        service = SessionHistoryService(FakeStore(sessions))
        loaded = await service.load_sessions()
        assert [s.session_id for s in loaded] == ["s3", "s2", "s1"]
        assert service.sessions == loaded
        assert service.is_loading is False
        assert service.error is None

    @pytest.mark.asyncio
    async def test_load_failure_sets_error(self):
        service = SessionHistoryService(FakeStore(failure=TransportError("disk gone", "fetch_sessions")))
        with pytest.raises(TransportError):
            await service.load_sessions()

        assert service.error == "Failed to load sessions: fetch_sessions: disk gone"
        assert service.is_loading is False

        service.clear_error()
        assert service.error is None

    @pytest.mark.asyncio
    async def test_error_cleared_on_next_load(self, sessions):
        store = FakeStore(sessions, failure=TransportError("disk gone"))
        service = SessionHistoryService(store)
        with pytest.raises(TransportError):
            await service.load_sessions()

        store.failure = None
        await service.load_sessions()
        assert service.error is None

    @pytest.mark.asyncio
    async def test_load_metrics(self):
        store = FakeStore()
        service = SessionHistoryService(store)
        assert await service.load_metrics("s1", 100, 200) == []
        assert store.range_calls == [("s1", 100, 200)]

    @pytest.mark.asyncio
    async def test_load_metrics_failure(self):
        service = SessionHistoryService(FakeStore(failure=TransportError("timeout")))
        with pytest.raises(TransportError):
            await service.load_metrics("s1", 0, 10)
        assert service.error == "Failed to load metrics: timeout"


class TestSelection:
    """Test selection of sessions for comparison"""

    def test_third_selection_replaces_oldest(self):
        service = SessionHistoryService(FakeStore())
        service.select_session("a")
        service.select_session("b")
        assert service.select_session("c") == ["b", "c"]

    def test_reselecting_is_noop(self):
        service = SessionHistoryService(FakeStore())
        service.select_session("a")
        assert service.select_session("a") == ["a"]

    def test_deselect_and_clear(self):
        service = SessionHistoryService(FakeStore())
        service.select_session("a")
        service.select_session("b")
        assert service.deselect_session("a") == ["b"]

        service.clear_selection()
        assert service.selected_session_ids == []
        assert service.metrics_data == []


class TestCompareSelected:
    """Test comparing the selected pair"""

    @pytest.mark.asyncio
    async def test_needs_two_selections(self, sessions):
        service = SessionHistoryService(FakeStore(sessions))
        await service.load_sessions()
        service.select_session("s1")
        assert service.compare_selected() is None

    @pytest.mark.asyncio
    async def test_compares_in_selection_order(self, sessions):
        service = SessionHistoryService(FakeStore(sessions))
        await service.load_sessions()
        service.select_session("s2")
        service.select_session("s3")

        result, summary = service.compare_selected()
        assert result.before_session_id == "s2"
        assert result.after_session_id == "s3"
        assert summary.improvements == ["Quality score increased by 5 points"]

    @pytest.mark.asyncio
    async def test_uses_service_locale(self, sessions):
        service = SessionHistoryService(FakeStore(sessions), locale="ja")
        await service.load_sessions()
        service.select_session("s2")
        service.select_session("s3")

        _, summary = service.compare_selected()
        assert summary.improvements == ["品質スコアが 5 ポイント向上"]

    def test_unknown_selected_session(self):
        service = SessionHistoryService(FakeStore())
        service.select_session("x")
        service.select_session("y")
        with pytest.raises(SessionNotFound):
            service.compare_selected()
