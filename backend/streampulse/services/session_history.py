"""
StreamPulse - Session History Store
Persists streaming sessions and their metric samples.
"""
import time
import uuid
from contextlib import contextmanager
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streampulse.core.database import AsyncSessionLocal
from streampulse.core.errors import TransportError, SessionNotFound
from streampulse.models.session import StreamSession, MetricsSample
from streampulse.schemas.session import (
    SessionSummary, SystemMetricsSnapshot, ObsStatusSnapshot, HistoricalMetrics
)
from streampulse.schemas.system import SystemMetrics
from streampulse.services.history_buffer import now_ms


def network_score(peak_bitrate: int) -> float:
    if peak_bitrate >= 6000:
        return 90.0
    if peak_bitrate >= 4000:
        return 70.0
    return 50.0


def stability_score(dropped_frames: int) -> float:
    if dropped_frames == 0:
        return 100.0
    if dropped_frames < 100:
        return 80.0
    if dropped_frames < 500:
        return 60.0
    return 40.0


def quality_score(avg_cpu: float, avg_gpu: float, peak_bitrate: int, dropped_frames: int) -> float:
    """Mean of CPU, GPU, network and stability scores, clamped to 0-100"""
    cpu = min(100.0, max(0.0, 100.0 - avg_cpu))
    gpu = min(100.0, max(0.0, 100.0 - avg_gpu))
    score = (cpu + gpu + network_score(peak_bitrate) + stability_score(dropped_frames)) / 4.0
    return min(100.0, max(0.0, score))


def summarize_samples(
    session_id: str,
    start_time: int,
    end_time: int,
    samples: Iterable[MetricsSample]
) -> SessionSummary:
    """Aggregate raw samples into a session summary"""
    samples = list(samples)
    cpu_values = [s.cpu_usage for s in samples]
    gpu_values = [s.gpu_usage for s in samples if s.gpu_usage is not None]

    avg_cpu = sum(cpu_values) / len(cpu_values) if cpu_values else 0.0
    avg_gpu = sum(gpu_values) / len(gpu_values) if gpu_values else 0.0

    # Dropped frame counters are cumulative for the whole stream
    render_dropped = max((s.render_dropped_frames or 0 for s in samples), default=0)
    output_dropped = max((s.output_dropped_frames or 0 for s in samples), default=0)
    total_dropped = render_dropped + output_dropped
    peak_bitrate = max((s.stream_bitrate or 0 for s in samples), default=0)

    return SessionSummary(
        session_id=session_id,
        start_time=start_time,
        end_time=end_time,
        avg_cpu=avg_cpu,
        avg_gpu=avg_gpu,
        total_dropped_frames=total_dropped,
        peak_bitrate=peak_bitrate,
        quality_score=quality_score(avg_cpu, avg_gpu, peak_bitrate, total_dropped)
    )


def _summary_from_row(row: StreamSession) -> SessionSummary:
    return SessionSummary(
        session_id=row.id,
        start_time=row.start_time,
        end_time=row.end_time,
        avg_cpu=row.avg_cpu or 0.0,
        avg_gpu=row.avg_gpu or 0.0,
        total_dropped_frames=row.total_dropped_frames or 0,
        peak_bitrate=row.peak_bitrate or 0,
        quality_score=row.quality_score or 0.0
    )


def _historical_from_row(row: MetricsSample) -> HistoricalMetrics:
    return HistoricalMetrics(
        timestamp=row.timestamp,
        session_id=row.session_id,
        system=SystemMetricsSnapshot(
            cpu_usage=row.cpu_usage,
            memory_used=row.memory_used,
            memory_total=row.memory_total,
            gpu_usage=row.gpu_usage,
            gpu_memory_used=row.gpu_memory_used,
            network_upload=row.network_upload,
            network_download=row.network_download
        ),
        obs=ObsStatusSnapshot(
            streaming=row.streaming,
            recording=row.recording,
            fps=row.fps,
            render_dropped_frames=row.render_dropped_frames,
            output_dropped_frames=row.output_dropped_frames,
            stream_bitrate=row.stream_bitrate
        )
    )


class SessionHistoryStore:
    """Session and metrics history backed by SQLAlchemy"""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or AsyncSessionLocal
        self.current_session_id: Optional[str] = None
        self.obs_status = ObsStatusSnapshot.empty()

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"History store {operation} failed: {e}")
            raise TransportError(str(e), operation=operation) from e

    def update_obs_status(self, status: ObsStatusSnapshot) -> None:
        """Latest capture software status, stored alongside each sample"""
        self.obs_status = status

    async def start_session(self) -> str:
        """Begin a new recording session, ending any active one first"""
        if self.current_session_id is not None:
            await self.end_session()

        session_id = f"session_{int(time.time())}_{uuid.uuid4().hex[:8]}"
        with self._guard("start_session"):
            async with self._session_factory() as db:
                db.add(StreamSession(id=session_id, start_time=now_ms()))
                await db.commit()

        self.current_session_id = session_id
        logger.info(f"Session {session_id} started")
        return session_id

    async def end_session(self) -> Optional[SessionSummary]:
        """End the active session and store its summary"""
        session_id = self.current_session_id
        if session_id is None:
            return None

        with self._guard("end_session"):
            async with self._session_factory() as db:
                row = await db.get(StreamSession, session_id)
                if row is None:
                    self.current_session_id = None
                    raise SessionNotFound(session_id)

                samples = await self._load_samples(db, session_id)
                summary = summarize_samples(session_id, row.start_time, now_ms(), samples)

                row.end_time = summary.end_time
                row.avg_cpu = summary.avg_cpu
                row.avg_gpu = summary.avg_gpu
                row.total_dropped_frames = summary.total_dropped_frames
                row.peak_bitrate = summary.peak_bitrate
                row.quality_score = summary.quality_score
                await db.commit()

        self.current_session_id = None
        logger.info(
            f"Session {session_id} ended: quality={summary.quality_score:.1f}, "
            f"samples={len(samples)}"
        )
        return summary

    async def save_metrics(
        self,
        system: SystemMetricsSnapshot,
        obs: Optional[ObsStatusSnapshot] = None,
        timestamp: Optional[int] = None
    ) -> bool:
        """Store one sample in the active session; no-op without one"""
        session_id = self.current_session_id
        if session_id is None:
            return False

        obs = obs or self.obs_status
        with self._guard("save_metrics"):
            async with self._session_factory() as db:
                db.add(MetricsSample(
                    session_id=session_id,
                    timestamp=timestamp if timestamp is not None else now_ms(),
                    cpu_usage=system.cpu_usage,
                    memory_used=system.memory_used,
                    memory_total=system.memory_total,
                    gpu_usage=system.gpu_usage,
                    gpu_memory_used=system.gpu_memory_used,
                    network_upload=system.network_upload,
                    network_download=system.network_download,
                    streaming=obs.streaming,
                    recording=obs.recording,
                    fps=obs.fps,
                    render_dropped_frames=obs.render_dropped_frames,
                    output_dropped_frames=obs.output_dropped_frames,
                    stream_bitrate=obs.stream_bitrate
                ))
                await db.commit()
        return True

    async def record_snapshot(self, metrics: SystemMetrics, timestamp: Optional[int] = None) -> None:
        """Polling listener: persist the snapshot under its history timestamp"""
        await self.save_metrics(SystemMetricsSnapshot.from_metrics(metrics), timestamp=timestamp)

    async def fetch_sessions(self) -> List[SessionSummary]:
        """Completed sessions, newest first"""
        with self._guard("fetch_sessions"):
            async with self._session_factory() as db:
                result = await db.execute(
                    select(StreamSession)
                    .where(StreamSession.end_time.is_not(None))
                    .order_by(StreamSession.start_time.desc())
                )
                rows = result.scalars().all()
        return [_summary_from_row(row) for row in rows]

    async def fetch_metrics_range(
        self,
        session_id: str,
        from_ms: int,
        to_ms: int
    ) -> List[HistoricalMetrics]:
        """Samples of a session within [from_ms, to_ms], oldest first"""
        with self._guard("fetch_metrics_range"):
            async with self._session_factory() as db:
                result = await db.execute(
                    select(MetricsSample)
                    .where(
                        MetricsSample.session_id == session_id,
                        MetricsSample.timestamp >= from_ms,
                        MetricsSample.timestamp <= to_ms
                    )
                    .order_by(MetricsSample.timestamp, MetricsSample.id)
                )
                rows = result.scalars().all()
        return [_historical_from_row(row) for row in rows]

    async def get_session_summary(self, session_id: str) -> SessionSummary:
        """Stored summary, or a provisional one for the active session"""
        with self._guard("get_session_summary"):
            async with self._session_factory() as db:
                row = await db.get(StreamSession, session_id)
                if row is None:
                    raise SessionNotFound(session_id)
                if row.is_completed:
                    return _summary_from_row(row)

                samples = await self._load_samples(db, session_id)
                return summarize_samples(session_id, row.start_time, now_ms(), samples)

    async def _load_samples(self, db: AsyncSession, session_id: str) -> List[MetricsSample]:
        result = await db.execute(
            select(MetricsSample)
            .where(MetricsSample.session_id == session_id)
            .order_by(MetricsSample.timestamp)
        )
        return list(result.scalars().all())
