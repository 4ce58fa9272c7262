"""
Test configuration and fixtures
Provides a fake metrics source, an in-memory database and an API client.
"""

import os

# Must be set before any streampulse module reads settings
os.environ.setdefault("STREAMPULSE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STREAMPULSE_LOG_FILE", "")
os.environ.setdefault("STREAMPULSE_AUTO_START_POLLING", "false")

import asyncio
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from streampulse.core.database import init_db
from streampulse.core.errors import TransportError
from streampulse.main import create_app
from streampulse.schemas.system import (
    CPUMetrics, MemoryMetrics, GPUMetrics, NetworkMetrics,
    SystemMetrics, ProcessMetrics, ObsProcessMetrics
)
from streampulse.schemas.session import SessionSummary
from streampulse.services.session_history import SessionHistoryStore
from streampulse.services.system_monitor import BaseMetricsSource


def make_metrics(
    cpu: float = 30.0,
    memory: float = 40.0,
    gpu: Optional[float] = 50.0,
    encoder: Optional[float] = 10.0,
    upload: float = 1000.0,
    download: float = 2000.0
) -> SystemMetrics:
    """Build a SystemMetrics snapshot; gpu=None means no GPU detected"""
    return SystemMetrics(
        cpu=CPUMetrics(usage_percent=cpu, core_count=4, per_core_usage=[cpu] * 4, name="Test CPU"),
        memory=MemoryMetrics(
            used_bytes=4 * 1024 ** 3,
            total_bytes=16 * 1024 ** 3,
            available_bytes=12 * 1024 ** 3,
            usage_percent=memory
        ),
        gpu=GPUMetrics(
            name="Test GPU",
            usage_percent=gpu,
            memory_used_bytes=1024 ** 3,
            memory_total_bytes=8 * 1024 ** 3,
            encoder_usage=encoder
        ) if gpu is not None else None,
        network=NetworkMetrics(upload_bytes_per_sec=upload, download_bytes_per_sec=download)
    )


def make_process_metrics(cpu: float = 12.0, memory: int = 512 * 1024 ** 2) -> ObsProcessMetrics:
    return ObsProcessMetrics(
        main_process=ProcessMetrics(name="obs64.exe", pid=4242, cpu_usage=cpu, memory_bytes=memory),
        total_cpu_usage=cpu,
        total_memory_bytes=memory
    )


def make_summary(session_id: str = "session-a", **overrides) -> SessionSummary:
    values = {
        "session_id": session_id,
        "start_time": 1_700_000_000_000,
        "end_time": 1_700_003_600_000,
        "avg_cpu": 50.0,
        "avg_gpu": 60.0,
        "total_dropped_frames": 10,
        "peak_bitrate": 6000,
        "quality_score": 80.0,
    }
    values.update(overrides)
    return SessionSummary(**values)


class FakeSource(BaseMetricsSource):
    """
    Scriptable metrics source.

    Queued system results are returned in order (exceptions are raised);
    once the queue is empty `default` is returned. An optional gate blocks
    the next call until it is set.
    """

    def __init__(self, default: Optional[SystemMetrics] = None):
        self.default = default or make_metrics()
        self.system_results: List[object] = []
        self.process_result: object = None
        self.system_calls = 0
        self.process_calls = 0
        self.gates: List[Optional[asyncio.Event]] = []

    def queue(self, *results) -> None:
        self.system_results.extend(results)

    async def fetch_system_metrics(self) -> SystemMetrics:
        self.system_calls += 1
        gate = self.gates.pop(0) if self.gates else None
        result = self.system_results.pop(0) if self.system_results else self.default
        if gate is not None:
            await gate.wait()
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch_process_metrics(self) -> Optional[ObsProcessMetrics]:
        self.process_calls += 1
        if isinstance(self.process_result, BaseException):
            raise self.process_result
        return self.process_result


async def settle(seconds: float = 0.02) -> None:
    """Let scheduled fetch tasks run"""
    await asyncio.sleep(seconds)


# ==================== Fixtures ====================

@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def history_store(db_engine) -> SessionHistoryStore:
    factory = async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)
    return SessionHistoryStore(factory)


@pytest_asyncio.fixture
async def api_app(fake_source, db_engine):
    """Application with lifespan running, polling left stopped"""
    app = create_app(source=fake_source, engine=db_engine, auto_start_polling=False)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(api_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("backend channel closed", operation="fetch_system_metrics")
