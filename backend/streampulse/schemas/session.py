"""
StreamPulse - Session History Schemas
"""
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, computed_field

from streampulse.schemas.system import SystemMetrics


class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    start_time: int  # epoch milliseconds
    end_time: int
    avg_cpu: float
    avg_gpu: float
    total_dropped_frames: int = Field(ge=0)
    peak_bitrate: int = Field(ge=0)  # kbps
    quality_score: float


class SystemMetricsSnapshot(BaseModel):
    cpu_usage: float
    memory_used: int
    memory_total: int
    gpu_usage: Optional[float] = None
    gpu_memory_used: Optional[int] = None
    network_upload: float
    network_download: float

    @classmethod
    def from_metrics(cls, metrics: SystemMetrics) -> "SystemMetricsSnapshot":
        gpu = metrics.gpu
        return cls(
            cpu_usage=metrics.cpu.usage_percent,
            memory_used=metrics.memory.used_bytes,
            memory_total=metrics.memory.total_bytes,
            gpu_usage=gpu.usage_percent if gpu else None,
            gpu_memory_used=gpu.memory_used_bytes if gpu else None,
            network_upload=metrics.network.upload_bytes_per_sec,
            network_download=metrics.network.download_bytes_per_sec
        )


class ObsStatusSnapshot(BaseModel):
    streaming: bool = False
    recording: bool = False
    fps: Optional[float] = None
    render_dropped_frames: Optional[int] = None
    output_dropped_frames: Optional[int] = None
    stream_bitrate: Optional[int] = None  # kbps

    @classmethod
    def empty(cls) -> "ObsStatusSnapshot":
        return cls()


class HistoricalMetrics(BaseModel):
    timestamp: int  # epoch milliseconds
    session_id: str
    system: SystemMetricsSnapshot
    obs: ObsStatusSnapshot


class MetricDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric: str
    before: float
    after: float
    diff: float
    diff_percent: float
    higher_is_better: bool
    is_improvement: bool
    is_degradation: bool

    @computed_field
    @property
    def outcome(self) -> str:
        if self.is_improvement:
            return "improvement"
        if self.is_degradation:
            return "degradation"
        return "neutral"


class ComparisonResult(BaseModel):
    before_session_id: str
    after_session_id: str
    deltas: List[MetricDelta]

    def delta(self, metric: str) -> MetricDelta:
        for item in self.deltas:
            if item.metric == metric:
                return item
        raise KeyError(metric)


class ComparisonSummary(BaseModel):
    improvements: List[str] = []
    degradations: List[str] = []
    message: Optional[str] = None


class SessionComparisonResponse(BaseModel):
    before: SessionSummary
    after: SessionSummary
    result: ComparisonResult
    summary: ComparisonSummary


class SessionStartResponse(BaseModel):
    session_id: str
