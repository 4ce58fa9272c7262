"""
StreamPulse - Schemas Module
"""
from streampulse.schemas.system import (
    CPUMetrics, MemoryMetrics, GPUMetrics, NetworkMetrics, SystemMetrics,
    ProcessMetrics, ObsProcessMetrics, TimeSeriesPoint, MonitorState,
    MetricsHistoryResponse, SystemHealth, clamp_percent
)
from streampulse.schemas.session import (
    SessionSummary, SystemMetricsSnapshot, ObsStatusSnapshot, HistoricalMetrics,
    MetricDelta, ComparisonResult, ComparisonSummary, SessionComparisonResponse,
    SessionStartResponse
)

__all__ = [
    # System
    "CPUMetrics", "MemoryMetrics", "GPUMetrics", "NetworkMetrics", "SystemMetrics",
    "ProcessMetrics", "ObsProcessMetrics", "TimeSeriesPoint", "MonitorState",
    "MetricsHistoryResponse", "SystemHealth", "clamp_percent",
    # Session
    "SessionSummary", "SystemMetricsSnapshot", "ObsStatusSnapshot", "HistoricalMetrics",
    "MetricDelta", "ComparisonResult", "ComparisonSummary", "SessionComparisonResponse",
    "SessionStartResponse"
]
