"""
StreamPulse - Services Module
"""
from streampulse.services.severity import (
    SeverityTier, SeverityThresholds, DEFAULT_THRESHOLDS, classify, classify_metrics, worst_tier
)
from streampulse.services.history_buffer import HistoryBuffer, CHANNELS
from streampulse.services.system_monitor import BaseMetricsSource, SystemMonitor, build_health
from streampulse.services.polling_controller import PollingController, PollingHandle
from streampulse.services.session_comparator import compare, summarize, METRIC_POLARITY
from streampulse.services.session_history import SessionHistoryStore
from streampulse.services.history_service import SessionHistoryService

__all__ = [
    "SeverityTier",
    "SeverityThresholds",
    "DEFAULT_THRESHOLDS",
    "classify",
    "classify_metrics",
    "worst_tier",
    "HistoryBuffer",
    "CHANNELS",
    "BaseMetricsSource",
    "SystemMonitor",
    "build_health",
    "PollingController",
    "PollingHandle",
    "compare",
    "summarize",
    "METRIC_POLARITY",
    "SessionHistoryStore",
    "SessionHistoryService"
]
