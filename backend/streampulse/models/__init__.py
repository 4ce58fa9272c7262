"""
StreamPulse - Models Module
"""
from streampulse.core.database import Base
from streampulse.models.session import StreamSession, MetricsSample

__all__ = [
    "Base",
    "StreamSession",
    "MetricsSample"
]
