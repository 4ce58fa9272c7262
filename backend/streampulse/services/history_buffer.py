"""
StreamPulse - Metrics History Buffer
Fixed-capacity per-channel time series for trend charts.
"""
import time
from collections import deque
from typing import Deque, Dict, List, Optional

from streampulse.schemas.system import SystemMetrics, TimeSeriesPoint


CHANNELS = (
    "cpu_usage",
    "memory_usage",
    "gpu_usage",
    "network_upload",
    "network_download",
)

# 60 seconds at 1 Hz polling
DEFAULT_CAPACITY = 60


def now_ms() -> int:
    return int(time.time() * 1000)


class HistoryBuffer:
    """
    Bounded chronological series, one per channel.

    Appending beyond capacity drops the oldest point. Mutation is expected
    from a single event loop only, so there is no locking.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, channels=CHANNELS):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._channels: Dict[str, Deque[TimeSeriesPoint]] = {
            name: deque(maxlen=capacity) for name in channels
        }

    @property
    def channels(self) -> List[str]:
        return list(self._channels)

    def _channel(self, channel: str) -> Deque[TimeSeriesPoint]:
        try:
            return self._channels[channel]
        except KeyError:
            raise KeyError(f"Unknown history channel: {channel}") from None

    def append(self, channel: str, value: float, timestamp: Optional[int] = None) -> TimeSeriesPoint:
        point = TimeSeriesPoint(
            timestamp=timestamp if timestamp is not None else now_ms(),
            value=value
        )
        self._channel(channel).append(point)
        return point

    def reset(self, channel: str) -> None:
        self._channel(channel).clear()

    def clear(self) -> None:
        for series in self._channels.values():
            series.clear()

    def points(self, channel: str) -> List[TimeSeriesPoint]:
        return list(self._channel(channel))

    def values(self, channel: str) -> List[float]:
        return [point.value for point in self._channel(channel)]

    def length(self, channel: str) -> int:
        return len(self._channel(channel))

    def snapshot(self) -> Dict[str, List[TimeSeriesPoint]]:
        return {name: list(series) for name, series in self._channels.items()}

    def record(self, metrics: SystemMetrics, timestamp: Optional[int] = None) -> None:
        """Apply one system snapshot to every channel"""
        ts = timestamp if timestamp is not None else now_ms()
        self.append("cpu_usage", metrics.cpu.usage_percent, ts)
        self.append("memory_usage", metrics.memory.usage_percent, ts)
        self.append("network_upload", metrics.network.upload_bytes_per_sec, ts)
        self.append("network_download", metrics.network.download_bytes_per_sec, ts)

        # No GPU this tick: drop the series instead of mixing stale points
        if metrics.gpu is not None:
            self.append("gpu_usage", metrics.gpu.usage_percent, ts)
        else:
            self.reset("gpu_usage")
