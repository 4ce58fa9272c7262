"""
StreamPulse - System Monitoring Service
"""
import asyncio
import platform
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import psutil
from loguru import logger

from streampulse.core.config import settings
from streampulse.core.errors import TransportError
from streampulse.schemas.system import (
    CPUMetrics, MemoryMetrics, GPUMetrics, NetworkMetrics,
    SystemMetrics, ProcessMetrics, ObsProcessMetrics, SystemHealth, clamp_percent
)
from streampulse.services.severity import SeverityTier, classify_metrics, worst_tier

# Network rates need a minimum window to be meaningful
MIN_RATE_WINDOW_SEC = 0.1


class BaseMetricsSource(ABC):
    """Abstract source of metric snapshots consumed by the polling controller"""

    @abstractmethod
    async def fetch_system_metrics(self) -> SystemMetrics:
        """Fetch current system metrics, raising TransportError on failure"""
        pass

    @abstractmethod
    async def fetch_process_metrics(self) -> Optional[ObsProcessMetrics]:
        """Fetch monitored process metrics, None when the process is not running"""
        pass


class SystemMonitor(BaseMetricsSource):
    """Host resource monitoring backed by psutil, GPUtil and NVML"""

    def __init__(self, process_names: Optional[List[str]] = None):
        self.process_names = process_names if process_names is not None else settings.monitored_process_list
        self._gpu_available = False
        self._nvml = None
        self._nvml_handle = None
        # Executor threads from overlapping fetches share the counter state
        self._net_lock = threading.Lock()
        self._last_net: Optional[Tuple[float, int, int]] = None
        self._last_rate: Tuple[float, float] = (0.0, 0.0)
        self._initialize_gpu()

    def _initialize_gpu(self):
        """Check if GPU monitoring is available"""
        try:
            import GPUtil
            gpus = GPUtil.getGPUs()
            self._gpu_available = len(gpus) > 0
            if self._gpu_available:
                logger.info(f"GPU monitoring enabled: {len(gpus)} GPU(s) found")
        except Exception as e:
            logger.warning(f"GPU monitoring not available: {e}")
            self._gpu_available = False

        if self._gpu_available:
            self._initialize_nvml()

    def _initialize_nvml(self):
        """Encoder utilization is only exposed through NVML"""
        try:
            import pynvml
            pynvml.nvmlInit()
            self._nvml_handle = pynvml.nvmlDeviceGetHandleByIndex(0)
            self._nvml = pynvml
            logger.info("Encoder monitoring enabled via NVML")
        except Exception as e:
            logger.warning(f"Encoder monitoring not available: {e}")
            self._nvml = None
            self._nvml_handle = None

    def _cpu_metrics(self) -> CPUMetrics:
        per_core = psutil.cpu_percent(interval=0.1, percpu=True)
        usage = sum(per_core) / len(per_core) if per_core else 0.0
        return CPUMetrics(
            usage_percent=usage,
            core_count=psutil.cpu_count(logical=True) or len(per_core) or 1,
            per_core_usage=per_core,
            name=platform.processor() or platform.machine()
        )

    def _memory_metrics(self) -> MemoryMetrics:
        mem = psutil.virtual_memory()
        return MemoryMetrics(
            used_bytes=mem.used,
            total_bytes=mem.total,
            available_bytes=mem.available,
            usage_percent=mem.percent
        )

    def _encoder_usage(self) -> Optional[float]:
        if self._nvml is None:
            return None

        try:
            utilization, _sampling_period_us = self._nvml.nvmlDeviceGetEncoderUtilization(self._nvml_handle)
        except Exception as e:
            logger.debug(f"Encoder utilization unavailable: {e}")
            return None
        return float(utilization)

    def _gpu_metrics(self) -> Optional[GPUMetrics]:
        if not self._gpu_available:
            return None

        try:
            import GPUtil
            gpus = GPUtil.getGPUs()
        except Exception as e:
            logger.error(f"GPU stats error: {e}")
            return None

        if not gpus:
            return None

        # Dashboard shows the primary adapter
        gpu = gpus[0]
        return GPUMetrics(
            name=gpu.name,
            usage_percent=gpu.load * 100,
            memory_used_bytes=int(gpu.memoryUsed * 1024 * 1024),
            memory_total_bytes=int(gpu.memoryTotal * 1024 * 1024),
            encoder_usage=self._encoder_usage()
        )

    def _network_metrics(self) -> NetworkMetrics:
        with self._net_lock:
            net = psutil.net_io_counters()
            now = time.monotonic()
            previous = self._last_net

            if previous is None:
                self._last_net = (now, net.bytes_sent, net.bytes_recv)
                return NetworkMetrics(upload_bytes_per_sec=0.0, download_bytes_per_sec=0.0)

            last_time, last_sent, last_recv = previous
            elapsed = now - last_time
            if elapsed < MIN_RATE_WINDOW_SEC:
                # Too soon for a fresh rate; repeat the last one
                upload, download = self._last_rate
                return NetworkMetrics(upload_bytes_per_sec=upload, download_bytes_per_sec=download)

            self._last_net = (now, net.bytes_sent, net.bytes_recv)
            # Counters can wrap or reset on interface changes
            sent = max(0, net.bytes_sent - last_sent)
            recv = max(0, net.bytes_recv - last_recv)
            self._last_rate = (sent / elapsed, recv / elapsed)
            return NetworkMetrics(
                upload_bytes_per_sec=self._last_rate[0],
                download_bytes_per_sec=self._last_rate[1]
            )

    def _collect_system(self) -> SystemMetrics:
        return SystemMetrics(
            cpu=self._cpu_metrics(),
            memory=self._memory_metrics(),
            gpu=self._gpu_metrics(),
            network=self._network_metrics()
        )

    def _is_monitored(self, name: str) -> bool:
        lower_name = name.lower()
        return any(pattern in lower_name for pattern in self.process_names)

    def _collect_processes(self) -> Optional[ObsProcessMetrics]:
        main_process: Optional[ProcessMetrics] = None
        total_cpu = 0.0
        total_memory = 0

        for proc in psutil.process_iter(["pid", "name", "cpu_percent", "memory_info"]):
            info = proc.info
            name = info.get("name") or ""
            if not self._is_monitored(name):
                continue

            cpu = info.get("cpu_percent") or 0.0
            memory = info["memory_info"].rss if info.get("memory_info") else 0
            total_cpu += cpu
            total_memory += memory

            # Main process is the one holding the most memory
            if main_process is None or main_process.memory_bytes < memory:
                main_process = ProcessMetrics(
                    name=name,
                    pid=info["pid"],
                    cpu_usage=cpu,
                    memory_bytes=memory,
                    is_running=True
                )

        if main_process is None:
            return None

        return ObsProcessMetrics(
            main_process=main_process,
            total_cpu_usage=total_cpu,
            total_memory_bytes=total_memory
        )

    async def fetch_system_metrics(self) -> SystemMetrics:
        """Get complete system metrics"""
        loop = asyncio.get_event_loop()
        try:
            # cpu_percent blocks for its sampling interval
            return await loop.run_in_executor(None, self._collect_system)
        except (psutil.Error, OSError) as e:
            raise TransportError(str(e), operation="fetch_system_metrics") from e

    async def fetch_process_metrics(self) -> Optional[ObsProcessMetrics]:
        """Get aggregate metrics of the monitored capture process"""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, self._collect_processes)
        except (psutil.Error, OSError) as e:
            raise TransportError(str(e), operation="fetch_process_metrics") from e


def build_health(
    metrics: Optional[SystemMetrics],
    thresholds=None,
    last_update: Optional[int] = None
) -> SystemHealth:
    """Summarize a snapshot into per-domain statuses and human-readable issues"""
    if metrics is None:
        return SystemHealth(
            status="unknown",
            cpu_status="unknown",
            memory_status="unknown",
            gpu_status="unknown",
            encoder_status="unknown",
            issues=["No metrics collected yet"],
            last_update=last_update
        )

    tiers = classify_metrics(metrics, thresholds)
    issues = []

    labels = {"cpu": "CPU usage", "memory": "Memory usage", "gpu": "GPU usage", "encoder": "Encoder usage"}
    values = {"cpu": metrics.cpu.usage_percent, "memory": metrics.memory.usage_percent}
    if metrics.gpu is not None:
        values["gpu"] = metrics.gpu.usage_percent
        if metrics.gpu.encoder_usage is not None:
            values["encoder"] = metrics.gpu.encoder_usage

    for domain, tier in tiers.items():
        shown = clamp_percent(values[domain])
        if tier == SeverityTier.critical:
            issues.append(f"{labels[domain]} critically high ({shown:.0f}%)")
        elif tier == SeverityTier.warning:
            issues.append(f"{labels[domain]} high ({shown:.0f}%)")

    return SystemHealth(
        status=worst_tier(tiers.values()).value,
        cpu_status=tiers["cpu"].value,
        memory_status=tiers["memory"].value,
        gpu_status=tiers["gpu"].value if "gpu" in tiers else "unavailable",
        encoder_status=tiers["encoder"].value if "encoder" in tiers else "unavailable",
        issues=issues,
        last_update=last_update
    )
