"""
System monitor and health summary tests
"""
import sys
import time
from types import SimpleNamespace

import psutil
import pytest

from streampulse.core.errors import TransportError
from streampulse.services.system_monitor import SystemMonitor, build_health
from tests.conftest import make_metrics


def fake_process(pid, name, cpu, rss):
    return SimpleNamespace(info={
        "pid": pid,
        "name": name,
        "cpu_percent": cpu,
        "memory_info": SimpleNamespace(rss=rss),
    })


@pytest.fixture
def monitor():
    monitor = SystemMonitor(process_names=["obs64.exe", "obs"])
    monitor._gpu_available = False
    monitor._nvml = None
    return monitor


@pytest.fixture
def fake_host(monkeypatch):
    """Deterministic psutil readings"""
    monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None, percpu=False: [10.0, 30.0])
    monkeypatch.setattr(psutil, "cpu_count", lambda logical=True: 2)
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(
        used=6 * 1024 ** 3, total=16 * 1024 ** 3, available=10 * 1024 ** 3, percent=37.5
    ))
    monkeypatch.setattr(psutil, "net_io_counters", lambda: SimpleNamespace(bytes_sent=3000, bytes_recv=9000))


class TestSystemMetrics:
    """Test snapshot collection"""

    @pytest.mark.asyncio
    async def test_snapshot(self, monitor, fake_host):
        metrics = await monitor.fetch_system_metrics()
        assert metrics.cpu.usage_percent == 20.0
        assert metrics.cpu.core_count == 2
        assert metrics.cpu.per_core_usage == [10.0, 30.0]
        assert metrics.memory.usage_percent == 37.5
        assert metrics.gpu is None

    @pytest.mark.asyncio
    async def test_first_network_reading_is_zero(self, monitor, fake_host):
        metrics = await monitor.fetch_system_metrics()
        assert metrics.network.upload_bytes_per_sec == 0
        assert metrics.network.download_bytes_per_sec == 0

    def test_network_rate_from_counter_delta(self, monitor, fake_host):
        monitor._last_net = (time.monotonic() - 2.0, 1000, 5000)
        network = monitor._network_metrics()
        assert network.upload_bytes_per_sec == pytest.approx(1000, rel=0.05)
        assert network.download_bytes_per_sec == pytest.approx(2000, rel=0.05)

    def test_counter_reset_never_negative(self, monitor, fake_host):
        monitor._last_net = (time.monotonic() - 1.0, 50000, 50000)
        network = monitor._network_metrics()
        assert network.upload_bytes_per_sec == 0
        assert network.download_bytes_per_sec == 0

    def test_reading_inside_window_repeats_last_rate(self, monitor, fake_host):
        monitor._last_net = (time.monotonic() - 0.2, 0, 0)
        first = monitor._network_metrics()
        assert first.upload_bytes_per_sec > 0

        quick = monitor._network_metrics()
        assert quick.upload_bytes_per_sec == first.upload_bytes_per_sec
        assert quick.download_bytes_per_sec == first.download_bytes_per_sec

    @pytest.mark.asyncio
    async def test_psutil_error_becomes_transport_error(self, monitor, fake_host, monkeypatch):
        def denied():
            raise psutil.AccessDenied()

        monkeypatch.setattr(psutil, "virtual_memory", denied)
        with pytest.raises(TransportError) as exc_info:
            await monitor.fetch_system_metrics()
        assert exc_info.value.operation == "fetch_system_metrics"


class TestGPUMetrics:
    """Test GPU and encoder readings"""

    @pytest.fixture
    def gpu_monitor(self, monitor, monkeypatch):
        adapter = SimpleNamespace(name="Test GPU", load=0.5, memoryUsed=1024, memoryTotal=8192)
        monkeypatch.setitem(sys.modules, "GPUtil", SimpleNamespace(getGPUs=lambda: [adapter]))
        monitor._gpu_available = True
        return monitor

    def test_encoder_usage_from_nvml(self, gpu_monitor):
        gpu_monitor._nvml = SimpleNamespace(nvmlDeviceGetEncoderUtilization=lambda handle: [42, 167000])
        gpu_monitor._nvml_handle = "gpu0"

        gpu = gpu_monitor._gpu_metrics()
        assert gpu.usage_percent == 50.0
        assert gpu.memory_total_bytes == 8192 * 1024 * 1024
        assert gpu.encoder_usage == 42.0

    def test_encoder_unknown_without_nvml(self, gpu_monitor):
        gpu = gpu_monitor._gpu_metrics()
        assert gpu.usage_percent == 50.0
        assert gpu.encoder_usage is None

    def test_encoder_unknown_when_nvml_call_fails(self, gpu_monitor):
        def unsupported(handle):
            raise RuntimeError("Not Supported")

        gpu_monitor._nvml = SimpleNamespace(nvmlDeviceGetEncoderUtilization=unsupported)
        assert gpu_monitor._gpu_metrics().encoder_usage is None

    def test_encoder_reading_drives_severity(self, gpu_monitor):
        gpu_monitor._nvml = SimpleNamespace(nvmlDeviceGetEncoderUtilization=lambda handle: [93, 167000])
        metrics = make_metrics()
        metrics.gpu = gpu_monitor._gpu_metrics()

        health = build_health(metrics)
        assert health.encoder_status == "critical"
        assert "Encoder usage critically high (93%)" in health.issues


class TestProcessMetrics:
    """Test monitored process aggregation"""

    @pytest.mark.asyncio
    async def test_aggregates_matching_processes(self, monitor, monkeypatch):
        processes = [
            fake_process(1, "obs64.exe", 12.0, 800),
            fake_process(2, "obs-browser-page", 3.0, 200),
            fake_process(3, "chrome", 50.0, 5000),
        ]
        monkeypatch.setattr(psutil, "process_iter", lambda attrs=None: iter(processes))

        result = await monitor.fetch_process_metrics()
        assert result.main_process.pid == 1
        assert result.total_cpu_usage == 15.0
        assert result.total_memory_bytes == 1000

    @pytest.mark.asyncio
    async def test_no_matching_process(self, monitor, monkeypatch):
        monkeypatch.setattr(psutil, "process_iter", lambda attrs=None: iter([fake_process(3, "chrome", 1.0, 10)]))
        assert await monitor.fetch_process_metrics() is None


class TestBuildHealth:
    """Test health summaries"""

    def test_no_metrics(self):
        health = build_health(None)
        assert health.status == "unknown"
        assert health.issues == ["No metrics collected yet"]

    def test_all_normal(self):
        health = build_health(make_metrics(cpu=10, memory=10, gpu=10, encoder=10), last_update=123)
        assert health.status == "normal"
        assert health.issues == []
        assert health.last_update == 123

    def test_issues_reported(self):
        health = build_health(make_metrics(cpu=95, memory=82, gpu=10))
        assert health.status == "critical"
        assert health.cpu_status == "critical"
        assert health.memory_status == "warning"
        assert health.issues == ["CPU usage critically high (95%)", "Memory usage high (82%)"]

    def test_without_gpu(self):
        health = build_health(make_metrics(gpu=None))
        assert health.gpu_status == "unavailable"
        assert health.encoder_status == "unavailable"

    def test_out_of_range_value_clamped_for_display(self):
        health = build_health(make_metrics(cpu=140))
        assert health.issues == ["CPU usage critically high (100%)"]

    def test_encoder_unavailable_when_unknown(self):
        health = build_health(make_metrics(gpu=30, encoder=None))
        assert health.gpu_status == "normal"
        assert health.encoder_status == "unavailable"
