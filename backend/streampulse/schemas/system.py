"""
StreamPulse - System Monitoring Schemas
"""
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field


def clamp_percent(value: float) -> float:
    """Clamp a usage percentage into [0, 100] for display"""
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(100.0, value))


class CPUMetrics(BaseModel):
    usage_percent: float
    core_count: int = Field(gt=0)
    per_core_usage: List[float] = []
    name: str = ""


class MemoryMetrics(BaseModel):
    used_bytes: int = Field(ge=0)
    total_bytes: int = Field(ge=0)
    available_bytes: int = Field(ge=0)
    usage_percent: float


class GPUMetrics(BaseModel):
    name: str
    usage_percent: float
    memory_used_bytes: int = Field(ge=0)
    memory_total_bytes: int = Field(ge=0)
    encoder_usage: Optional[float] = None  # None when NVML is unavailable


class NetworkMetrics(BaseModel):
    upload_bytes_per_sec: float = Field(ge=0)
    download_bytes_per_sec: float = Field(ge=0)


class SystemMetrics(BaseModel):
    cpu: CPUMetrics
    memory: MemoryMetrics
    gpu: Optional[GPUMetrics] = None  # None when no GPU detected
    network: NetworkMetrics


class ProcessMetrics(BaseModel):
    name: str
    pid: int
    cpu_usage: float
    memory_bytes: int = Field(ge=0)
    is_running: bool = True


class ObsProcessMetrics(BaseModel):
    main_process: Optional[ProcessMetrics] = None
    total_cpu_usage: float = 0.0
    total_memory_bytes: int = 0


class TimeSeriesPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: int  # epoch milliseconds
    value: float


class MonitorState(BaseModel):
    metrics: Optional[SystemMetrics] = None
    process_metrics: Optional[ObsProcessMetrics] = None
    severities: Dict[str, str] = {}
    overall_severity: str = "normal"
    running: bool = False
    loading: bool = False
    error: Optional[str] = None
    last_update: Optional[int] = None


class MetricsHistoryResponse(BaseModel):
    capacity: int
    channels: Dict[str, List[TimeSeriesPoint]]


class SystemHealth(BaseModel):
    status: str  # normal, warning, critical, unknown
    cpu_status: str
    memory_status: str
    gpu_status: str  # "unavailable" when no GPU
    encoder_status: str
    issues: List[str] = []
    last_update: Optional[int] = None
