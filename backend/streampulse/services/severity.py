"""
StreamPulse - Severity Classification
Maps a metric value to a normal / warning / critical tier per domain.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

from streampulse.schemas.system import SystemMetrics


class SeverityTier(str, enum.Enum):
    """Ordered severity tier: normal < warning < critical"""
    normal = "normal"
    warning = "warning"
    critical = "critical"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self):
        return self.value


_TIER_RANK = {
    SeverityTier.normal: 0,
    SeverityTier.warning: 1,
    SeverityTier.critical: 2,
}


@dataclass(frozen=True)
class SeverityThresholds:
    warning: float
    critical: float

    def __post_init__(self):
        if not self.warning < self.critical:
            raise ValueError(
                f"warning threshold ({self.warning}) must be below critical ({self.critical})"
            )


DOMAINS = ("cpu", "memory", "gpu", "encoder")

# Canonical table used by the dashboard
DEFAULT_THRESHOLDS: Dict[str, SeverityThresholds] = {
    "cpu": SeverityThresholds(warning=70, critical=90),
    "memory": SeverityThresholds(warning=80, critical=95),
    "gpu": SeverityThresholds(warning=85, critical=95),
    "encoder": SeverityThresholds(warning=70, critical=90),
}

# Tighter table used by the compact metric cards; kept for reference, not merged
COMPACT_THRESHOLDS: Dict[str, SeverityThresholds] = {
    "cpu": SeverityThresholds(warning=70, critical=90),
    "memory": SeverityThresholds(warning=75, critical=90),
    "gpu": SeverityThresholds(warning=80, critical=95),
    "encoder": SeverityThresholds(warning=70, critical=90),
}


def build_thresholds(table: Mapping[str, Mapping[str, float]]) -> Dict[str, SeverityThresholds]:
    """Build a threshold table from plain {domain: {warning, critical}} data"""
    thresholds = dict(DEFAULT_THRESHOLDS)
    for domain, pair in table.items():
        if domain not in DOMAINS:
            raise ValueError(f"Unknown severity domain: {domain}")
        thresholds[domain] = SeverityThresholds(
            warning=float(pair["warning"]),
            critical=float(pair["critical"])
        )
    return thresholds


def classify(
    domain: str,
    value: float,
    thresholds: Optional[Mapping[str, SeverityThresholds]] = None
) -> SeverityTier:
    """
    Classify a metric value into a severity tier.

    Boundary values belong to the higher tier. NaN compares false against
    both thresholds and is therefore normal.
    """
    table = thresholds if thresholds is not None else DEFAULT_THRESHOLDS
    pair = table[domain]
    if value >= pair.critical:
        return SeverityTier.critical
    if value >= pair.warning:
        return SeverityTier.warning
    return SeverityTier.normal


def classify_metrics(
    metrics: SystemMetrics,
    thresholds: Optional[Mapping[str, SeverityThresholds]] = None
) -> Dict[str, SeverityTier]:
    """
    Classify every domain present in a snapshot.

    gpu needs a GPU; encoder additionally needs a known encoder reading.
    """
    tiers = {
        "cpu": classify("cpu", metrics.cpu.usage_percent, thresholds),
        "memory": classify("memory", metrics.memory.usage_percent, thresholds),
    }
    if metrics.gpu is not None:
        tiers["gpu"] = classify("gpu", metrics.gpu.usage_percent, thresholds)
        if metrics.gpu.encoder_usage is not None:
            tiers["encoder"] = classify("encoder", metrics.gpu.encoder_usage, thresholds)
    return tiers


def worst_tier(tiers: Iterable[SeverityTier]) -> SeverityTier:
    return max(tiers, default=SeverityTier.normal)
