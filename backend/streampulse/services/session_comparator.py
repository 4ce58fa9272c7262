"""
StreamPulse - Session Comparison
Pure functions comparing two recorded session summaries.
"""
from typing import Dict, List, Tuple

from streampulse.schemas.session import (
    SessionSummary, MetricDelta, ComparisonResult, ComparisonSummary
)


# metric -> higher_is_better
METRIC_POLARITY: Dict[str, bool] = {
    "quality_score": True,
    "avg_cpu": False,
    "avg_gpu": False,
    "total_dropped_frames": False,
    "peak_bitrate": True,
}

# Metrics cited in the textual summary, in output order
SUMMARY_METRICS: Tuple[str, ...] = (
    "quality_score",
    "avg_cpu",
    "avg_gpu",
    "total_dropped_frames",
)

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "quality_score_up": "Quality score increased by {amount:.0f} points",
        "quality_score_down": "Quality score decreased by {amount:.0f} points",
        "avg_cpu_down": "CPU usage reduced by {amount:.1f}%",
        "avg_cpu_up": "CPU usage increased by {amount:.1f}%",
        "avg_gpu_down": "GPU usage reduced by {amount:.1f}%",
        "avg_gpu_up": "GPU usage increased by {amount:.1f}%",
        "total_dropped_frames_down": "Dropped frames reduced by {amount:.0f} frames",
        "total_dropped_frames_up": "Dropped frames increased by {amount:.0f} frames",
        "no_difference": "No significant difference between sessions",
    },
    "ja": {
        "quality_score_up": "品質スコアが {amount:.0f} ポイント向上",
        "quality_score_down": "品質スコアが {amount:.0f} ポイント低下",
        "avg_cpu_down": "CPU使用率が {amount:.1f}% 削減",
        "avg_cpu_up": "CPU使用率が {amount:.1f}% 増加",
        "avg_gpu_down": "GPU使用率が {amount:.1f}% 削減",
        "avg_gpu_up": "GPU使用率が {amount:.1f}% 増加",
        "total_dropped_frames_down": "ドロップフレームが {amount:.0f} フレーム削減",
        "total_dropped_frames_up": "ドロップフレームが {amount:.0f} フレーム増加",
        "no_difference": "セッション間で顕著な違いはありません",
    },
}

DEFAULT_LOCALE = "en"


def metric_delta(metric: str, before: float, after: float, higher_is_better: bool) -> MetricDelta:
    """
    Diff a single metric.

    The percent change is reported as 0 when the baseline is 0, since the
    relative change is undefined there.
    """
    diff = after - before
    diff_percent = (diff / before) * 100 if before != 0 else 0.0

    return MetricDelta(
        metric=metric,
        before=before,
        after=after,
        diff=diff,
        diff_percent=diff_percent,
        higher_is_better=higher_is_better,
        is_improvement=diff > 0 if higher_is_better else diff < 0,
        is_degradation=diff < 0 if higher_is_better else diff > 0
    )


def compare(before: SessionSummary, after: SessionSummary) -> ComparisonResult:
    """Compare two sessions, treating `after` as the later one"""
    deltas = [
        metric_delta(metric, float(getattr(before, metric)), float(getattr(after, metric)), higher)
        for metric, higher in METRIC_POLARITY.items()
    ]
    return ComparisonResult(
        before_session_id=before.session_id,
        after_session_id=after.session_id,
        deltas=deltas
    )


def summarize(
    before: SessionSummary,
    after: SessionSummary,
    locale: str = DEFAULT_LOCALE
) -> ComparisonSummary:
    """Describe improvements and degradations in a fixed metric order"""
    messages = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    result = compare(before, after)

    improvements: List[str] = []
    degradations: List[str] = []
    for metric in SUMMARY_METRICS:
        delta = result.delta(metric)
        if delta.diff == 0:
            continue

        direction = "up" if delta.diff > 0 else "down"
        sentence = messages[f"{metric}_{direction}"].format(amount=abs(delta.diff))
        if delta.is_improvement:
            improvements.append(sentence)
        else:
            degradations.append(sentence)

    if not improvements and not degradations:
        return ComparisonSummary(message=messages["no_difference"])

    return ComparisonSummary(improvements=improvements, degradations=degradations)
