"""
Scoring Module for Posture AI.

Aggregates the buffered frames of a finished capture pass into one
MetricResult per metric, then a single weighted overall score.

Stability:
    CV% = stddev / |mean| * 100
    stability = clamp(round(100 - CV% * 2), 0, 100)

    - fewer than 2 samples -> 100
    - mean == 0            -> CV term is 0 (stability 100)

Overall score:
    Each present metric contributes
        status_score (good=100, warning=60, bad=20) + (stability - 50) / 50 * 5
    weighted by METRIC_WEIGHTS. The weighted average is clamped to [0, 100]
    and rounded to the nearest integer.

Author: Posture AI Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Union
import math
import uuid
import numpy as np

from ...helpers.enums import MetricStatus, SessionAngle, SessionType
from ...helpers.exceptions import InvalidSessionTypeError
from ..core.data_types import (
    CVA, HEAD_TILT, SHOULDER_LEVEL, ROUNDED_SHOULDERS, THORACIC_KYPHOSIS,
    LUMBAR_LORDOSIS, PELVIC_TILT, TRUNK_LEAN, KNEE_HYPEREXTENSION,
    FrameRecord,
)
from ..core.metrics import classify_metric

DEGREE_UNIT = "°"

FRONT_KEYS = (CVA, HEAD_TILT, SHOULDER_LEVEL, ROUNDED_SHOULDERS, PELVIC_TILT, TRUNK_LEAN)
SIDE_KEYS = (THORACIC_KYPHOSIS, LUMBAR_LORDOSIS, ROUNDED_SHOULDERS, KNEE_HYPEREXTENSION)

STATUS_SCORES: Dict[MetricStatus, float] = {
    MetricStatus.GOOD: 100.0,
    MetricStatus.WARNING: 60.0,
    MetricStatus.BAD: 20.0,
}

METRIC_WEIGHTS: Dict[str, float] = {
    CVA: 1.5,
    HEAD_TILT: 1.0,
    SHOULDER_LEVEL: 1.0,
    ROUNDED_SHOULDERS: 1.2,
    THORACIC_KYPHOSIS: 1.3,
    LUMBAR_LORDOSIS: 1.2,
    PELVIC_TILT: 1.0,
    TRUNK_LEAN: 1.0,
    KNEE_HYPEREXTENSION: 0.8,
}
DEFAULT_WEIGHT = 1.0

# Stability bonus range is +/- STABILITY_BONUS_MAX points
STABILITY_BONUS_MAX = 5.0


@dataclass(frozen=True)
class MetricResult:
    """
    Aggregate of one metric over a capture pass.

    Attributes:
        value: Mean rounded to one decimal.
        unit: Display unit.
        status: Status of the mean value.
        stability: 0-100, higher means steadier.
        mean: Mean rounded to one decimal.
        min: Minimum rounded to one decimal.
        max: Maximum rounded to one decimal.
    """
    value: float
    unit: str
    status: MetricStatus
    stability: int
    mean: float
    min: float
    max: float

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "unit": self.unit,
            "status": self.status.value,
            "stability": self.stability,
            "mean": self.mean,
            "min": self.min,
            "max": self.max,
        }


PostureMetrics = Dict[str, MetricResult]


@dataclass(frozen=True)
class Session:
    """
    Finalized record of one assessment.

    Created once at the end of a capture sequence and handed whole to the
    persistence collaborator.
    """
    id: str
    profile_id: str
    type: SessionType
    angle: SessionAngle
    timestamp: datetime
    duration: float
    metrics: Mapping[str, MetricResult] = field(default_factory=dict)
    overall_score: int = 0

    def __post_init__(self):
        # Read-only view over a private copy
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "profileId": self.profile_id,
            "type": self.type.value,
            "angle": self.angle.value,
            "timestamp": self.timestamp.isoformat(),
            "duration": self.duration,
            "metrics": {k: m.to_dict() for k, m in self.metrics.items()},
            "overallScore": self.overall_score,
        }


def _round1(value: float) -> float:
    # Half-up rounding to one decimal, as the report renders it
    return math.floor(value * 10 + 0.5) / 10


def compute_stability(values: Sequence[float]) -> int:
    """
    Stability of a sample set (0-100).

    Args:
        values: Buffered values of one metric.

    Returns:
        100 for fewer than 2 samples; otherwise 100 - 2 * CV%, clamped.
    """
    if len(values) < 2:
        return 100
    arr = np.asarray(values, dtype=np.float64)
    mean = float(np.mean(arr))
    sd = float(np.std(arr))  # population standard deviation
    cv = (sd / abs(mean)) * 100 if mean != 0 else 0.0
    return int(max(0, min(100, math.floor(100 - cv * 2 + 0.5))))


def collect_frame_values(
    frames: Sequence[FrameRecord],
    keys: Sequence[str]
) -> Dict[str, List[float]]:
    """
    Gather the finite values of ``keys`` across a frame buffer.

    Returns:
        Dict key -> list of values (empty list if no frame carried the key).
    """
    result: Dict[str, List[float]] = {k: [] for k in keys}
    for frame in frames:
        for k in keys:
            v = frame.metrics.get(k)
            if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v):
                result[k].append(float(v))
    return result


def build_metric_result(key: str, values: Sequence[float], unit: str = DEGREE_UNIT) -> MetricResult:
    """
    Aggregate the values of one metric.

    Status is derived from the mean, not from individual frames.
    """
    if values:
        arr = np.asarray(values, dtype=np.float64)
        mean = float(np.mean(arr))
        min_v = float(np.min(arr))
        max_v = float(np.max(arr))
    else:
        mean = min_v = max_v = 0.0

    return MetricResult(
        value=_round1(mean),
        unit=unit,
        status=classify_metric(key, mean),
        stability=compute_stability(values),
        mean=_round1(mean),
        min=_round1(min_v),
        max=_round1(max_v),
    )


def compute_front_metrics(frames: Sequence[FrameRecord]) -> PostureMetrics:
    """Metric results of a front-only pass."""
    data = collect_frame_values(frames, FRONT_KEYS)
    return {k: build_metric_result(k, data[k]) for k in FRONT_KEYS}


def compute_side_metrics(frames: Sequence[FrameRecord]) -> PostureMetrics:
    """Metric results of a side-only pass."""
    data = collect_frame_values(frames, SIDE_KEYS)
    return {k: build_metric_result(k, data[k]) for k in SIDE_KEYS}


def compute_full_metrics(
    front_frames: Sequence[FrameRecord],
    side_frames: Sequence[FrameRecord]
) -> PostureMetrics:
    """
    Merge a front pass and a side pass.

    Rounded shoulders is measurable from both views; the side reading is
    preferred whenever the side buffer carries samples for it.
    """
    front = collect_frame_values(front_frames, FRONT_KEYS)
    side = collect_frame_values(side_frames, SIDE_KEYS)

    rounded = side[ROUNDED_SHOULDERS] if side[ROUNDED_SHOULDERS] else front[ROUNDED_SHOULDERS]

    return {
        CVA: build_metric_result(CVA, front[CVA]),
        HEAD_TILT: build_metric_result(HEAD_TILT, front[HEAD_TILT]),
        SHOULDER_LEVEL: build_metric_result(SHOULDER_LEVEL, front[SHOULDER_LEVEL]),
        ROUNDED_SHOULDERS: build_metric_result(ROUNDED_SHOULDERS, rounded),
        THORACIC_KYPHOSIS: build_metric_result(THORACIC_KYPHOSIS, side[THORACIC_KYPHOSIS]),
        LUMBAR_LORDOSIS: build_metric_result(LUMBAR_LORDOSIS, side[LUMBAR_LORDOSIS]),
        PELVIC_TILT: build_metric_result(PELVIC_TILT, front[PELVIC_TILT]),
        TRUNK_LEAN: build_metric_result(TRUNK_LEAN, front[TRUNK_LEAN]),
        KNEE_HYPEREXTENSION: build_metric_result(KNEE_HYPEREXTENSION, side[KNEE_HYPEREXTENSION]),
    }


def stability_bonus(stability: float) -> float:
    """Bonus in [-5, +5] points for a metric's stability."""
    return (stability - 50) / 50 * STABILITY_BONUS_MAX


def compute_overall_score(metrics: Mapping[str, Optional[MetricResult]]) -> int:
    """
    Weighted overall posture score.

    Args:
        metrics: Metric results; None entries are skipped.

    Returns:
        Integer score in [0, 100]; 0 for an empty metric set.
    """
    total_weight = 0.0
    weighted_sum = 0.0

    for key, m in metrics.items():
        if m is None:
            continue
        w = METRIC_WEIGHTS.get(key, DEFAULT_WEIGHT)
        weighted_sum += (STATUS_SCORES[m.status] + stability_bonus(m.stability)) * w
        total_weight += w

    if total_weight == 0:
        return 0

    score = math.floor(weighted_sum / total_weight + 0.5)
    return int(max(0, min(100, score)))


def build_session(
    session_type: Union[SessionType, str],
    profile_id: str,
    front_frames: Sequence[FrameRecord],
    side_frames: Optional[Sequence[FrameRecord]] = None,
    duration: float = 15.0,
    session_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Session:
    """
    Build the finalized Session of a capture sequence.

    Quick sessions are front-only; every other type merges front and side.

    Raises:
        InvalidSessionTypeError: If ``session_type`` is not a SessionType.
    """
    try:
        session_type = SessionType(session_type)
    except ValueError:
        raise InvalidSessionTypeError(f"Unknown session type: {session_type!r}")

    if session_type == SessionType.QUICK:
        metrics = compute_front_metrics(front_frames)
        angle = SessionAngle.FRONT
    else:
        metrics = compute_full_metrics(front_frames, side_frames or [])
        angle = SessionAngle.BOTH

    return Session(
        id=session_id or str(uuid.uuid4()),
        profile_id=profile_id,
        type=session_type,
        angle=angle,
        timestamp=timestamp or datetime.now(),
        duration=duration,
        metrics=metrics,
        overall_score=compute_overall_score(metrics),
    )
