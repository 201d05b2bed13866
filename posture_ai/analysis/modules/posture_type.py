"""
Posture Type Module for Posture AI.

Rule-based diagnosis of a finished assessment: one posture-type label,
a score tier and a stability grade.

Pattern rules (w/b = warning or bad):
    phoneNeck   = bad CVA  OR (w/b CVA AND w/b headTilt)
    roundedBack = w/b roundedShoulders AND w/b thoracicKyphosis
    swayBack    = w/b lumbarLordosis   AND w/b pelvicTilt
    leanType    = w/b trunkLean        AND w/b shoulderLevel

Author: Posture AI Team
Version: 1.0.0
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from ...helpers.enums import MetricStatus
from ..core.data_types import (
    CVA, HEAD_TILT, SHOULDER_LEVEL, ROUNDED_SHOULDERS, THORACIC_KYPHOSIS,
    LUMBAR_LORDOSIS, PELVIC_TILT, TRUNK_LEAN,
)
from .scoring import MetricResult


class PostureTypeName(str, Enum):
    IDEAL = "ideal"
    PHONE_NECK = "phoneNeck"
    ROUNDED_BACK = "roundedBack"
    SWAY_BACK = "swayBack"
    LEAN_TYPE = "leanType"
    COMBINED = "combined"
    MODERN = "modern"


class ScoreTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    NEEDS_WORK = "needsWork"
    RESCUE = "rescue"


class StabilityGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


@dataclass(frozen=True)
class PostureType:
    """Display descriptor of a posture type (lower priority = more relevant)."""
    type: PostureTypeName
    emoji: str
    priority: int


POSTURE_TYPES: Dict[PostureTypeName, PostureType] = {
    PostureTypeName.COMBINED: PostureType(PostureTypeName.COMBINED, "⚠️", 1),
    PostureTypeName.PHONE_NECK: PostureType(PostureTypeName.PHONE_NECK, "📱", 2),
    PostureTypeName.ROUNDED_BACK: PostureType(PostureTypeName.ROUNDED_BACK, "🐢", 3),
    PostureTypeName.SWAY_BACK: PostureType(PostureTypeName.SWAY_BACK, "🦩", 4),
    PostureTypeName.LEAN_TYPE: PostureType(PostureTypeName.LEAN_TYPE, "🌴", 5),
    PostureTypeName.MODERN: PostureType(PostureTypeName.MODERN, "💻", 6),
    PostureTypeName.IDEAL: PostureType(PostureTypeName.IDEAL, "✨", 7),
}

IDEAL_SCORE = 90
COMBINED_BAD_COUNT = 3
MODERN_WARN_COUNT = 2

# (min score, tier), checked top-down
SCORE_TIERS: Tuple[Tuple[int, ScoreTier], ...] = (
    (90, ScoreTier.EXCELLENT),
    (75, ScoreTier.GOOD),
    (60, ScoreTier.AVERAGE),
    (40, ScoreTier.NEEDS_WORK),
)

STABILITY_GRADES: Tuple[Tuple[int, StabilityGrade], ...] = (
    (85, StabilityGrade.A),
    (70, StabilityGrade.B),
    (50, StabilityGrade.C),
)


def is_bad(m: Optional[MetricResult]) -> bool:
    return m is not None and m.status == MetricStatus.BAD


def is_warning_or_bad(m: Optional[MetricResult]) -> bool:
    return m is not None and m.status in (MetricStatus.WARNING, MetricStatus.BAD)


def detect_patterns(metrics: Mapping[str, Optional[MetricResult]]) -> Dict[PostureTypeName, bool]:
    """
    Evaluate the single-pattern rules.

    Returns:
        Ordered dict pattern -> fired, in priority order.
    """
    get = metrics.get
    return {
        PostureTypeName.PHONE_NECK: is_bad(get(CVA)) or (
            is_warning_or_bad(get(CVA)) and is_warning_or_bad(get(HEAD_TILT))
        ),
        PostureTypeName.ROUNDED_BACK: (
            is_warning_or_bad(get(ROUNDED_SHOULDERS)) and is_warning_or_bad(get(THORACIC_KYPHOSIS))
        ),
        PostureTypeName.SWAY_BACK: (
            is_warning_or_bad(get(LUMBAR_LORDOSIS)) and is_warning_or_bad(get(PELVIC_TILT))
        ),
        PostureTypeName.LEAN_TYPE: (
            is_warning_or_bad(get(TRUNK_LEAN)) and is_warning_or_bad(get(SHOULDER_LEVEL))
        ),
    }


def diagnose_posture_type(
    metrics: Mapping[str, Optional[MetricResult]],
    score: float
) -> PostureTypeName:
    """
    Diagnose the posture type of a finished assessment.

    Args:
        metrics: Metric results of the session.
        score: Overall score of the session.

    Returns:
        PostureTypeName
    """
    present = [m for m in metrics.values() if m is not None]
    bad_count = sum(1 for m in present if is_bad(m))
    warn_count = sum(1 for m in present if is_warning_or_bad(m))

    if score >= IDEAL_SCORE and bad_count == 0:
        return PostureTypeName.IDEAL

    patterns = detect_patterns(metrics)
    fired = [name for name, hit in patterns.items() if hit]

    if len(fired) >= 2 or bad_count >= COMBINED_BAD_COUNT:
        return PostureTypeName.COMBINED

    if fired:
        return fired[0]

    if warn_count >= MODERN_WARN_COUNT:
        return PostureTypeName.MODERN

    return PostureTypeName.IDEAL


def get_score_tier(score: float) -> ScoreTier:
    for minimum, tier in SCORE_TIERS:
        if score >= minimum:
            return tier
    return ScoreTier.RESCUE


def get_stability_grade(metrics: Mapping[str, Optional[MetricResult]]) -> Tuple[int, StabilityGrade]:
    """
    Average stability of the present metrics and its letter grade.

    Returns:
        (rounded average, grade); (0, D) for an empty metric set.
    """
    stabilities = [m.stability for m in metrics.values() if m is not None]
    if not stabilities:
        return 0, StabilityGrade.D

    avg = int(sum(stabilities) / len(stabilities) + 0.5)
    for minimum, grade in STABILITY_GRADES:
        if avg >= minimum:
            return avg, grade
    return avg, StabilityGrade.D
