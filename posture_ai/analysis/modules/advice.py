"""
Advice Module for Posture AI.

Maps flagged metrics to corrective exercises, and bundles the full
assessment (posture type, tier, stability grade, exercises) of a session.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from ...helpers.enums import MetricStatus
from ..core.data_types import (
    CVA, SHOULDER_LEVEL, ROUNDED_SHOULDERS, THORACIC_KYPHOSIS,
    LUMBAR_LORDOSIS, PELVIC_TILT, TRUNK_LEAN,
)
from .posture_type import (
    POSTURE_TYPES, PostureTypeName, ScoreTier, StabilityGrade,
    diagnose_posture_type, get_score_tier, get_stability_grade, is_warning_or_bad,
)
from .scoring import MetricResult, Session


@dataclass(frozen=True)
class ExerciseRec:
    """An exercise and the metrics it addresses."""
    exercise_key: str
    for_metrics: Tuple[str, ...]


EXERCISE_MAP: Tuple[ExerciseRec, ...] = (
    ExerciseRec("chinTuck", (CVA,)),
    ExerciseRec("chestStretch", (ROUNDED_SHOULDERS, THORACIC_KYPHOSIS)),
    ExerciseRec("shoulderBlade", (ROUNDED_SHOULDERS, SHOULDER_LEVEL)),
    ExerciseRec("catCow", (THORACIC_KYPHOSIS, LUMBAR_LORDOSIS)),
    ExerciseRec("plank", (TRUNK_LEAN, PELVIC_TILT)),
    ExerciseRec("hipStretch", (PELVIC_TILT, LUMBAR_LORDOSIS)),
    ExerciseRec("wallAngel", (THORACIC_KYPHOSIS, ROUNDED_SHOULDERS)),
)


def get_recommended_exercises(metrics: Mapping[str, Optional[MetricResult]]) -> List[str]:
    """
    Exercises addressing every metric currently flagged warning or bad.

    Returns:
        Exercise keys in EXERCISE_MAP order, without duplicates.
    """
    flagged = {k for k, m in metrics.items() if is_warning_or_bad(m)}
    if not flagged:
        return []

    exercises: List[str] = []
    for rec in EXERCISE_MAP:
        if rec.exercise_key in exercises:
            continue
        if any(k in flagged for k in rec.for_metrics):
            exercises.append(rec.exercise_key)
    return exercises


def metric_advice_key(status: MetricStatus) -> str:
    """Advice text key of a metric status."""
    return MetricStatus(status).value


@dataclass(frozen=True)
class Assessment:
    """Derived diagnosis of a finalized session."""
    posture_type: PostureTypeName
    score_tier: ScoreTier
    stability_average: int
    stability_grade: StabilityGrade
    exercises: List[str] = field(default_factory=list)

    @property
    def posture_emoji(self) -> str:
        descriptor = POSTURE_TYPES.get(self.posture_type)
        return descriptor.emoji if descriptor else ""

    def to_dict(self) -> dict:
        return {
            "posture_type": self.posture_type.value,
            "posture_emoji": self.posture_emoji,
            "score_tier": self.score_tier.value,
            "stability_average": self.stability_average,
            "stability_grade": self.stability_grade.value,
            "exercises": list(self.exercises),
        }


def assess_session(session: Session) -> Assessment:
    """Run the classifier and advice mapper over a finalized session."""
    avg, grade = get_stability_grade(session.metrics)
    return Assessment(
        posture_type=diagnose_posture_type(session.metrics, session.overall_score),
        score_tier=get_score_tier(session.overall_score),
        stability_average=avg,
        stability_grade=grade,
        exercises=get_recommended_exercises(session.metrics),
    )
