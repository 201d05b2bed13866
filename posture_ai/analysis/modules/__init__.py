"""
Modules Package for Posture AI Analysis.

Contains aggregation/scoring, posture-type diagnosis and exercise advice.
"""

from .scoring import (
    MetricResult, PostureMetrics, Session,
    compute_stability, compute_front_metrics, compute_side_metrics,
    compute_full_metrics, compute_overall_score, build_session
)
from .posture_type import (
    PostureTypeName, ScoreTier, StabilityGrade, PostureType, POSTURE_TYPES,
    diagnose_posture_type, get_score_tier, get_stability_grade
)
from .advice import (
    ExerciseRec, EXERCISE_MAP, Assessment,
    get_recommended_exercises, metric_advice_key, assess_session
)

__all__ = [
    # Scoring
    'MetricResult', 'PostureMetrics', 'Session',
    'compute_stability', 'compute_front_metrics', 'compute_side_metrics',
    'compute_full_metrics', 'compute_overall_score', 'build_session',

    # Posture type
    'PostureTypeName', 'ScoreTier', 'StabilityGrade', 'PostureType', 'POSTURE_TYPES',
    'diagnose_posture_type', 'get_score_tier', 'get_stability_grade',

    # Advice
    'ExerciseRec', 'EXERCISE_MAP', 'Assessment',
    'get_recommended_exercises', 'metric_advice_key', 'assess_session',
]
