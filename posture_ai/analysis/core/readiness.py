"""
Readiness Module for Posture AI.

Checks that the landmarks a view needs are visible before the capture
sequence may leave the readiness phase.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from ...helpers.enums import ViewType
from .data_types import LandmarkSet, PoseLandmarkIndex

# Below this, the detector is assumed not to report visibility at all
VISIBILITY_REPORTED_MIN = 0.01

# In-frame margins used when visibility is not reported
IN_FRAME_MIN = 0.02
IN_FRAME_MAX = 0.98


@dataclass(frozen=True)
class ReadinessCheck:
    """
    One named readiness check.

    Attributes:
        label_key: Text key shown by the renderer (face, ears, ...).
        landmarks: Landmark indices covered by the check.
        threshold: Minimum visibility for a landmark to count as visible.
        any_of: True if one visible landmark is enough, False if all are needed.
    """
    label_key: str
    landmarks: Tuple[int, ...]
    threshold: float = 0.1
    any_of: bool = False


READINESS_FRONT: Tuple[ReadinessCheck, ...] = (
    ReadinessCheck("face", (PoseLandmarkIndex.NOSE,)),
    ReadinessCheck("ears", PoseLandmarkIndex.EARS, any_of=True),
    ReadinessCheck("shoulders", PoseLandmarkIndex.SHOULDERS, any_of=True),
    ReadinessCheck("hips", PoseLandmarkIndex.HIPS, any_of=True),
)

READINESS_SIDE: Tuple[ReadinessCheck, ...] = (
    ReadinessCheck("ears", PoseLandmarkIndex.EARS, any_of=True),
    ReadinessCheck("shoulders", PoseLandmarkIndex.SHOULDERS, any_of=True),
    ReadinessCheck("hips", PoseLandmarkIndex.HIPS, any_of=True),
    ReadinessCheck("knees", PoseLandmarkIndex.KNEES, any_of=True),
)


def readiness_checks_for(view: Union[ViewType, str]) -> Tuple[ReadinessCheck, ...]:
    """Fixed check list of a view."""
    return READINESS_FRONT if ViewType(view) == ViewType.FRONT else READINESS_SIDE


def is_landmark_visible(landmarks: LandmarkSet, index: int, threshold: float) -> bool:
    """
    Whether one landmark counts as visible.

    Uses the reported visibility when it is meaningful, otherwise falls
    back to an in-frame test on the normalized coordinates.
    """
    lm = landmarks.get(index)
    if lm is None:
        return False
    if lm.visibility is not None and lm.visibility > VISIBILITY_REPORTED_MIN:
        return lm.visibility >= threshold
    return IN_FRAME_MIN < lm.x < IN_FRAME_MAX and IN_FRAME_MIN < lm.y < IN_FRAME_MAX


def check_readiness(landmarks: LandmarkSet, checks: Sequence[ReadinessCheck]) -> List[bool]:
    """
    Evaluate readiness checks.

    Args:
        landmarks: Landmarks of the detected person.
        checks: Ordered check list.

    Returns:
        One boolean per check, in check order.
    """
    results = []
    for check in checks:
        visible = (is_landmark_visible(landmarks, idx, check.threshold) for idx in check.landmarks)
        results.append(any(visible) if check.any_of else all(visible))
    return results
