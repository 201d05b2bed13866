"""
Metrics Module for Posture AI.

Landmark geometry extractor: turns one LandmarkSet into a RawMetricBundle
for a front or side view.

Front view:
    cva, headTilt, shoulderLevel, roundedShoulders, pelvicTilt, trunkLean
Side view:
    thoracicKyphosis, lumbarLordosis, roundedShoulders, kneeHyperextension

All angle math runs in pixel space (normalized coordinates multiplied by
the frame width/height). Missing landmarks or degenerate geometry give 0.0.

Author: Posture AI Team
Version: 1.0.0
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from ...helpers.enums import MetricStatus, ViewType
from .data_types import (
    CVA, HEAD_TILT, SHOULDER_LEVEL, ROUNDED_SHOULDERS, THORACIC_KYPHOSIS,
    LUMBAR_LORDOSIS, PELVIC_TILT, TRUNK_LEAN, KNEE_HYPEREXTENSION,
    LandmarkSet, PoseLandmarkIndex, RawMetricBundle,
)
from .kinematics import (
    angle_between_3, inclination, level_angle, midpoint, pick_higher_confidence,
)


class ThresholdRule(Enum):
    """How a metric value is compared against its cut points."""
    HIGHER_IS_BETTER = "higher"
    LOWER_IS_BETTER = "lower"
    ABS_LOWER_IS_BETTER = "abs_lower"
    TARGET_BAND = "band"


@dataclass(frozen=True)
class MetricThreshold:
    """
    Two cut points splitting a metric into good / warning / bad.

    For TARGET_BAND, ``good`` and ``warning`` are inclusive (low, high) bands.
    """
    rule: ThresholdRule
    good: Union[float, Tuple[float, float]]
    warning: Union[float, Tuple[float, float]]

    def classify(self, value: float) -> MetricStatus:
        if self.rule == ThresholdRule.HIGHER_IS_BETTER:
            if value > self.good:
                return MetricStatus.GOOD
            return MetricStatus.WARNING if value > self.warning else MetricStatus.BAD

        if self.rule == ThresholdRule.TARGET_BAND:
            good_low, good_high = self.good
            warn_low, warn_high = self.warning
            if good_low <= value <= good_high:
                return MetricStatus.GOOD
            if warn_low <= value <= warn_high:
                return MetricStatus.WARNING
            return MetricStatus.BAD

        if self.rule == ThresholdRule.ABS_LOWER_IS_BETTER:
            value = abs(value)
        if value < self.good:
            return MetricStatus.GOOD
        return MetricStatus.WARNING if value < self.warning else MetricStatus.BAD


METRIC_THRESHOLDS: Dict[str, MetricThreshold] = {
    CVA: MetricThreshold(ThresholdRule.HIGHER_IS_BETTER, 53, 48),
    HEAD_TILT: MetricThreshold(ThresholdRule.ABS_LOWER_IS_BETTER, 5, 10),
    SHOULDER_LEVEL: MetricThreshold(ThresholdRule.LOWER_IS_BETTER, 5, 10),
    ROUNDED_SHOULDERS: MetricThreshold(ThresholdRule.LOWER_IS_BETTER, 15, 25),
    THORACIC_KYPHOSIS: MetricThreshold(ThresholdRule.LOWER_IS_BETTER, 35, 45),
    LUMBAR_LORDOSIS: MetricThreshold(ThresholdRule.TARGET_BAND, (25, 35), (15, 45)),
    PELVIC_TILT: MetricThreshold(ThresholdRule.LOWER_IS_BETTER, 3, 5),
    TRUNK_LEAN: MetricThreshold(ThresholdRule.ABS_LOWER_IS_BETTER, 5, 10),
    KNEE_HYPEREXTENSION: MetricThreshold(ThresholdRule.LOWER_IS_BETTER, 5, 10),
}

# Front-view rounded shoulders is a proxy: nose offset relative to shoulder width
FRONT_ROUNDED_SHOULDERS_SCALE = 30.0


def classify_metric(key: str, value: float) -> MetricStatus:
    """
    Classify a metric value with its fixed threshold table.

    Unknown metric keys are always GOOD.
    """
    threshold = METRIC_THRESHOLDS.get(key)
    if threshold is None:
        return MetricStatus.GOOD
    return threshold.classify(value)


def _bundle(view: ViewType, values: Dict[str, float]) -> RawMetricBundle:
    return RawMetricBundle(
        view=view,
        values=values,
        statuses={k: classify_metric(k, v) for k, v in values.items()},
    )


def analyze_front(landmarks: LandmarkSet, width: float, height: float) -> RawMetricBundle:
    """
    Analyze front-view posture.

    Args:
        landmarks: Landmarks of the detected person.
        width: Frame width (pixels).
        height: Frame height (pixels).

    Returns:
        RawMetricBundle with the six front-view metrics.
    """
    def px(index: int):
        return landmarks.pixel(index, width, height)

    nose = px(PoseLandmarkIndex.NOSE)
    l_ear, r_ear = px(PoseLandmarkIndex.LEFT_EAR), px(PoseLandmarkIndex.RIGHT_EAR)
    l_sh, r_sh = px(PoseLandmarkIndex.LEFT_SHOULDER), px(PoseLandmarkIndex.RIGHT_SHOULDER)
    l_hip, r_hip = px(PoseLandmarkIndex.LEFT_HIP), px(PoseLandmarkIndex.RIGHT_HIP)

    values: Dict[str, float] = {}

    # CVA: ear-to-shoulder inclination on the more visible side
    use_left = pick_higher_confidence(
        landmarks.get(PoseLandmarkIndex.LEFT_EAR),
        landmarks.get(PoseLandmarkIndex.RIGHT_EAR),
    )
    ear, shoulder = (l_ear, l_sh) if use_left else (r_ear, r_sh)
    if ear is not None and shoulder is not None:
        values[CVA] = inclination(shoulder[1] - ear[1], abs(ear[0] - shoulder[0]))
    else:
        values[CVA] = 0.0

    # Head tilt (signed)
    if l_ear is not None and r_ear is not None:
        values[HEAD_TILT] = inclination(l_ear[1] - r_ear[1], r_ear[0] - l_ear[0])
    else:
        values[HEAD_TILT] = 0.0

    # Shoulder level (symmetry)
    shoulders_ok = l_sh is not None and r_sh is not None
    values[SHOULDER_LEVEL] = level_angle(l_sh, r_sh) if shoulders_ok else 0.0

    # Rounded shoulders, rough proxy from the nose offset
    if shoulders_ok and nose is not None:
        mid_shoulder_x = (l_sh[0] + r_sh[0]) / 2
        shoulder_width = abs(r_sh[0] - l_sh[0])
        values[ROUNDED_SHOULDERS] = (
            abs(nose[0] - mid_shoulder_x) / shoulder_width * FRONT_ROUNDED_SHOULDERS_SCALE
            if shoulder_width > 0 else 0.0
        )
    else:
        values[ROUNDED_SHOULDERS] = 0.0

    # Pelvic tilt (left-right hip difference)
    hips_ok = l_hip is not None and r_hip is not None
    values[PELVIC_TILT] = level_angle(l_hip, r_hip) if hips_ok else 0.0

    # Trunk lean (signed, from vertical)
    if shoulders_ok and hips_ok:
        mid_sh = midpoint(l_sh, r_sh)
        mid_hip = midpoint(l_hip, r_hip)
        values[TRUNK_LEAN] = inclination(mid_sh[0] - mid_hip[0], mid_hip[1] - mid_sh[1])
    else:
        values[TRUNK_LEAN] = 0.0

    return _bundle(ViewType.FRONT, values)


def analyze_side(landmarks: LandmarkSet, width: float, height: float) -> RawMetricBundle:
    """
    Analyze side-view posture.

    The side facing the camera is picked once from the ear pair and the same
    side's shoulder, hip, knee and ankle are used for every metric.

    Args:
        landmarks: Landmarks of the detected person.
        width: Frame width (pixels).
        height: Frame height (pixels).

    Returns:
        RawMetricBundle with the four side-view metrics.
    """
    use_left = pick_higher_confidence(
        landmarks.get(PoseLandmarkIndex.LEFT_EAR),
        landmarks.get(PoseLandmarkIndex.RIGHT_EAR),
    )
    side = 0 if use_left else 1

    ear = landmarks.pixel(PoseLandmarkIndex.EARS[side], width, height)
    shoulder = landmarks.pixel(PoseLandmarkIndex.SHOULDERS[side], width, height)
    hip = landmarks.pixel(PoseLandmarkIndex.HIPS[side], width, height)
    knee = landmarks.pixel(PoseLandmarkIndex.KNEES[side], width, height)
    ankle = landmarks.pixel(PoseLandmarkIndex.ANKLES[side], width, height)

    values: Dict[str, float] = {}

    # Thoracic kyphosis: ear-shoulder line relative to vertical
    if ear is not None and shoulder is not None:
        values[THORACIC_KYPHOSIS] = abs(inclination(ear[0] - shoulder[0], shoulder[1] - ear[1]))
    else:
        values[THORACIC_KYPHOSIS] = 0.0

    # Lumbar lordosis: deviation of ear-shoulder-hip from a straight line
    # Coincident points give a 0 angle, so the deviation reads 180 (bad)
    if ear is not None and shoulder is not None and hip is not None:
        values[LUMBAR_LORDOSIS] = abs(180.0 - angle_between_3(ear, shoulder, hip))
    else:
        values[LUMBAR_LORDOSIS] = 0.0

    # Rounded shoulders: shoulder forward of the hip
    if shoulder is not None and hip is not None:
        values[ROUNDED_SHOULDERS] = abs(inclination(shoulder[0] - hip[0], hip[1] - shoulder[1]))
    else:
        values[ROUNDED_SHOULDERS] = 0.0

    # Knee hyperextension: knee angle beyond straight
    if hip is not None and knee is not None and ankle is not None:
        values[KNEE_HYPEREXTENSION] = max(0.0, angle_between_3(hip, knee, ankle) - 180.0)
    else:
        values[KNEE_HYPEREXTENSION] = 0.0

    return _bundle(ViewType.SIDE, values)


def analyze_view(
    view: Union[ViewType, str],
    landmarks: LandmarkSet,
    width: float,
    height: float
) -> RawMetricBundle:
    """Dispatch to the analyzer of ``view``."""
    view = ViewType(view)
    if view == ViewType.FRONT:
        return analyze_front(landmarks, width, height)
    return analyze_side(landmarks, width, height)


def live_statuses(bundle: Optional[RawMetricBundle]) -> Dict[str, str]:
    """Status strings of a bundle, for the rendering collaborator."""
    if bundle is None:
        return {}
    return bundle.status_dict()
