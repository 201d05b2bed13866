"""
Data Types Module for Posture AI.

Data classes and type definitions shared by the analysis pipeline:
landmarks produced by the external pose detector, raw metric bundles
computed per frame, and frame records buffered during measurement.

Author: Posture AI Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
import math

from ...helpers.enums import MetricStatus, ViewType


# Metric keys, in the order renderers and reports list them
CVA = "cva"
HEAD_TILT = "headTilt"
SHOULDER_LEVEL = "shoulderLevel"
ROUNDED_SHOULDERS = "roundedShoulders"
THORACIC_KYPHOSIS = "thoracicKyphosis"
LUMBAR_LORDOSIS = "lumbarLordosis"
PELVIC_TILT = "pelvicTilt"
TRUNK_LEAN = "trunkLean"
KNEE_HYPEREXTENSION = "kneeHyperextension"

METRIC_KEYS: Tuple[str, ...] = (
    CVA,
    HEAD_TILT,
    SHOULDER_LEVEL,
    ROUNDED_SHOULDERS,
    THORACIC_KYPHOSIS,
    LUMBAR_LORDOSIS,
    PELVIC_TILT,
    TRUNK_LEAN,
    KNEE_HYPEREXTENSION,
)


@dataclass(frozen=True)
class Landmark:
    """
    One detected anatomical point.

    Attributes:
        x: Normalized X coordinate (0-1, relative to frame width).
        y: Normalized Y coordinate (0-1, relative to frame height).
        z: Depth, as reported by the detector (unused by the 2-D metrics).
        visibility: Detector confidence (0-1), None if not reported.
    """
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    def to_pixels(self, width: float, height: float) -> Tuple[float, float]:
        """Convert to pixel space."""
        return (self.x * width, self.y * height)

    @classmethod
    def from_any(cls, point: Any) -> "Landmark":
        """
        Build a Landmark from a detector point object or a dict.

        Accepts anything exposing ``x``/``y`` and optionally ``z``/``visibility``,
        either as attributes or as mapping keys.
        """
        if isinstance(point, Landmark):
            return point
        if isinstance(point, dict):
            getter = point.get
        else:
            def getter(name, default=None):
                return getattr(point, name, default)

        visibility = getter("visibility", None)
        return cls(
            x=float(getter("x", 0.0)),
            y=float(getter("y", 0.0)),
            z=float(getter("z", 0.0) or 0.0),
            visibility=float(visibility) if visibility is not None else None,
        )


@dataclass
class LandmarkSet:
    """
    Landmarks of one detected person, indexed by PoseLandmarkIndex.

    Attributes:
        landmarks: Ordered list of Landmark.
        timestamp_ms: Timestamp of the frame (milliseconds).
    """
    landmarks: List[Landmark]
    timestamp_ms: int = 0

    def __len__(self) -> int:
        return len(self.landmarks)

    def get(self, index: int) -> Optional[Landmark]:
        """Return the landmark at ``index`` or None if the detector omitted it."""
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def pixel(self, index: int, width: float, height: float) -> Optional[Tuple[float, float]]:
        """Pixel coordinates of a landmark, None if missing or non-finite."""
        lm = self.get(index)
        if lm is None:
            return None
        px, py = lm.to_pixels(width, height)
        if not (math.isfinite(px) and math.isfinite(py)):
            return None
        return (px, py)

    @classmethod
    def from_points(cls, points: Iterable[Any], timestamp_ms: int = 0) -> "LandmarkSet":
        """Build a LandmarkSet from detector output (objects or dicts)."""
        return cls(
            landmarks=[Landmark.from_any(p) for p in points],
            timestamp_ms=timestamp_ms,
        )


@dataclass
class DetectionResult:
    """
    Result of one detector call.

    Attributes:
        pose_landmarks: Landmarks of the detected person, None if nobody was found.
        frame_width: Width of the source frame (pixels).
        frame_height: Height of the source frame (pixels).
        timestamp_ms: Timestamp of the frame.
    """
    pose_landmarks: Optional[LandmarkSet] = None
    frame_width: int = 0
    frame_height: int = 0
    timestamp_ms: int = 0

    def has_pose(self) -> bool:
        return self.pose_landmarks is not None and len(self.pose_landmarks) > 0


@dataclass
class RawMetricBundle:
    """
    Per-frame metric values and their instantaneous statuses.

    Only the keys measurable from ``view`` are populated.
    """
    view: ViewType
    values: Dict[str, float] = field(default_factory=dict)
    statuses: Dict[str, MetricStatus] = field(default_factory=dict)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def numeric_values(self) -> Dict[str, float]:
        """Values as plain floats, ready to be buffered."""
        return {k: float(v) for k, v in self.values.items()}

    def status_dict(self) -> Dict[str, str]:
        return {k: s.value for k, s in self.statuses.items()}


@dataclass(frozen=True)
class FrameRecord:
    """
    One buffered measurement frame.

    Attributes:
        time: Elapsed milliseconds since the pass started.
        metrics: Smoothed metric values of the frame.
    """
    time: float
    metrics: Dict[str, float]


class PoseLandmarkIndex:
    """
    Indices of the landmarks used by the posture metrics (MediaPipe Pose).
    """
    NOSE = 0
    LEFT_EAR = 7
    RIGHT_EAR = 8
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28

    # Left/right pairs used when a single-sided read is required
    EARS = (LEFT_EAR, RIGHT_EAR)
    SHOULDERS = (LEFT_SHOULDER, RIGHT_SHOULDER)
    HIPS = (LEFT_HIP, RIGHT_HIP)
    KNEES = (LEFT_KNEE, RIGHT_KNEE)
    ANKLES = (LEFT_ANKLE, RIGHT_ANKLE)
