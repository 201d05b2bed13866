"""
Kinematics Module for Posture AI.

Planar angle helpers used by the metric extractor. Every helper returns
a finite number: degenerate geometry yields 0.0 instead of NaN.
"""

import math
from typing import Optional, Tuple
import numpy as np

from .data_types import Landmark

Point2D = Tuple[float, float]


def inclination(dy: float, dx: float) -> float:
    """
    Inclination of a vector in degrees (atan2 of vertical over horizontal delta).

    Args:
        dy: Vertical delta (pixels).
        dx: Horizontal delta (pixels).

    Returns:
        Angle in degrees in [-180, 180].
    """
    return math.degrees(math.atan2(dy, dx))


def angle_between_3(a: Point2D, b: Point2D, c: Point2D) -> float:
    """
    Calculate angle at b formed by a-b-c.

    Args:
        a: First point
        b: Middle point (angle vertex)
        c: Third point

    Returns:
        Angle in degrees in [0, 180]; 0.0 if either arm has zero length.
    """
    ba = np.array([a[0] - b[0], a[1] - b[1]], dtype=np.float64)
    bc = np.array([c[0] - b[0], c[1] - b[1]], dtype=np.float64)

    mag_ba = np.linalg.norm(ba)
    mag_bc = np.linalg.norm(bc)
    if mag_ba == 0 or mag_bc == 0:
        return 0.0

    cos_angle = np.dot(ba, bc) / (mag_ba * mag_bc)
    cos_angle = np.clip(cos_angle, -1.0, 1.0)  # Handle floating point errors

    return float(np.degrees(np.arccos(cos_angle)))


def level_angle(left: Point2D, right: Point2D) -> float:
    """
    Unsigned tilt of the line joining a left/right landmark pair.

    Returns 0.0 when both points share the same X coordinate.
    """
    width = abs(right[0] - left[0])
    if width <= 0:
        return 0.0
    return inclination(abs(left[1] - right[1]), width)


def midpoint(p1: Point2D, p2: Point2D) -> Point2D:
    return ((p1[0] + p2[0]) / 2, (p1[1] + p2[1]) / 2)


def pick_higher_confidence(
    left: Optional[Landmark],
    right: Optional[Landmark]
) -> bool:
    """
    Choose the side of a bilateral landmark pair with the higher visibility.

    Missing visibility counts as 0. Ties go to the left side.

    Args:
        left: Left-side landmark (may be None).
        right: Right-side landmark (may be None).

    Returns:
        True if the left side should be used.
    """
    left_vis = (left.visibility or 0.0) if left is not None else -1.0
    right_vis = (right.visibility or 0.0) if right is not None else -1.0
    return left_vis >= right_vis
