import math

import pytest

from posture_ai.analysis.core.capture import CaptureConfig, ManualScheduler
from posture_ai.analysis.core.data_types import Landmark, LandmarkSet, PoseLandmarkIndex as P

FRAME_W = 1000
FRAME_H = 1000

# Upright front-facing subject, normalized coordinates
FRONT_POSE = {
    P.NOSE: (0.50, 0.20),
    P.LEFT_EAR: (0.45, 0.22),
    P.RIGHT_EAR: (0.55, 0.22),
    P.LEFT_SHOULDER: (0.40, 0.35),
    P.RIGHT_SHOULDER: (0.60, 0.35),
    P.LEFT_HIP: (0.42, 0.60),
    P.RIGHT_HIP: (0.58, 0.60),
    P.LEFT_KNEE: (0.43, 0.80),
    P.RIGHT_KNEE: (0.57, 0.80),
    P.LEFT_ANKLE: (0.43, 0.95),
    P.RIGHT_ANKLE: (0.57, 0.95),
}

# Subject seen from the left, every joint on one vertical line
SIDE_POSE = {
    P.NOSE: (0.52, 0.20),
    P.LEFT_EAR: (0.50, 0.20),
    P.RIGHT_EAR: (0.50, 0.20),
    P.LEFT_SHOULDER: (0.50, 0.35),
    P.RIGHT_SHOULDER: (0.50, 0.35),
    P.LEFT_HIP: (0.50, 0.60),
    P.RIGHT_HIP: (0.50, 0.60),
    P.LEFT_KNEE: (0.50, 0.80),
    P.RIGHT_KNEE: (0.50, 0.80),
    P.LEFT_ANKLE: (0.50, 0.95),
    P.RIGHT_ANKLE: (0.50, 0.95),
}


def make_landmarks(points=None, visibility=0.9, count=33, overrides=None):
    """
    Build a LandmarkSet.

    Args:
        points: index -> (x, y) for the landmarks that matter.
        visibility: Visibility of every landmark.
        count: Number of landmarks.
        overrides: index -> Landmark replacing the generated one.
    """
    points = points if points is not None else FRONT_POSE
    landmarks = []
    for i in range(count):
        x, y = points.get(i, (0.5, 0.5))
        landmarks.append(Landmark(x=x, y=y, visibility=visibility))
    for i, lm in (overrides or {}).items():
        landmarks[i] = lm
    return LandmarkSet(landmarks=landmarks)


def front_pose_with_cva(angle_deg):
    """Front pose whose left ear sits ``angle_deg`` above the left shoulder line."""
    pose = dict(FRONT_POSE)
    sx, sy = pose[P.LEFT_SHOULDER]
    dx = 0.05
    dy = dx * math.tan(math.radians(angle_deg))
    pose[P.LEFT_EAR] = (sx + dx, sy - dy)
    pose[P.RIGHT_EAR] = (pose[P.RIGHT_EAR][0], sy - dy)
    return pose


@pytest.fixture
def front_landmarks():
    return make_landmarks(FRONT_POSE)


@pytest.fixture
def side_landmarks():
    return make_landmarks(SIDE_POSE)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def capture_config():
    return CaptureConfig(
        measure_duration=15.0,
        countdown_seconds=3,
        readiness_frames_needed=3,
        readiness_confirm_delay=0.6,
        poll_interval=0.1,
    )
