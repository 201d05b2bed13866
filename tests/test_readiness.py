from posture_ai.helpers.enums import ViewType
from posture_ai.analysis.core.data_types import Landmark, PoseLandmarkIndex as P
from posture_ai.analysis.core.readiness import (
    READINESS_FRONT, READINESS_SIDE, ReadinessCheck,
    check_readiness, is_landmark_visible, readiness_checks_for,
)

from conftest import FRONT_POSE, make_landmarks


def test_check_lists():
    assert [c.label_key for c in READINESS_FRONT] == ["face", "ears", "shoulders", "hips"]
    assert [c.label_key for c in READINESS_SIDE] == ["ears", "shoulders", "hips", "knees"]
    assert readiness_checks_for(ViewType.FRONT) is READINESS_FRONT
    assert readiness_checks_for("side") is READINESS_SIDE


def test_all_visible_passes(front_landmarks):
    assert check_readiness(front_landmarks, READINESS_FRONT) == [True, True, True, True]
    assert check_readiness(front_landmarks, READINESS_SIDE) == [True, True, True, True]


def test_any_of_pair_needs_one_side(front_landmarks):
    landmarks = make_landmarks(FRONT_POSE, overrides={
        P.LEFT_SHOULDER: Landmark(0.4, 0.35, visibility=0.05),
    })
    assert check_readiness(landmarks, READINESS_FRONT)[2] is True


def test_low_visibility_fails():
    landmarks = make_landmarks(FRONT_POSE, overrides={
        P.NOSE: Landmark(0.5, 0.2, visibility=0.05),
        P.LEFT_HIP: Landmark(0.42, 0.6, visibility=0.05),
        P.RIGHT_HIP: Landmark(0.58, 0.6, visibility=0.02),
    })
    assert check_readiness(landmarks, READINESS_FRONT) == [False, True, True, False]


def test_missing_landmarks_fail():
    landmarks = make_landmarks(FRONT_POSE, count=20)
    assert check_readiness(landmarks, READINESS_FRONT) == [True, True, True, False]


def test_unreported_visibility_falls_back_to_in_frame():
    inside = make_landmarks(FRONT_POSE, visibility=None)
    assert is_landmark_visible(inside, P.NOSE, 0.1)

    outside = make_landmarks(FRONT_POSE, visibility=None, overrides={
        P.NOSE: Landmark(0.5, 0.99),
    })
    assert not is_landmark_visible(outside, P.NOSE, 0.1)

    # Near-zero visibility is treated as "not reported"
    edge = make_landmarks(FRONT_POSE, overrides={P.NOSE: Landmark(0.01, 0.5, visibility=0.0)})
    assert not is_landmark_visible(edge, P.NOSE, 0.1)


def test_all_of_check():
    check = ReadinessCheck("shoulders", P.SHOULDERS, any_of=False)
    landmarks = make_landmarks(FRONT_POSE, overrides={
        P.RIGHT_SHOULDER: Landmark(0.6, 0.35, visibility=0.05),
    })
    assert check_readiness(landmarks, [check]) == [False]
