"""
Core Module for Posture AI Analysis.

Contains landmark geometry, smoothing, readiness gating and the capture
state machine.
"""

from .data_types import (
    Landmark, LandmarkSet, DetectionResult, RawMetricBundle, FrameRecord,
    PoseLandmarkIndex, METRIC_KEYS,
    CVA, HEAD_TILT, SHOULDER_LEVEL, ROUNDED_SHOULDERS, THORACIC_KYPHOSIS,
    LUMBAR_LORDOSIS, PELVIC_TILT, TRUNK_LEAN, KNEE_HYPEREXTENSION,
)
from .kinematics import (
    inclination, angle_between_3, level_angle, midpoint, pick_higher_confidence
)
from .metrics import (
    ThresholdRule, MetricThreshold, METRIC_THRESHOLDS, classify_metric,
    analyze_front, analyze_side, analyze_view, live_statuses
)
from .smoothing import MetricSmoother, ema
from .readiness import (
    ReadinessCheck, READINESS_FRONT, READINESS_SIDE,
    readiness_checks_for, is_landmark_visible, check_readiness
)
from .capture import (
    CapturePhase, CaptureEvent, TRANSITIONS, next_phase, view_of,
    Scheduler, TimerHandle, ManualScheduler, AsyncioScheduler,
    CaptureConfig, CaptureState, CaptureStateMachine
)

__all__ = [
    # Data types
    'Landmark', 'LandmarkSet', 'DetectionResult', 'RawMetricBundle', 'FrameRecord',
    'PoseLandmarkIndex', 'METRIC_KEYS',
    'CVA', 'HEAD_TILT', 'SHOULDER_LEVEL', 'ROUNDED_SHOULDERS', 'THORACIC_KYPHOSIS',
    'LUMBAR_LORDOSIS', 'PELVIC_TILT', 'TRUNK_LEAN', 'KNEE_HYPEREXTENSION',

    # Kinematics
    'inclination', 'angle_between_3', 'level_angle', 'midpoint', 'pick_higher_confidence',

    # Metrics
    'ThresholdRule', 'MetricThreshold', 'METRIC_THRESHOLDS', 'classify_metric',
    'analyze_front', 'analyze_side', 'analyze_view', 'live_statuses',

    # Smoothing
    'MetricSmoother', 'ema',

    # Readiness
    'ReadinessCheck', 'READINESS_FRONT', 'READINESS_SIDE',
    'readiness_checks_for', 'is_landmark_visible', 'check_readiness',

    # Capture
    'CapturePhase', 'CaptureEvent', 'TRANSITIONS', 'next_phase', 'view_of',
    'Scheduler', 'TimerHandle', 'ManualScheduler', 'AsyncioScheduler',
    'CaptureConfig', 'CaptureState', 'CaptureStateMachine',
]
