"""
Smoothing Module for Posture AI.

Exponential moving average per metric key. One MetricSmoother belongs to
one capture attempt and must be reset whenever the attempt restarts or
the view switches between front and side.
"""

import math
from typing import Dict, Optional

from .data_types import RawMetricBundle

DEFAULT_ALPHA = 0.3


def ema(previous: Optional[float], current: float, alpha: float) -> float:
    """
    One EMA step.

    Args:
        previous: Last smoothed value, None on cold start.
        current: New raw value.
        alpha: Smoothing factor (0 < alpha <= 1).

    Returns:
        ``current`` on cold start, otherwise previous + alpha * (current - previous).
    """
    if previous is None:
        return current
    return previous + alpha * (current - previous)


class MetricSmoother:
    """
    EMA state for every metric key of the current capture attempt.

    Example:
        >>> smoother = MetricSmoother()
        >>> smoother.smooth("cva", 50.0)
        50.0
        >>> smoother.smooth("cva", 60.0)
        53.0
    """

    def __init__(self, alpha: float = DEFAULT_ALPHA):
        if not 0 < alpha <= 1:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self._alpha = alpha
        self._state: Dict[str, float] = {}

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def values(self) -> Dict[str, float]:
        """Copy of the current smoothed values."""
        return dict(self._state)

    def __contains__(self, key: str) -> bool:
        return key in self._state

    def __len__(self) -> int:
        return len(self._state)

    def smooth(self, key: str, value: float) -> float:
        """Feed one raw value and return the smoothed one."""
        if not math.isfinite(value):
            return value
        smoothed = ema(self._state.get(key), value, self._alpha)
        self._state[key] = smoothed
        return smoothed

    def smooth_bundle(self, bundle: RawMetricBundle) -> RawMetricBundle:
        """
        Smooth every value of a bundle.

        Statuses are left as computed on the raw frame.

        Returns:
            A new RawMetricBundle with smoothed values.
        """
        return RawMetricBundle(
            view=bundle.view,
            values={k: self.smooth(k, v) for k, v in bundle.values.items()},
            statuses=dict(bundle.statuses),
        )

    def reset(self) -> None:
        """Forget every key."""
        self._state.clear()
