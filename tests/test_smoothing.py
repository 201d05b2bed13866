import math

import pytest

from posture_ai.helpers.enums import MetricStatus, ViewType
from posture_ai.analysis.core.data_types import RawMetricBundle
from posture_ai.analysis.core.smoothing import MetricSmoother, ema


def test_ema_cold_start_returns_current():
    assert ema(None, 42.0, 0.3) == 42.0


def test_ema_step():
    assert ema(50.0, 60.0, 0.3) == pytest.approx(53.0)


class TestMetricSmoother:
    def test_first_sample_unchanged(self):
        smoother = MetricSmoother()
        assert smoother.smooth("cva", 50.0) == 50.0

    def test_second_sample_blended(self):
        smoother = MetricSmoother(alpha=0.3)
        smoother.smooth("cva", 50.0)
        assert smoother.smooth("cva", 60.0) == pytest.approx(53.0)

    def test_converges_monotonically_to_constant_input(self):
        smoother = MetricSmoother(alpha=0.3)
        smoother.smooth("cva", 0.0)
        values = [smoother.smooth("cva", 60.0) for _ in range(200)]

        assert all(a <= b for a, b in zip(values, values[1:]))
        assert values[0] < values[1] < values[2]
        assert all(v <= 60.0 for v in values)
        assert values[-1] == pytest.approx(60.0)

    def test_converges_from_above(self):
        smoother = MetricSmoother(alpha=0.3)
        smoother.smooth("cva", 90.0)
        values = [smoother.smooth("cva", 60.0) for _ in range(50)]
        assert all(a >= b >= 60.0 for a, b in zip(values, values[1:]))

    def test_constant_input_stays_exact(self):
        smoother = MetricSmoother()
        values = [smoother.smooth("cva", 57.25) for _ in range(20)]
        assert values == [57.25] * 20

    def test_keys_are_independent(self):
        smoother = MetricSmoother()
        smoother.smooth("cva", 50.0)
        assert smoother.smooth("headTilt", 3.0) == 3.0
        assert len(smoother) == 2
        assert "cva" in smoother

    def test_reset_forgets_history(self):
        smoother = MetricSmoother()
        smoother.smooth("cva", 50.0)
        smoother.reset()
        assert len(smoother) == 0
        assert smoother.smooth("cva", 70.0) == 70.0

    def test_non_finite_values_pass_through(self):
        smoother = MetricSmoother()
        smoother.smooth("cva", 50.0)
        assert math.isnan(smoother.smooth("cva", float("nan")))
        assert smoother.values["cva"] == 50.0

    @pytest.mark.parametrize("alpha", [0, -0.1, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            MetricSmoother(alpha=alpha)

    def test_smooth_bundle_keeps_raw_statuses(self):
        smoother = MetricSmoother(alpha=0.5)
        first = RawMetricBundle(ViewType.FRONT, {"cva": 60.0}, {"cva": MetricStatus.GOOD})
        second = RawMetricBundle(ViewType.FRONT, {"cva": 40.0}, {"cva": MetricStatus.BAD})

        smoother.smooth_bundle(first)
        smoothed = smoother.smooth_bundle(second)

        assert smoothed.values["cva"] == pytest.approx(50.0)
        assert smoothed.statuses["cva"] == MetricStatus.BAD
        assert smoothed.view == ViewType.FRONT
        assert second.values["cva"] == 40.0
