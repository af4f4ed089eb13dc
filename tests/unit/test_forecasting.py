"""
Unit Tests - Revenue Forecast
"""
import pytest

from marketplace.analytics.forecasting import ForecastEstimator, ForecastMethod
from marketplace.exceptions import InvalidReportRequest


class TestLinearTrend:
    """Tests for the least-squares projection"""

    def test_linear_history_extends_the_line(self):
        """Test a perfect line is continued"""
        series = ForecastEstimator(horizon=3).estimate([100.0, 200.0, 300.0, 400.0])

        assert series.forecast == pytest.approx([500.0, 600.0, 700.0])
        assert series.metrics["r_squared"] == pytest.approx(1.0)
        assert series.metrics["slope"] == pytest.approx(100.0)
        assert series.synthetic is False

    def test_confidence_bounds(self):
        """Test symmetric bounds around each point"""
        series = ForecastEstimator(horizon=2, confidence_margin=0.1).estimate([100.0, 200.0])

        assert series.confidence_upper == pytest.approx([330.0, 440.0])
        assert series.confidence_lower == pytest.approx([270.0, 360.0])

    def test_declining_history_is_clamped_at_zero(self):
        """Test revenue is never projected negative"""
        series = ForecastEstimator(horizon=3).estimate([300.0, 200.0, 100.0])

        assert series.forecast == [0.0, 0.0, 0.0]

    def test_empty_history(self):
        """Test no history projects zeros"""
        series = ForecastEstimator(horizon=3).estimate([])

        assert series.historical == []
        assert series.forecast == [0.0, 0.0, 0.0]

    def test_flat_history(self):
        """Test a single point or constant series projects flat"""
        assert ForecastEstimator(horizon=2).estimate([250.0]).forecast == [250.0, 250.0]
        assert ForecastEstimator(horizon=2).estimate([80.0, 80.0, 80.0]).forecast == [80.0, 80.0]


class TestGrowthSample:
    """Tests for the sampled growth projection"""

    def test_growth_is_bounded_and_compounding(self):
        """Test each step grows by the same factor in [1.0, 1.10)"""
        series = ForecastEstimator(method="growth_sample", horizon=3, seed=11).estimate([100.0, 1000.0])

        assert 1000.0 <= series.forecast[0] < 1100.0
        assert series.forecast == sorted(series.forecast)
        assert 0.0 <= series.metrics["growth_rate"] < 0.10
        assert series.synthetic is True
        assert series.method == ForecastMethod.GROWTH_SAMPLE

    def test_seeded_runs_are_reproducible(self):
        """Test the same seed yields the same projection"""
        first = ForecastEstimator(method="growth_sample", seed=3).estimate([500.0])
        second = ForecastEstimator(method="growth_sample", seed=3).estimate([500.0])

        assert first.forecast == second.forecast

    def test_repeated_estimates_match(self):
        """Test one seeded estimator returns the same projection every call"""
        estimator = ForecastEstimator(method="growth_sample", seed=3)

        assert estimator.estimate([500.0]).forecast == estimator.estimate([500.0]).forecast


class TestEstimatorConfig:
    """Tests for estimator construction"""

    def test_unknown_method_raises(self):
        """Test an unknown method keyword"""
        with pytest.raises(InvalidReportRequest):
            ForecastEstimator(method="prophet")

    def test_payload_shape(self):
        """Test the serialized forecast"""
        payload = ForecastEstimator(horizon=2).estimate([10.0, 20.0], labels=["2024-07", "2024-08"]).to_dict()

        assert set(payload) == {"historical", "forecast", "confidence", "labels", "method", "synthetic", "metrics"}
        assert set(payload["confidence"]) == {"upper", "lower"}
        assert payload["labels"] == ["2024-07", "2024-08"]
        assert payload["method"] == "linear_trend"
