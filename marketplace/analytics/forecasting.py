"""
Revenue Forecast Module

Projects the next few periods of revenue from a per-period history.
Methods:
- linear_trend: least-squares line over the history (scipy), clamped at zero
- growth_sample: compounds the last value by one sampled growth factor in
  [1.0, 1.10); demo-grade only and flagged as synthetic

Both produce the same shape: historical, forecast and symmetric bounds.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import structlog
from scipy import stats

from marketplace.exceptions import InvalidReportRequest

logger = structlog.get_logger(__name__)


class ForecastMethod(str, Enum):
    """Projection methods"""
    LINEAR_TREND = "linear_trend"
    GROWTH_SAMPLE = "growth_sample"


@dataclass
class ForecastSeries:
    """History, projection and confidence bounds"""
    historical: List[float]
    forecast: List[float]
    confidence_upper: List[float]
    confidence_lower: List[float]
    method: ForecastMethod
    synthetic: bool = False
    labels: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "historical": self.historical,
            "forecast": self.forecast,
            "confidence": {
                "upper": self.confidence_upper,
                "lower": self.confidence_lower,
            },
            "labels": self.labels,
            "method": self.method.value,
            "synthetic": self.synthetic,
            "metrics": self.metrics,
        }


class ForecastEstimator:
    """
    Near-term revenue projection.

    Example:
        estimator = ForecastEstimator(method="linear_trend", horizon=3)
        series = estimator.estimate([1200.0, 1350.5, 1410.0, 1600.0])
    """

    def __init__(
        self,
        method: Union[str, ForecastMethod] = ForecastMethod.LINEAR_TREND,
        horizon: int = 3,
        confidence_margin: float = 0.10,
        seed: Optional[int] = None,
    ):
        try:
            self.method = ForecastMethod(method)
        except ValueError:
            raise InvalidReportRequest.unknown_keyword(
                "forecast method", method, [m.value for m in ForecastMethod]
            ) from None
        self.horizon = horizon
        self.confidence_margin = confidence_margin
        self.seed = seed

    @classmethod
    def from_settings(cls, settings) -> "ForecastEstimator":
        return cls(
            method=settings.forecast_method,
            horizon=settings.forecast_horizon,
            confidence_margin=settings.forecast_confidence_margin,
            seed=settings.forecast_seed,
        )

    def estimate(self, history: Sequence[float], labels: Optional[Sequence[str]] = None) -> ForecastSeries:
        """
        Project ``horizon`` periods after ``history`` (most recent last).

        Args:
            history: Per-period revenue totals
            labels: Optional labels of the projected periods

        Returns:
            ForecastSeries
        """
        historical = np.asarray(list(history), dtype=float)

        if self.method == ForecastMethod.GROWTH_SAMPLE:
            forecast, metrics = self._growth_sample(historical)
        else:
            forecast, metrics = self._linear_trend(historical)

        forecast = [round(float(v), 2) for v in forecast]
        series = ForecastSeries(
            historical=[round(float(v), 2) for v in historical],
            forecast=forecast,
            confidence_upper=[round(v * (1 + self.confidence_margin), 2) for v in forecast],
            confidence_lower=[round(v * (1 - self.confidence_margin), 2) for v in forecast],
            method=self.method,
            synthetic=self.method == ForecastMethod.GROWTH_SAMPLE,
            labels=list(labels or []),
            metrics=metrics,
        )

        logger.debug(
            "Forecast estimated",
            method=self.method.value,
            history_points=len(historical),
            horizon=self.horizon,
        )
        return series

    def _growth_sample(self, historical: np.ndarray):
        last = float(historical[-1]) if historical.size else 0.0
        rng = np.random.default_rng(self.seed)
        growth = float(rng.uniform(1.0, 1.10))
        steps = np.arange(1, self.horizon + 1)
        return last * growth ** steps, {"growth_rate": round(growth - 1, 4)}

    def _linear_trend(self, historical: np.ndarray):
        if historical.size == 0:
            return np.zeros(self.horizon), {"r_squared": 0.0, "mape": 0.0, "next_period_growth": 0.0}

        if historical.size < 2 or np.all(historical == historical[0]):
            last = float(historical[-1])
            return np.full(self.horizon, last), {"r_squared": 0.0, "mape": 0.0, "next_period_growth": 0.0}

        x = np.arange(historical.size, dtype=float)
        fit = stats.linregress(x, historical)

        future_x = np.arange(historical.size, historical.size + self.horizon, dtype=float)
        forecast = np.clip(fit.intercept + fit.slope * future_x, 0.0, None)

        fitted = fit.intercept + fit.slope * x
        nonzero = historical != 0
        mape = (
            float(np.mean(np.abs((historical[nonzero] - fitted[nonzero]) / historical[nonzero])) * 100)
            if nonzero.any() else 0.0
        )

        last = float(historical[-1])
        next_growth = (float(forecast[0]) - last) / last * 100 if last else 0.0

        metrics = {
            "slope": round(float(fit.slope), 4),
            "r_squared": round(float(fit.rvalue ** 2), 4),
            "mape": round(mape, 2),
            "next_period_growth": round(next_growth, 2),
        }
        return forecast, metrics
