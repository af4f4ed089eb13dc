"""
Anomaly Detection Module

Flags unusual points in per-period metric series (revenue, order volume)
for the dashboard alerts panel.
Implements:
- Z-score outliers against the series baseline
- Period-over-period percentage change spikes and drops
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import structlog

logger = structlog.get_logger(__name__)


class AnomalyType(str, Enum):
    """Types of anomalies detected"""
    SPIKE = "spike"  # Sudden increase
    DROP = "drop"  # Sudden decrease


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


@dataclass
class AnomalyResult:
    """Single anomaly detection result"""
    metric_name: str
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    detected_at: datetime
    value: float
    expected_value: float
    deviation: float  # Z-score or percentage change
    threshold: float
    message: str
    label: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_critical(self) -> bool:
        return self.severity in [AnomalySeverity.CRITICAL, AnomalySeverity.HIGH]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric_name,
            "type": self.anomaly_type.value,
            "severity": self.severity.value,
            "label": self.label,
            "value": round(self.value, 2),
            "expected_value": round(self.expected_value, 2),
            "deviation": round(self.deviation, 2),
            "message": self.message,
        }


def _severity(magnitude: float, threshold: float) -> AnomalySeverity:
    if magnitude > threshold * 2:
        return AnomalySeverity.CRITICAL
    if magnitude > threshold * 1.5:
        return AnomalySeverity.HIGH
    return AnomalySeverity.MEDIUM


class AnomalyDetector:
    """
    Anomaly detector for per-period e-commerce metrics.

    Detection methods:
    - zscore: values far from the series mean
    - pct_change: sudden spikes/drops between consecutive periods

    Example:
        detector = AnomalyDetector(z_threshold=3.0)
        detector.add_metric("revenue", [120.0, 130.0, 900.0], labels=["2024-01", "2024-02", "2024-03"])
        anomalies = detector.detect(detected_at=now)
    """

    def __init__(
        self,
        z_threshold: float = 3.0,
        pct_change_threshold: float = 50.0,
    ):
        self.z_threshold = z_threshold
        self.pct_change_threshold = pct_change_threshold

        self._metrics: Dict[str, np.ndarray] = {}
        self._labels: Dict[str, List[str]] = {}

    @classmethod
    def from_settings(cls, settings) -> "AnomalyDetector":
        return cls(
            z_threshold=settings.anomaly_z_threshold,
            pct_change_threshold=settings.anomaly_pct_change_threshold,
        )

    def add_metric(
        self,
        name: str,
        values: Sequence[float],
        labels: Optional[Sequence[str]] = None,
    ) -> "AnomalyDetector":
        """Add metric series for anomaly detection"""
        self._metrics[name] = np.asarray(values, dtype=float)
        self._labels[name] = list(labels or [])
        return self

    def _label(self, name: str, index: int) -> Optional[str]:
        labels = self._labels.get(name, [])
        return labels[index] if index < len(labels) else None

    def _detect_zscore_anomalies(
        self,
        name: str,
        values: np.ndarray,
        detected_at: datetime,
    ) -> List[AnomalyResult]:
        """Detect anomalies using Z-score method"""
        anomalies = []
        if values.size < 2:
            return anomalies

        mean = float(np.mean(values))
        std = float(np.std(values))
        if std == 0:
            return anomalies

        z_scores = np.abs((values - mean) / std)

        for i, (value, z_score) in enumerate(zip(values, z_scores)):
            if z_score > self.z_threshold:
                anomalies.append(AnomalyResult(
                    metric_name=name,
                    anomaly_type=AnomalyType.SPIKE if value > mean else AnomalyType.DROP,
                    severity=_severity(z_score, self.z_threshold),
                    detected_at=detected_at,
                    value=float(value),
                    expected_value=mean,
                    deviation=float(z_score),
                    threshold=self.z_threshold,
                    message=f"{name} value {value:.2f} is {z_score:.2f} standard deviations from mean {mean:.2f}",
                    label=self._label(name, i),
                    details={"index": i, "method": "zscore"},
                ))

        return anomalies

    def _detect_pct_change_anomalies(
        self,
        name: str,
        values: np.ndarray,
        detected_at: datetime,
    ) -> List[AnomalyResult]:
        """Detect sudden spikes/drops based on percentage change"""
        anomalies = []

        for i in range(1, len(values)):
            prev_value = values[i - 1]
            curr_value = values[i]

            if prev_value == 0:
                continue

            pct_change = ((curr_value - prev_value) / abs(prev_value)) * 100

            if abs(pct_change) > self.pct_change_threshold:
                anomalies.append(AnomalyResult(
                    metric_name=name,
                    anomaly_type=AnomalyType.SPIKE if pct_change > 0 else AnomalyType.DROP,
                    severity=_severity(abs(pct_change), self.pct_change_threshold),
                    detected_at=detected_at,
                    value=float(curr_value),
                    expected_value=float(prev_value),
                    deviation=float(pct_change),
                    threshold=self.pct_change_threshold,
                    message=f"{name} changed by {pct_change:.1f}% from {prev_value:.2f} to {curr_value:.2f}",
                    label=self._label(name, i),
                    details={"index": i, "method": "pct_change"},
                ))

        return anomalies

    def detect(
        self,
        detected_at: datetime,
        methods: Optional[List[str]] = None,
    ) -> List[AnomalyResult]:
        """
        Run anomaly detection on all registered metrics.

        Args:
            detected_at: Timestamp stamped on every result
            methods: Detection methods to use (default: all)
                    Options: "zscore", "pct_change"

        Returns:
            Anomalies, one per metric, type and period
        """
        all_anomalies = []

        if methods is None:
            methods = ["zscore", "pct_change"]

        for name, values in self._metrics.items():
            if "zscore" in methods:
                all_anomalies.extend(self._detect_zscore_anomalies(name, values, detected_at))

            if "pct_change" in methods:
                all_anomalies.extend(self._detect_pct_change_anomalies(name, values, detected_at))

        # Deduplicate by metric, type and period
        unique_anomalies = []
        seen = set()
        for anomaly in all_anomalies:
            key = (anomaly.metric_name, anomaly.anomaly_type, anomaly.details.get("index"))
            if key not in seen:
                seen.add(key)
                unique_anomalies.append(anomaly)

        critical_count = sum(1 for a in unique_anomalies if a.is_critical)
        if critical_count:
            logger.warning(
                "Critical anomalies detected",
                critical=critical_count,
                total_anomalies=len(unique_anomalies),
            )
        else:
            logger.debug("Anomaly detection complete", total_anomalies=len(unique_anomalies))

        return unique_anomalies
