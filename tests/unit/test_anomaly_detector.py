"""
Unit Tests - Anomaly Detection
"""
from datetime import datetime

from marketplace.analytics.anomaly_detector import (
    AnomalyDetector,
    AnomalySeverity,
    AnomalyType,
)

NOW = datetime(2024, 6, 15, 12, 0)


class TestAnomalyDetector:
    """Tests for AnomalyDetector"""

    def test_zscore_spike(self):
        """Test a single outlier is reported once"""
        values = [100.0] * 10 + [1000.0]
        labels = [f"day-{i}" for i in range(len(values))]

        detector = AnomalyDetector(z_threshold=3.0)
        detector.add_metric("revenue", values, labels=labels)
        anomalies = detector.detect(detected_at=NOW)

        assert len(anomalies) == 1
        assert anomalies[0].anomaly_type == AnomalyType.SPIKE
        assert anomalies[0].label == "day-10"
        assert anomalies[0].detected_at == NOW

    def test_constant_series_has_no_anomalies(self):
        """Test zero variance and zero change"""
        detector = AnomalyDetector().add_metric("orders", [5.0] * 8)

        assert detector.detect(detected_at=NOW) == []

    def test_pct_change_drop(self):
        """Test a sudden drop with its severity"""
        detector = AnomalyDetector(pct_change_threshold=50.0).add_metric("revenue", [100.0, 100.0, 20.0])

        anomalies = detector.detect(detected_at=NOW, methods=["pct_change"])

        assert len(anomalies) == 1
        assert anomalies[0].anomaly_type == AnomalyType.DROP
        assert anomalies[0].severity == AnomalySeverity.HIGH
        assert anomalies[0].to_dict()["deviation"] == -80.0

    def test_zero_baseline_is_skipped(self):
        """Test growth from zero is not a percentage anomaly"""
        detector = AnomalyDetector().add_metric("orders", [0.0, 0.0, 4.0])

        assert detector.detect(detected_at=NOW, methods=["pct_change"]) == []

    def test_short_series(self):
        """Test one point cannot be an outlier"""
        detector = AnomalyDetector().add_metric("revenue", [42.0])

        assert detector.detect(detected_at=NOW) == []
