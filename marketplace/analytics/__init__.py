"""
Analytics Module

Pure computations over a users/products/orders snapshot:
- Temporal bucketing and declarative aggregation
- Spend and recency segmentation
- Cohort retention
- Revenue forecasting
- Report metrics and revenue anomaly alerts
"""
from .aggregation import Aggregator, Reducer, ReducerKind
from .anomaly_detector import AnomalyDetector, AnomalyResult
from .bucketing import Bucket, Granularity, bucket_boundaries, bucketize
from .cohorts import CohortRetentionAnalyzer, CohortRow
from .forecasting import ForecastEstimator, ForecastMethod, ForecastSeries
from .segmentation import Segment, SegmentationEngine, SegmentationResult, SegmentKey

__all__ = [
    "Aggregator",
    "Reducer",
    "ReducerKind",
    "AnomalyDetector",
    "AnomalyResult",
    "Bucket",
    "Granularity",
    "bucket_boundaries",
    "bucketize",
    "CohortRetentionAnalyzer",
    "CohortRow",
    "ForecastEstimator",
    "ForecastMethod",
    "ForecastSeries",
    "Segment",
    "SegmentationEngine",
    "SegmentationResult",
    "SegmentKey",
]
