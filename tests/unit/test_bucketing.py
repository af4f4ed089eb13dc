"""
Unit Tests - Temporal Bucketing
"""
from datetime import datetime

import pytest

from marketplace.analytics.bucketing import (
    Granularity,
    add_months,
    align,
    bucket_boundaries,
    bucketize,
    label_for,
)
from marketplace.exceptions import InvalidReportRequest


class TestAlignment:
    """Tests for calendar alignment and labels"""

    def test_week_aligns_to_iso_monday(self):
        """Test a Saturday floors to the preceding Monday"""
        assert align(datetime(2024, 6, 15, 12, 34), "week") == datetime(2024, 6, 10)

    def test_quarter_alignment(self):
        """Test mid-quarter timestamps floor to the quarter start"""
        assert align(datetime(2024, 5, 10, 8), Granularity.QUARTER) == datetime(2024, 4, 1)
        assert align(datetime(2024, 12, 31, 23), Granularity.QUARTER) == datetime(2024, 10, 1)

    def test_labels(self):
        """Test label formats per granularity"""
        ts = datetime(2024, 5, 10, 8)
        assert label_for(ts, Granularity.HOUR) == "2024-05-10 08:00"
        assert label_for(ts, Granularity.DAY) == "2024-05-10"
        assert label_for(ts, Granularity.MONTH) == "2024-05"
        assert label_for(ts, Granularity.QUARTER) == "2024-Q2"

    def test_iso_week_label_crosses_year(self):
        """Test the last days of December can belong to week 1"""
        assert label_for(datetime(2024, 12, 30), Granularity.WEEK) == "2025-W01"
        assert label_for(datetime(2024, 6, 10), Granularity.WEEK) == "2024-W24"

    def test_add_months_clamps_day(self):
        """Test month arithmetic clamps to the shorter month"""
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2024, 3, 31), -1) == datetime(2024, 2, 29)
        assert add_months(datetime(2024, 11, 15), 3) == datetime(2025, 2, 15)

    def test_unknown_granularity_raises(self):
        """Test an unknown keyword fails fast"""
        with pytest.raises(InvalidReportRequest) as exc_info:
            Granularity.parse("fortnight")

        assert exc_info.value.parameter == "granularity"


class TestBucketBoundaries:
    """Tests for bucket layout"""

    def test_empty_range(self):
        """Test start >= end yields no buckets"""
        ts = datetime(2024, 1, 1)
        assert bucket_boundaries(ts, ts, "day") == []
        assert bucket_boundaries(datetime(2024, 1, 2), ts, "day") == []

    def test_buckets_are_contiguous(self):
        """Test each bucket ends where the next starts"""
        boundaries = bucket_boundaries(datetime(2024, 1, 1), datetime(2024, 3, 1), "week")

        for (_, end, _), (start, _, _) in zip(boundaries, boundaries[1:]):
            assert end == start
        assert boundaries[0][0] == datetime(2024, 1, 1)
        assert boundaries[-1][1] == datetime(2024, 3, 1)

    def test_partial_buckets_are_clipped(self):
        """Test the first and last buckets are clipped to the range"""
        boundaries = bucket_boundaries(datetime(2024, 1, 1, 12), datetime(2024, 1, 3, 6), "day")

        assert len(boundaries) == 3
        assert boundaries[0] == (datetime(2024, 1, 1, 12), datetime(2024, 1, 2), "2024-01-01")
        assert boundaries[-1] == (datetime(2024, 1, 3), datetime(2024, 1, 3, 6), "2024-01-03")

    def test_monthly_buckets(self):
        """Test calendar months of different lengths"""
        boundaries = bucket_boundaries(datetime(2024, 1, 15), datetime(2024, 4, 1), "month")

        assert [label for _, _, label in boundaries] == ["2024-01", "2024-02", "2024-03"]
        assert boundaries[1][:2] == (datetime(2024, 2, 1), datetime(2024, 3, 1))

    def test_unaligned_buckets_start_at_range_start(self):
        """Test calendar_aligned=False steps from the range start"""
        boundaries = bucket_boundaries(
            datetime(2024, 1, 1, 6), datetime(2024, 1, 3, 6), "day", calendar_aligned=False
        )

        assert [start for start, _, _ in boundaries] == [datetime(2024, 1, 1, 6), datetime(2024, 1, 2, 6)]


class TestBucketize:
    """Tests for record assignment"""

    def test_half_open_membership(self, order_factory):
        """Test records at a boundary go to the later bucket and the range end is excluded"""
        orders = [
            order_factory("a", "u1", datetime(2024, 1, 1, 0, 0), [("p1", 10.0, 1)]),
            order_factory("b", "u1", datetime(2024, 1, 1, 23, 59), [("p1", 10.0, 1)]),
            order_factory("c", "u2", datetime(2024, 1, 2, 0, 0), [("p1", 10.0, 1)]),
            order_factory("d", "u2", datetime(2024, 1, 4, 0, 0), [("p1", 10.0, 1)]),
        ]

        buckets = bucketize(orders, datetime(2024, 1, 1), datetime(2024, 1, 4), "day")

        assert [len(b.records) for b in buckets] == [2, 1, 0]
        assert [o.id for o in buckets[1].records] == ["c"]

    def test_each_record_in_exactly_one_bucket(self, sample_orders):
        """Test in-range records are partitioned without loss or duplication"""
        start, end = datetime(2024, 1, 1), datetime(2024, 7, 1)
        buckets = bucketize(sample_orders, start, end, "week")

        assigned = [o.id for b in buckets for o in b.records]
        assert sorted(assigned) == sorted(o.id for o in sample_orders)
        for bucket in buckets:
            assert all(bucket.contains(o.created_at) for o in bucket.records)

    def test_mapping_records_with_field_name(self):
        """Test dict records with a named timestamp field"""
        records = [
            {"timestamp": datetime(2024, 3, 5), "value": 1},
            {"timestamp": datetime(2024, 3, 20), "value": 2},
            {"timestamp": None, "value": 3},
        ]

        buckets = bucketize(records, datetime(2024, 3, 1), datetime(2024, 4, 1), "month", timestamp="timestamp")

        assert len(buckets) == 1
        assert len(buckets[0].records) == 2

    def test_bucket_to_dict(self):
        """Test bucket serialization"""
        buckets = bucketize([], datetime(2024, 1, 1), datetime(2024, 1, 1, 2), "hour")

        assert buckets[0].to_dict() == {
            "label": "2024-01-01 00:00",
            "start": "2024-01-01T00:00:00",
            "end": "2024-01-01T01:00:00",
        }
