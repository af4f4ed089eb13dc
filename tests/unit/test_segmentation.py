"""
Unit Tests - Customer Segmentation
"""
from datetime import datetime, timedelta

import pytest

from marketplace.analytics.segmentation import SegmentationEngine, SegmentKey
from marketplace.data.entities import User

NOW = datetime(2024, 6, 15, 12, 0)


@pytest.fixture
def engine() -> SegmentationEngine:
    return SegmentationEngine()


def _customers(count: int, joined: datetime):
    return [User(id=f"c{i:02d}", created_at=joined) for i in range(count)]


class TestSpendTiers:
    """Tests for percentile spend tiers"""

    def test_top_twenty_percent_are_high_value(self, engine, order_factory):
        """Test ten linear spends put exactly the top two in high value"""
        users = _customers(10, datetime(2023, 1, 1))
        orders = [
            order_factory(f"o{i}", user.id, NOW - timedelta(days=5), [("p1", 1000.0 - 100 * i, 1)])
            for i, user in enumerate(users)
        ]

        result = engine.segment(users, orders, NOW)

        assert result.spend_tiers[SegmentKey.HIGH_VALUE].members == ["c00", "c01"]
        assert result.spend_tiers[SegmentKey.MEDIUM_VALUE].size == 6
        assert result.spend_tiers[SegmentKey.LOW_VALUE].members == ["c08", "c09"]

    def test_tiers_are_disjoint_and_cover_ranked_customers(self, engine, sample_users, sample_orders):
        """Test every customer with orders lands in exactly one tier"""
        result = engine.segment(sample_users, sample_orders, NOW)

        members = [m for segment in result.spend_tiers.values() for m in segment.members]
        assert len(members) == len(set(members))
        assert set(members) == {"u1", "u2", "u3", "u4"}

    def test_ties_break_by_customer_id(self, engine, sample_users, sample_orders):
        """Test equal spends rank by ascending id"""
        result = engine.segment(sample_users, sample_orders, NOW)

        assert [s.user_id for s in result.ranking] == ["u1", "u2", "u4", "u3"]
        assert result.spend_tiers[SegmentKey.HIGH_VALUE].members == ["u1"]

    @pytest.mark.parametrize("n", [0, 1, 2, 3, 7, 10, 101])
    def test_tier_sizes_sum_to_n(self, engine, n):
        """Test tier sizes never exceed the ranked population"""
        sizes = engine.tier_sizes(n)

        assert sum(sizes.values()) == n
        assert all(size >= 0 for size in sizes.values())

    def test_orders_of_unknown_users_are_ignored(self, engine, order_factory):
        """Test orphan orders never create a ranked customer"""
        users = _customers(1, datetime(2023, 1, 1))
        orders = [
            order_factory("o1", "c00", NOW, [("p1", 10.0, 1)]),
            order_factory("o2", "ghost", NOW, [("p1", 999.0, 1)]),
        ]

        result = engine.segment(users, orders, NOW)

        assert [s.user_id for s in result.ranking] == ["c00"]

    def test_customer_spend_summary(self, engine, sample_users, sample_orders):
        """Test lifetime spend, order count and last order per known customer"""
        spend = engine.customer_spend(sample_users, sample_orders)

        assert sorted(spend) == ["u1", "u2", "u3", "u4"]
        assert spend["u1"].total_spent == 150.0
        assert spend["u1"].order_count == 3
        assert spend["u1"].last_order_at == datetime(2024, 6, 15, 9)
        assert spend["u1"].avg_order_value == 50.0
        assert engine.customer_spend([], sample_orders) == {}


class TestRecencyTags:
    """Tests for new / at risk / dormant tags"""

    def test_sample_recency(self, engine, sample_users, sample_orders):
        """Test recency tags of the sample customers"""
        result = engine.segment(sample_users, sample_orders, NOW)

        assert result.recency[SegmentKey.NEW].members == ["u4"]
        assert result.recency[SegmentKey.AT_RISK].members == ["u3"]
        assert result.recency[SegmentKey.DORMANT].members == []
        assert result.recency[SegmentKey.NO_SEGMENT].members == ["u1", "u2", "u5"]

    def test_customer_without_orders_gets_no_segment(self, engine):
        """Test a 40-day-old account without orders is neither new nor at risk"""
        user = User(id="late", created_at=NOW - timedelta(days=40))

        result = engine.segment([user], [], NOW)

        assert result.membership() == {"late": {"spend_tier": None, "recency": "no_segment"}}

    def test_dormant_after_threshold(self, engine, order_factory):
        """Test a last order older than the dormant threshold"""
        user = User(id="d1", created_at=NOW - timedelta(days=400))
        orders = [order_factory("o1", "d1", NOW - timedelta(days=121), [("p1", 10.0, 1)])]

        result = engine.segment([user], orders, NOW)

        assert result.recency[SegmentKey.DORMANT].members == ["d1"]

    def test_one_tag_per_user(self, engine, sample_users, sample_orders):
        """Test recency tags partition all users"""
        result = engine.segment(sample_users, sample_orders, NOW)

        tagged = [m for segment in result.recency.values() for m in segment.members]
        assert sorted(tagged) == sorted(u.id for u in sample_users)

    def test_segment_payload(self, engine, sample_users, sample_orders):
        """Test the serialized segment list"""
        payload = engine.segment(sample_users, sample_orders, NOW).to_list()

        keys = [segment["key"] for segment in payload]
        assert keys == ["high_value", "medium_value", "low_value", "new", "at_risk", "dormant", "no_segment"]
        high = payload[0]
        assert high["users"] == 1
        assert high["avg_order_value"] == 50.0
        assert high["orders_per_member"] == 3.0
