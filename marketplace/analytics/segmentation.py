"""
Customer Segmentation Module

Classifies customers two independent ways:
- Spend tiers: rank by lifetime spend, split into high / medium / low value
- Recency tags: new, at risk, dormant (or no segment) relative to ``now``

A customer belongs to at most one spend tier and at most one recency tag,
and may hold one of each at the same time.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import polars as pl
import structlog

from marketplace.analytics.metrics import customer_summary
from marketplace.config.settings import AnalyticsSettings
from marketplace.data.entities import Order, User

logger = structlog.get_logger(__name__)


class SegmentKey(str, Enum):
    """Segment identifiers"""
    HIGH_VALUE = "high_value"
    MEDIUM_VALUE = "medium_value"
    LOW_VALUE = "low_value"
    NEW = "new"
    AT_RISK = "at_risk"
    DORMANT = "dormant"
    NO_SEGMENT = "no_segment"


SPEND_TIERS = (SegmentKey.HIGH_VALUE, SegmentKey.MEDIUM_VALUE, SegmentKey.LOW_VALUE)
RECENCY_TAGS = (SegmentKey.NEW, SegmentKey.AT_RISK, SegmentKey.DORMANT, SegmentKey.NO_SEGMENT)


@dataclass
class CustomerSpend:
    """Lifetime order summary of one customer"""
    user_id: str
    total_spent: float
    order_count: int
    last_order_at: datetime

    @property
    def avg_order_value(self) -> float:
        return self.total_spent / self.order_count if self.order_count else 0.0


@dataclass
class Segment:
    """Named customer group and the rule that formed it"""
    key: SegmentKey
    name: str
    criteria: str
    members: List[str] = field(default_factory=list)
    avg_order_value: float = 0.0
    orders_per_member: float = 0.0

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key.value,
            "name": self.name,
            "criteria": self.criteria,
            "users": self.size,
            "user_ids": list(self.members),
            "avg_order_value": round(self.avg_order_value, 2),
            "orders_per_member": round(self.orders_per_member, 2),
        }


@dataclass
class SegmentationResult:
    """Spend tiers, recency tags and the ranking they came from"""
    generated_at: datetime
    spend_tiers: Dict[SegmentKey, Segment]
    recency: Dict[SegmentKey, Segment]
    ranking: List[CustomerSpend] = field(default_factory=list)

    @property
    def segments(self) -> List[Segment]:
        return list(self.spend_tiers.values()) + list(self.recency.values())

    def membership(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Spend tier and recency tag of every segmented user."""
        index: Dict[str, Dict[str, Optional[str]]] = {}
        for key, segment in self.spend_tiers.items():
            for user_id in segment.members:
                index.setdefault(user_id, {"spend_tier": None, "recency": None})["spend_tier"] = key.value
        for key, segment in self.recency.items():
            for user_id in segment.members:
                index.setdefault(user_id, {"spend_tier": None, "recency": None})["recency"] = key.value
        return index

    def to_list(self) -> List[Dict[str, Any]]:
        return [segment.to_dict() for segment in self.segments]


class SegmentationEngine:
    """
    Spend-percentile and order-recency segmentation.

    Ranking is by descending lifetime spend with ties broken by ascending
    customer id, so the same snapshot always yields the same tiers.

    Example:
        engine = SegmentationEngine.from_settings(settings.analytics)
        result = engine.segment(users, orders, now=utc_now())
        high_value = result.spend_tiers[SegmentKey.HIGH_VALUE].members
    """

    def __init__(
        self,
        high_value_share: float = 0.2,
        medium_value_share: float = 0.6,
        new_customer_days: int = 30,
        at_risk_days: int = 60,
        dormant_days: int = 120,
    ):
        self.high_value_share = high_value_share
        self.medium_value_share = medium_value_share
        self.new_customer_days = new_customer_days
        self.at_risk_days = at_risk_days
        self.dormant_days = dormant_days

    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> "SegmentationEngine":
        return cls(
            high_value_share=settings.high_value_share,
            medium_value_share=settings.medium_value_share,
            new_customer_days=settings.new_customer_days,
            at_risk_days=settings.at_risk_days,
            dormant_days=settings.dormant_days,
        )

    @staticmethod
    def customer_spend(users: Sequence[User], orders: Sequence[Order]) -> Dict[str, CustomerSpend]:
        """Lifetime spend over every order (all statuses) of each known user."""
        known = pl.Series([user.id for user in users], dtype=pl.Utf8)
        summary = customer_summary(orders).filter(pl.col("user_id").is_in(known))
        return {
            row["user_id"]: CustomerSpend(
                user_id=row["user_id"],
                total_spent=row["total_spent"],
                order_count=row["order_count"],
                last_order_at=row["last_order_at"],
            )
            for row in summary.iter_rows(named=True)
        }

    @staticmethod
    def rank(spend: Dict[str, CustomerSpend]) -> List[CustomerSpend]:
        return sorted(spend.values(), key=lambda s: (-s.total_spent, s.user_id))

    def tier_sizes(self, n: int) -> Dict[SegmentKey, int]:
        """Members per spend tier for ``n`` ranked customers."""
        high = min(n, math.ceil(round(n * self.high_value_share, 9)))
        medium = min(n - high, math.ceil(round(n * self.medium_value_share, 9)))
        return {
            SegmentKey.HIGH_VALUE: high,
            SegmentKey.MEDIUM_VALUE: medium,
            SegmentKey.LOW_VALUE: n - high - medium,
        }

    def recency_tag(self, user: User, summary: Optional[CustomerSpend], now: datetime) -> SegmentKey:
        if user.created_at >= now - timedelta(days=self.new_customer_days):
            return SegmentKey.NEW
        if summary is not None:
            age = now - summary.last_order_at
            if age > timedelta(days=self.dormant_days):
                return SegmentKey.DORMANT
            if age > timedelta(days=self.at_risk_days):
                return SegmentKey.AT_RISK
        return SegmentKey.NO_SEGMENT

    def _empty_segments(self) -> Dict[SegmentKey, Segment]:
        high_pct = round(self.high_value_share * 100)
        medium_pct = round(self.medium_value_share * 100)
        criteria = {
            SegmentKey.HIGH_VALUE: ("High Value", f"Top {high_pct}% by spending"),
            SegmentKey.MEDIUM_VALUE: ("Medium Value", f"Next {medium_pct}% by spending"),
            SegmentKey.LOW_VALUE: ("Low Value", f"Bottom {max(0, 100 - high_pct - medium_pct)}% by spending"),
            SegmentKey.NEW: ("New", f"Joined in last {self.new_customer_days} days"),
            SegmentKey.AT_RISK: (
                "At Risk",
                f"Last purchase {self.at_risk_days}-{self.dormant_days} days ago",
            ),
            SegmentKey.DORMANT: ("Dormant", f"No purchase in {self.dormant_days}+ days"),
            SegmentKey.NO_SEGMENT: ("No Segment", "Matches no recency rule"),
        }
        return {key: Segment(key=key, name=name, criteria=text) for key, (name, text) in criteria.items()}

    @staticmethod
    def _fill_averages(segment: Segment, spend: Dict[str, CustomerSpend]) -> None:
        summaries = [spend[m] for m in segment.members if m in spend]
        orders = sum(s.order_count for s in summaries)
        revenue = sum(s.total_spent for s in summaries)
        segment.avg_order_value = revenue / orders if orders else 0.0
        segment.orders_per_member = orders / segment.size if segment.size else 0.0

    def segment(
        self,
        users: Sequence[User],
        orders: Sequence[Order],
        now: datetime,
    ) -> SegmentationResult:
        """
        Segment every user.

        Args:
            users: All users
            orders: All orders; orders of unknown users are ignored
            now: Reference instant for recency rules

        Returns:
            SegmentationResult with disjoint spend tiers over customers with
            at least one order and one recency tag per user
        """
        spend = self.customer_spend(users, orders)
        ranking = self.rank(spend)
        segments = self._empty_segments()

        offset = 0
        for key, size in self.tier_sizes(len(ranking)).items():
            segments[key].members = [s.user_id for s in ranking[offset:offset + size]]
            offset += size

        for user in sorted(users, key=lambda u: u.id):
            tag = self.recency_tag(user, spend.get(user.id), now)
            segments[tag].members.append(user.id)

        for segment in segments.values():
            self._fill_averages(segment, spend)

        logger.info(
            "Customers segmented",
            ranked=len(ranking),
            **{key.value: segments[key].size for key in SPEND_TIERS + RECENCY_TAGS},
        )

        return SegmentationResult(
            generated_at=now,
            spend_tiers={key: segments[key] for key in SPEND_TIERS},
            recency={key: segments[key] for key in RECENCY_TAGS},
            ranking=ranking,
        )
