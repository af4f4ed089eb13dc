"""
Cohort Retention Module

Groups customers by join month and reports the share of each cohort that
placed a first order within 1, 2, 3, 6 and 12 months of joining. Horizons
are cumulative, so percentages never decrease as the horizon grows.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence, Tuple

import structlog

from marketplace.analytics.metrics import customer_summary
from marketplace.data.entities import Order, User

logger = structlog.get_logger(__name__)

HORIZONS: Tuple[int, ...] = (1, 2, 3, 6, 12)
MONTH = timedelta(days=30)


def cohort_key(joined_at: datetime) -> str:
    return f"{joined_at.year}-{joined_at.month:02d}"


def months_between(joined_at: datetime, first_order_at: datetime) -> int:
    """Whole 30-day months from joining to the first order."""
    return (first_order_at - joined_at) // MONTH


@dataclass
class CohortRow:
    """Retention of one join-month cohort"""
    cohort: str
    total_users: int
    converted: Dict[int, int] = field(default_factory=dict)

    def retention(self, horizon: int) -> float:
        if self.total_users == 0:
            return 0.0
        return round(self.converted.get(horizon, 0) / self.total_users * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"cohort": self.cohort, "total_users": self.total_users}
        for horizon in sorted(self.converted) or HORIZONS:
            row[f"month{horizon}"] = self.retention(horizon)
        return row


class CohortRetentionAnalyzer:
    """
    Join-month cohort retention.

    Example:
        rows = CohortRetentionAnalyzer().analyze(users, orders)
        table = [row.to_dict() for row in rows]
    """

    def __init__(self, horizons: Sequence[int] = HORIZONS):
        self.horizons = tuple(sorted(horizons))

    @staticmethod
    def first_orders(orders: Sequence[Order]) -> Dict[str, datetime]:
        summary = customer_summary(orders)
        return dict(zip(summary["user_id"].to_list(), summary["first_order_at"].to_list()))

    def analyze(self, users: Sequence[User], orders: Sequence[Order]) -> List[CohortRow]:
        """
        Build one row per join month, sorted by cohort key.

        Args:
            users: All users
            orders: All orders (any status)

        Returns:
            List of CohortRow
        """
        first_orders = self.first_orders(orders)
        rows: Dict[str, CohortRow] = {}
        converted: Dict[str, Dict[int, int]] = defaultdict(lambda: {h: 0 for h in self.horizons})

        for user in users:
            key = cohort_key(user.created_at)
            row = rows.setdefault(key, CohortRow(cohort=key, total_users=0))
            row.total_users += 1

            first_order_at = first_orders.get(user.id)
            if first_order_at is None:
                continue

            months = months_between(user.created_at, first_order_at)
            for horizon in self.horizons:
                if months <= horizon:
                    converted[key][horizon] += 1

        for key, row in rows.items():
            row.converted = dict(converted[key]) if key in converted else {h: 0 for h in self.horizons}

        logger.debug("Cohorts analyzed", cohorts=len(rows), users=len(users))
        return [rows[key] for key in sorted(rows)]
