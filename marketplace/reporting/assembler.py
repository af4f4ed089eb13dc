"""
Report Assembler

Composes bucketing, aggregation, segmentation, cohort retention, forecasting
and metrics into the admin console reports:

- Dashboard: KPIs, trend, regional revenue, correlation, segmentation,
  forecast, top products, recent activity and alerts
- Order analytics: grouped time series, distributions, hourly histogram
- Customer analytics: lifetime value, churn, segmentation, cohort retention
- Real-time stats and single-product analytics
- JSON / CSV exports

Every report reads one users/products/orders snapshot from the injected
store and recomputes everything from it; nothing is cached.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from marketplace.analytics import metrics
from marketplace.analytics.aggregation import Aggregator
from marketplace.analytics.anomaly_detector import AnomalyDetector
from marketplace.analytics.bucketing import Granularity, align, bucketize, label_for, shift
from marketplace.analytics.cohorts import CohortRetentionAnalyzer
from marketplace.analytics.forecasting import ForecastEstimator, ForecastSeries
from marketplace.analytics.segmentation import SegmentationEngine
from marketplace.config.settings import AnalyticsSettings, get_settings
from marketplace.data.entities import Order, OrderStatus, Product, User
from marketplace.data.stores import DataStore
from marketplace.exceptions import ProductNotFound
from marketplace.reporting import exporters
from marketplace.reporting.periods import (
    TREND_GRANULARITY,
    DateRange,
    ExportFormat,
    ReportPeriod,
    ReportType,
    granularity_for_span,
    parse_date,
    parse_keyword,
    resolve_range,
)

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

ORDER_REDUCERS = [
    "count as orders",
    "sum(total) as revenue",
    "average(total) as avg_order_value",
    "average(item_count) as items_per_order",
    "uniqueCount(user_id) as unique_customers",
]


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class Snapshot:
    """Collections read once per report request"""
    users: List[User]
    products: List[Product]
    orders: List[Order]


def _rounded(values: Dict[str, Any], digits: int = 2) -> Dict[str, Any]:
    return {k: round(v, digits) if isinstance(v, float) else v for k, v in values.items()}


class ReportAssembler:
    """
    Builds report payloads from a data store.

    Request parameters are validated before the store is read, so a bad
    keyword or date never costs a snapshot fetch.

    Example:
        assembler = ReportAssembler(JsonFileStore("data/store"))
        report = await assembler.get_dashboard_report(period="quarter")
        content_type, body = await assembler.export_report("orders", "csv")
    """

    def __init__(
        self,
        store: DataStore,
        settings: Optional[AnalyticsSettings] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.settings = settings or get_settings().analytics
        self.clock = clock

        self.segmentation = SegmentationEngine.from_settings(self.settings)
        self.cohorts = CohortRetentionAnalyzer()
        self.forecaster = ForecastEstimator.from_settings(self.settings)
        self.order_aggregator = Aggregator(ORDER_REDUCERS)
        self.revenue_aggregator = Aggregator(["sum(total) as revenue"])
        self.count_aggregator = Aggregator(["count"])

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    async def fetch_snapshot(self) -> Snapshot:
        """Read the three collections concurrently."""
        start = time.perf_counter()
        users, products, orders = await asyncio.gather(
            self.store.list_users(),
            self.store.list_products(),
            self.store.list_orders(),
        )
        logger.debug(
            "Snapshot fetched",
            users=len(users),
            products=len(products),
            orders=len(orders),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return Snapshot(users=users, products=products, orders=orders)

    def _revenue(self, orders: List[Order]) -> List[Order]:
        return metrics.revenue_orders(orders, self.settings.revenue_statuses)

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    async def get_dashboard_report(
        self,
        period: Optional[str] = None,
        start_date=None,
        end_date=None,
    ) -> Dict[str, Any]:
        """
        Dashboard report for a period keyword or an explicit range.

        Args:
            period: today, week, month, quarter or year (default from settings)
            start_date: ISO date/datetime overriding the period start
            end_date: ISO date/datetime overriding the period end; a bare
                date includes that whole day

        Returns:
            Report mapping
        """
        now = self.clock()
        keyword = parse_keyword(ReportPeriod, period or self.settings.default_period, "period")
        window = resolve_range(now, keyword, start_date, end_date)
        explicit = bool(start_date or end_date)
        granularity = granularity_for_span(window) if explicit else TREND_GRANULARITY[keyword]

        snapshot = await self.fetch_snapshot()
        report = self.build_dashboard(snapshot, window, granularity, now)
        report["meta"]["period"] = keyword.value

        logger.info(
            "Dashboard report generated",
            period=keyword.value,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
            total_revenue=report["kpis"]["total_revenue"],
        )
        return report

    def build_dashboard(
        self,
        snapshot: Snapshot,
        window: DateRange,
        granularity: Granularity,
        now: datetime,
    ) -> Dict[str, Any]:
        users, products, orders = snapshot.users, snapshot.products, snapshot.orders
        in_range = metrics.orders_in_range(orders, window.start, window.end)
        revenue_in_range = self._revenue(in_range)

        kpis = {
            "total_revenue": round(metrics.total_revenue(orders, window.start, window.end, self.settings.revenue_statuses), 2),
            "total_orders": len(in_range),
            "avg_order_value": round(
                metrics.average_order_value(orders, window.start, window.end, self.settings.revenue_statuses), 2
            ),
            "active_customers": metrics.active_customers(users, window.start, window.end),
            "new_customers": metrics.new_customers(users, window.start, window.end),
            "returning_rate": metrics.returning_rate(orders, window.start, window.end),
        }

        trend = self.build_trend(snapshot, window, granularity)
        previous = window.previous()

        return {
            "kpis": kpis,
            "trend": trend,
            "regional": metrics.regional_revenue(revenue_in_range, users),
            "correlation": metrics.correlation_matrix(
                [o for o in orders if o.created_at < window.end], now
            ),
            "segmentation": self.segmentation.segment(users, orders, now).to_list(),
            "forecast": self.build_forecast(orders, now).to_dict(),
            "top_products": metrics.top_products(
                in_range,
                products,
                limit=self.settings.top_products_limit,
                previous_orders=metrics.orders_in_range(orders, previous.start, previous.end),
            ),
            "recent_activity": metrics.recent_activity(orders, users, self.settings.recent_activity_limit),
            "alerts": self.build_alerts(snapshot, trend, now),
            "meta": {
                "start_date": window.start.isoformat(),
                "end_date": window.end.isoformat(),
                "granularity": granularity.value,
                "generated_at": now.isoformat(),
            },
        }

    def build_trend(self, snapshot: Snapshot, window: DateRange, granularity: Granularity) -> Dict[str, Any]:
        """Revenue, order and new-customer series over the same buckets."""
        def layout(records):
            return bucketize(records, window.start, window.end, granularity)

        revenue = self.revenue_aggregator.aggregate(layout(self._revenue(snapshot.orders)))
        orders = self.count_aggregator.aggregate(layout(snapshot.orders))
        signups = self.count_aggregator.aggregate(layout(snapshot.users))

        return {
            "granularity": granularity.value,
            "labels": [b.label for b in revenue],
            "datasets": {
                "revenue": [round(b.aggregates["revenue"], 2) for b in revenue],
                "orders": [b.aggregates["count"] for b in orders],
                "new_customers": [b.aggregates["count"] for b in signups],
            },
        }

    def build_forecast(self, orders: List[Order], now: datetime) -> ForecastSeries:
        """
        Project revenue from the last complete periods.

        History covers ``forecast_history_periods`` calendar periods ending
        at the start of the current one; the forecast starts with the
        current (incomplete) period.
        """
        granularity = Granularity.parse(self.settings.forecast_granularity, "forecast_granularity")
        current = align(now, granularity)
        history_start = shift(current, granularity, -self.settings.forecast_history_periods)

        history = self.revenue_aggregator.aggregate(
            bucketize(self._revenue(orders), history_start, current, granularity)
        )
        labels = [
            label_for(shift(current, granularity, step), granularity)
            for step in range(self.settings.forecast_horizon)
        ]
        return self.forecaster.estimate([b.aggregates["revenue"] for b in history], labels=labels)

    def build_alerts(self, snapshot: Snapshot, trend: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        low_stock = metrics.low_stock_products(snapshot.products, self.settings.low_stock_threshold)

        detector = AnomalyDetector.from_settings(self.settings)
        detector.add_metric("revenue", trend["datasets"]["revenue"], labels=trend["labels"])
        detector.add_metric("orders", trend["datasets"]["orders"], labels=trend["labels"])
        anomalies = detector.detect(detected_at=now)

        return {
            "low_stock": len(low_stock),
            "out_of_stock": metrics.out_of_stock_count(snapshot.products),
            "pending_orders": sum(1 for o in snapshot.orders if o.status == OrderStatus.PENDING),
            "low_stock_products": low_stock,
            "anomalies": [a.to_dict() for a in anomalies],
        }

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_order_analytics(
        self,
        start_date=None,
        end_date=None,
        group_by: str = Granularity.DAY.value,
    ) -> Dict[str, Any]:
        """
        Order analytics grouped by time bucket.

        Args:
            start_date: Range start (default: ``order_analytics_days`` ago)
            end_date: Range end (default: now); a bare date includes that day
            group_by: hour, day, week, month or quarter

        Returns:
            Report mapping with grouped_data, metrics, orders and meta
        """
        now = self.clock()
        granularity = Granularity.parse(group_by or Granularity.DAY.value, "group_by")
        start = parse_date(start_date, "start_date") or now - timedelta(days=self.settings.order_analytics_days)
        end = parse_date(end_date, "end_date", end_of_range=True) or now

        snapshot = await self.fetch_snapshot()
        report = self.build_order_analytics(snapshot, DateRange(start, end), granularity)

        logger.info(
            "Order analytics generated",
            group_by=granularity.value,
            start=start.isoformat(),
            end=end.isoformat(),
            total_orders=report["meta"]["total_orders"],
        )
        return report

    def build_order_analytics(self, snapshot: Snapshot, window: DateRange, granularity: Granularity) -> Dict[str, Any]:
        in_range = metrics.orders_in_range(snapshot.orders, window.start, window.end)
        buckets = self.order_aggregator.aggregate(bucketize(in_range, window.start, window.end, granularity))
        totals = self.order_aggregator.aggregate_totals(in_range)

        return {
            "grouped_data": [_rounded(b.to_dict()) for b in buckets],
            "metrics": {
                "total_orders": totals["orders"],
                "total_revenue": round(totals["revenue"], 2),
                "avg_order_value": round(totals["avg_order_value"], 2),
                "unique_customers": totals["unique_customers"],
                "order_status_distribution": metrics.status_distribution(in_range),
                "top_products": metrics.top_products(in_range, snapshot.products, self.settings.top_products_limit),
                "sales_by_hour": metrics.sales_by_hour(in_range),
                "payment_method_distribution": metrics.payment_method_distribution(in_range),
                "shipping_method_distribution": metrics.shipping_method_distribution(in_range),
            },
            "orders": [
                o.model_dump(mode="json", exclude_none=True)
                for o in in_range[:self.settings.order_sample_limit]
            ],
            "meta": {
                "start_date": window.start.isoformat(),
                "end_date": window.end.isoformat(),
                "group_by": granularity.value,
                "total_orders": len(in_range),
            },
        }

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def get_customer_analytics(self) -> Dict[str, Any]:
        """Lifetime value, churn, segmentation, demographics and retention."""
        now = self.clock()
        snapshot = await self.fetch_snapshot()
        report = self.build_customer_analytics(snapshot, now)
        logger.info(
            "Customer analytics generated",
            total_customers=report["total_customers"],
            churn_rate=report["churn_rate"],
        )
        return report

    def build_customer_analytics(self, snapshot: Snapshot, now: datetime) -> Dict[str, Any]:
        users, orders = snapshot.users, snapshot.orders
        recent = DateRange(now - timedelta(days=self.settings.new_customer_days), now)

        return {
            "total_customers": len(users),
            "active_customers": metrics.active_customers(users, recent.start, recent.end),
            "new_customers": metrics.new_customers(users, recent.start, recent.end),
            "lifetime_value": metrics.lifetime_value(orders),
            "churn_rate": metrics.churn_rate(
                orders,
                now,
                window_days=self.settings.churn_window_days,
                lookback_days=self.settings.churn_lookback_days,
            ),
            "segmentation": self.segmentation.segment(users, orders, now).to_list(),
            "demographics": {
                "location": metrics.location_distribution(users),
                "join_date_distribution": metrics.join_date_distribution(users),
            },
            "retention": [row.to_dict() for row in self.cohorts.analyze(users, orders)],
            "meta": {"generated_at": now.isoformat()},
        }

    # =========================================================================
    # REAL-TIME
    # =========================================================================

    async def get_realtime_stats(self) -> Dict[str, Any]:
        """Today's activity against yesterday."""
        now = self.clock()
        snapshot = await self.fetch_snapshot()
        return self.build_realtime_stats(snapshot, now)

    def build_realtime_stats(self, snapshot: Snapshot, now: datetime) -> Dict[str, Any]:
        today_start = align(now, Granularity.DAY)
        today = metrics.orders_in_range(snapshot.orders, today_start, today_start + timedelta(days=1))
        yesterday = metrics.orders_in_range(snapshot.orders, today_start - timedelta(days=1), today_start)

        today_revenue = sum(o.total for o in today)
        yesterday_revenue = sum(o.total for o in yesterday)
        last_hour = now - timedelta(hours=1)

        return {
            "live_orders": len(today),
            "today_revenue": round(today_revenue, 2),
            "revenue_growth": metrics.percentage(today_revenue - yesterday_revenue, yesterday_revenue),
            "active_users": sum(1 for u in snapshot.users if u.last_login is not None and u.last_login >= last_hour),
            "low_stock_products": len(metrics.low_stock_products(snapshot.products, self.settings.low_stock_threshold)),
            "top_selling_product": metrics.top_selling_product(today, snapshot.products),
            "recent_activity": metrics.recent_activity(today, snapshot.users, limit=5),
            "meta": {"updated_at": now.isoformat(), "period": ReportPeriod.TODAY.value},
        }

    # =========================================================================
    # PRODUCT
    # =========================================================================

    async def get_product_analytics(self, product_id: str) -> Dict[str, Any]:
        """Sales, customers and inventory of one product."""
        snapshot = await self.fetch_snapshot()
        return self.build_product_analytics(snapshot, product_id)

    def build_product_analytics(self, snapshot: Snapshot, product_id: str) -> Dict[str, Any]:
        product = next((p for p in snapshot.products if p.id == product_id), None)
        if product is None:
            raise ProductNotFound(product_id)

        product_orders = [o for o in snapshot.orders if any(i.product_id == product_id for i in o.items)]
        sales = metrics.product_sales(product_orders).get(product_id, {"units": 0, "revenue": 0.0, "orders": 0})
        users_by_id = {u.id: u for u in snapshot.users}
        regions = Counter(metrics.order_region(o, users_by_id) for o in product_orders)

        if product.stock <= 0:
            stock_status = "out_of_stock"
        elif product.stock < self.settings.low_stock_threshold:
            stock_status = "low_stock"
        else:
            stock_status = "in_stock"

        return {
            "product": product.model_dump(mode="json", exclude_none=True),
            "analytics": {
                "total_orders": sales["orders"],
                "units_sold": sales["units"],
                "total_revenue": round(sales["revenue"], 2),
                "avg_rating": product.rating_average,
                "review_count": product.rating_count,
                "monthly_sales": metrics.monthly_product_sales(product_orders, product_id),
                "customer_regions": dict(sorted(regions.items(), key=lambda kv: (-kv[1], kv[0]))),
                "repeat_customers": metrics.repeat_customers(product_orders),
            },
            "inventory": {
                "current_stock": product.stock,
                "low_stock_threshold": self.settings.low_stock_threshold,
                "reorder_point": self.settings.reorder_point,
                "status": stock_status,
            },
        }

    # =========================================================================
    # EXPORT
    # =========================================================================

    async def export_report(self, report_type: str, export_format: str = ExportFormat.JSON.value) -> Tuple[str, bytes]:
        """
        Render a report as JSON or CSV.

        Args:
            report_type: dashboard, products, orders or customers
            export_format: json or csv

        Returns:
            (content_type, body)
        """
        rtype = parse_keyword(ReportType, report_type, "type")
        fmt = parse_keyword(ExportFormat, export_format or ExportFormat.JSON.value, "format")
        now = self.clock()

        snapshot = await self.fetch_snapshot()
        rows = self.export_rows(rtype, snapshot, now)

        logger.info("Report exported", type=rtype.value, format=fmt.value, rows=len(rows))

        if fmt == ExportFormat.CSV:
            return exporters.CSV_CONTENT_TYPE, exporters.to_csv(rows).encode("utf-8")

        meta = {
            "exported_at": now.isoformat(),
            "type": rtype.value,
            "format": fmt.value,
            "rows": len(rows),
        }
        return exporters.JSON_CONTENT_TYPE, exporters.to_json(rows, meta)

    def export_rows(self, report_type: ReportType, snapshot: Snapshot, now: datetime) -> List[Dict[str, Any]]:
        if report_type == ReportType.PRODUCTS:
            return exporters.product_rows(snapshot.products)
        if report_type == ReportType.ORDERS:
            return exporters.order_rows(snapshot.orders, snapshot.users)
        if report_type == ReportType.CUSTOMERS:
            segmentation = self.segmentation.segment(snapshot.users, snapshot.orders, now)
            return exporters.customer_rows(snapshot.users, snapshot.orders, segmentation)

        revenue = self._revenue([o for o in snapshot.orders if o.created_at <= now])
        total = sum(o.total for o in revenue)
        return [{
            "total_revenue": round(total, 2),
            "total_orders": len(snapshot.orders),
            "total_products": len(snapshot.products),
            "total_users": len(snapshot.users),
            "avg_order_value": round(total / len(revenue), 2) if revenue else 0.0,
            "generated_at": now.isoformat(),
        }]
