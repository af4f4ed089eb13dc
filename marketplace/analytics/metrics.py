"""
Report Metrics

Plain functions computing the KPI, distribution, product, regional and
customer figures the report assembler composes. Every function is pure over
the snapshot it receives; empty inputs yield zeros or empty collections.

Date ranges are half-open: ``start <= t < end``.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import polars as pl
import structlog

from marketplace.data.entities import Order, OrderStatus, Product, User

logger = structlog.get_logger(__name__)

UNKNOWN = "Unknown"
DEFAULT_PAYMENT_METHOD = "unknown"
DEFAULT_SHIPPING_METHOD = "standard"

CORRELATION_VARIABLES = [
    "total_spent",
    "order_count",
    "avg_order_value",
    "days_since_last_order",
    "items_per_order",
]


def in_range(ts: Optional[datetime], start: datetime, end: datetime) -> bool:
    return ts is not None and start <= ts < end


def orders_in_range(orders: Iterable[Order], start: datetime, end: datetime) -> List[Order]:
    return [o for o in orders if in_range(o.created_at, start, end)]


def revenue_orders(orders: Iterable[Order], statuses: Sequence[str]) -> List[Order]:
    """Orders whose status counts as realised revenue."""
    allowed = {OrderStatus(s) for s in statuses}
    return [o for o in orders if o.status in allowed]


def percentage(part: float, whole: float, digits: int = 1) -> float:
    return round(part / whole * 100, digits) if whole else 0.0


# =============================================================================
# KPIs
# =============================================================================

def total_revenue(orders: Sequence[Order], start: datetime, end: datetime, statuses: Sequence[str]) -> float:
    return float(sum(o.total for o in revenue_orders(orders_in_range(orders, start, end), statuses)))


def average_order_value(orders: Sequence[Order], start: datetime, end: datetime, statuses: Sequence[str]) -> float:
    counted = revenue_orders(orders_in_range(orders, start, end), statuses)
    if not counted:
        return 0.0
    return sum(o.total for o in counted) / len(counted)


def active_customers(users: Iterable[User], start: datetime, end: datetime) -> int:
    """Users whose last login falls in the range."""
    return sum(1 for u in users if in_range(u.last_login, start, end))


def new_customers(users: Iterable[User], start: datetime, end: datetime) -> int:
    return sum(1 for u in users if in_range(u.created_at, start, end))


def returning_rate(orders: Sequence[Order], start: datetime, end: datetime) -> float:
    """
    Share (%) of customers purchasing in the range who had placed more
    than one order by the end of the range.
    """
    history = (
        orders_frame(orders)
        .filter(pl.col("user_id").is_not_null() & (pl.col("created_at") < end))
        .group_by("user_id")
        .agg([
            (pl.col("created_at") >= start).any().alias("purchased"),
            pl.len().alias("order_count"),
        ])
        .filter(pl.col("purchased"))
    )
    if history.is_empty():
        return 0.0

    returning = history.filter(pl.col("order_count") > 1).height
    return percentage(returning, history.height)


# =============================================================================
# DISTRIBUTIONS
# =============================================================================

def distribution(values: Sequence[str], key: str) -> List[Dict[str, Any]]:
    """Count and percentage per distinct value, most frequent first."""
    counts = Counter(values)
    total = len(values)
    return [
        {key: value, "count": count, "percentage": percentage(count, total)}
        for value, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def status_distribution(orders: Sequence[Order]) -> List[Dict[str, Any]]:
    return distribution([o.status.value for o in orders], "status")


def payment_method_distribution(orders: Sequence[Order]) -> List[Dict[str, Any]]:
    return distribution([o.payment_method or DEFAULT_PAYMENT_METHOD for o in orders], "method")


def shipping_method_distribution(orders: Sequence[Order]) -> List[Dict[str, Any]]:
    return distribution([o.shipping_method or DEFAULT_SHIPPING_METHOD for o in orders], "method")


def sales_by_hour(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    """24 hourly slots (UTC) of order count and revenue."""
    hours = [{"hour": hour, "orders": 0, "revenue": 0.0} for hour in range(24)]
    for order in orders:
        slot = hours[order.created_at.hour]
        slot["orders"] += 1
        slot["revenue"] += order.total
    for slot in hours:
        slot["revenue"] = round(slot["revenue"], 2)
    return hours


# =============================================================================
# PRODUCTS
# =============================================================================

def line_items_frame(orders: Iterable[Order]) -> pl.DataFrame:
    """One row per order line item."""
    rows = [
        {
            "order_id": order.id,
            "user_id": order.user_id,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "revenue": item.subtotal,
            "created_at": order.created_at,
        }
        for order in orders
        for item in order.items
    ]
    return pl.DataFrame(
        rows,
        schema={
            "order_id": pl.Utf8,
            "user_id": pl.Utf8,
            "product_id": pl.Utf8,
            "quantity": pl.Int64,
            "revenue": pl.Float64,
            "created_at": pl.Datetime,
        },
    )


def product_sales(orders: Iterable[Order]) -> Dict[str, Dict[str, float]]:
    """Units, revenue and order count per product id."""
    items = line_items_frame(orders)
    if items.is_empty():
        return {}

    summary = items.group_by("product_id").agg([
        pl.col("quantity").sum().alias("units"),
        pl.col("revenue").sum().alias("revenue"),
        pl.col("order_id").n_unique().alias("orders"),
    ])
    return {
        row["product_id"]: {"units": int(row["units"]), "revenue": float(row["revenue"]), "orders": int(row["orders"])}
        for row in summary.iter_rows(named=True)
    }


def top_products(
    orders: Sequence[Order],
    products: Sequence[Product],
    limit: int = 10,
    previous_orders: Optional[Sequence[Order]] = None,
) -> List[Dict[str, Any]]:
    """
    Best sellers by line-item revenue.

    Args:
        orders: Orders in the reporting window
        products: Catalog used to resolve names, stock and rating
        limit: Maximum products returned
        previous_orders: Orders of the preceding equal-length window; when
            given, ``growth`` is the revenue change (%) against it, or None
            for products without prior sales

    Returns:
        Products sorted by revenue (descending), then product id
    """
    catalog = {p.id: p for p in products}
    current = product_sales(orders)
    previous = product_sales(previous_orders) if previous_orders is not None else {}

    ranked = sorted(current.items(), key=lambda kv: (-kv[1]["revenue"], kv[0]))[:limit]
    result = []
    for product_id, sales in ranked:
        product = catalog.get(product_id)
        prior = previous.get(product_id, {}).get("revenue", 0.0)
        growth = percentage(sales["revenue"] - prior, prior) if prior else None
        result.append({
            "product_id": product_id,
            "name": product.name if product else "Unknown Product",
            "category": product.category if product else UNKNOWN,
            "units": sales["units"],
            "revenue": round(sales["revenue"], 2),
            "orders": sales["orders"],
            "growth": growth,
            "stock": product.stock if product else None,
            "rating": product.rating_average if product else None,
        })
    return result


def top_selling_product(orders: Sequence[Order], products: Sequence[Product]) -> Optional[Dict[str, Any]]:
    """Product with the most units sold across ``orders``."""
    sales = product_sales(orders)
    if not sales:
        return None

    product_id, best = sorted(sales.items(), key=lambda kv: (-kv[1]["units"], kv[0]))[0]
    product = next((p for p in products if p.id == product_id), None)
    if product is None:
        return None
    return {
        "product_id": product_id,
        "name": product.name,
        "units": best["units"],
        "revenue": round(best["revenue"], 2),
    }


def low_stock_products(products: Iterable[Product], threshold: int) -> List[Dict[str, Any]]:
    """In-stock products below ``threshold`` units."""
    return [
        {
            "id": p.id,
            "name": p.name,
            "category": p.category,
            "stock": p.stock,
            "threshold": threshold,
        }
        for p in products
        if 0 < p.stock < threshold
    ]


def out_of_stock_count(products: Iterable[Product]) -> int:
    return sum(1 for p in products if p.stock <= 0)


def monthly_product_sales(orders: Iterable[Order], product_id: str) -> List[Dict[str, Any]]:
    """Units, revenue and orders of one product per calendar month."""
    items = line_items_frame(orders).filter(pl.col("product_id") == product_id)
    if items.is_empty():
        return []

    monthly = (
        items
        .with_columns(pl.col("created_at").dt.strftime("%Y-%m").alias("month"))
        .group_by("month")
        .agg([
            pl.col("quantity").sum().alias("units"),
            pl.col("revenue").sum().round(2).alias("revenue"),
            pl.col("order_id").n_unique().alias("orders"),
        ])
        .sort("month")
    )
    return monthly.to_dicts()


# =============================================================================
# GEOGRAPHY
# =============================================================================

def order_region(order: Order, users_by_id: Dict[str, User]) -> str:
    """Shipping country, else the customer's address country, else Unknown."""
    if order.shipping_address and order.shipping_address.country:
        return order.shipping_address.country
    user = users_by_id.get(order.user_id) if order.user_id else None
    if user and user.address and user.address.country:
        return user.address.country
    return UNKNOWN


def regional_revenue(orders: Sequence[Order], users: Sequence[User]) -> List[Dict[str, Any]]:
    """Revenue, order count and revenue share per region."""
    if not orders:
        return []

    users_by_id = {u.id: u for u in users}
    frame = pl.DataFrame(
        {
            "region": [order_region(o, users_by_id) for o in orders],
            "total": [o.total for o in orders],
        },
        schema={"region": pl.Utf8, "total": pl.Float64},
    )
    grand_total = float(frame["total"].sum())

    regions = (
        frame.group_by("region")
        .agg([
            pl.col("total").sum().alias("revenue"),
            pl.len().alias("orders"),
        ])
        .sort(["revenue", "region"], descending=[True, False])
    )
    return [
        {
            "region": row["region"],
            "revenue": round(row["revenue"], 2),
            "orders": int(row["orders"]),
            "percentage": percentage(row["revenue"], grand_total),
        }
        for row in regions.iter_rows(named=True)
    ]


def location_distribution(users: Iterable[User]) -> Dict[str, int]:
    counts = Counter((u.address.country if u.address and u.address.country else UNKNOWN) for u in users)
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))


def join_date_distribution(users: Iterable[User]) -> Dict[str, int]:
    counts = Counter(u.created_at.strftime("%Y-%m") for u in users)
    return dict(sorted(counts.items()))


# =============================================================================
# CUSTOMERS
# =============================================================================

def orders_frame(orders: Iterable[Order]) -> pl.DataFrame:
    """One row per order."""
    rows = [
        {
            "order_id": order.id,
            "user_id": order.user_id,
            "total": order.total,
            "item_count": order.item_count,
            "created_at": order.created_at,
        }
        for order in orders
    ]
    return pl.DataFrame(
        rows,
        schema={
            "order_id": pl.Utf8,
            "user_id": pl.Utf8,
            "total": pl.Float64,
            "item_count": pl.Int64,
            "created_at": pl.Datetime,
        },
    )


def customer_summary(orders: Iterable[Order]) -> pl.DataFrame:
    """
    Lifetime order aggregates per customer.

    Orders without a customer are ignored. Columns: ``user_id``,
    ``total_spent``, ``order_count``, ``avg_order_value``, ``total_items``,
    ``first_order_at``, ``last_order_at``.
    """
    return (
        orders_frame(orders)
        .filter(pl.col("user_id").is_not_null())
        .group_by("user_id")
        .agg([
            pl.col("total").sum().alias("total_spent"),
            pl.len().alias("order_count"),
            pl.col("total").mean().alias("avg_order_value"),
            pl.col("item_count").sum().alias("total_items"),
            pl.col("created_at").min().alias("first_order_at"),
            pl.col("created_at").max().alias("last_order_at"),
        ])
        .sort("user_id")
    )


def customer_features(orders: Sequence[Order], now: datetime) -> Dict[str, Dict[str, float]]:
    """Per-customer spend and behaviour variables."""
    summary = customer_summary(orders)
    if summary.is_empty():
        return {}

    features = summary.with_columns([
        pl.col("order_count").cast(pl.Float64),
        ((pl.lit(now) - pl.col("last_order_at")).dt.total_seconds() / 86400).alias("days_since_last_order"),
        (pl.col("total_items") / pl.col("order_count")).alias("items_per_order"),
    ])
    return {
        row["user_id"]: {v: float(row[v]) for v in CORRELATION_VARIABLES}
        for row in features.iter_rows(named=True)
    }


def correlation_matrix(orders: Sequence[Order], now: datetime) -> Dict[str, Any]:
    """
    Pearson correlation between customer variables.

    Coefficients that are undefined (constant variable, fewer than two
    customers) are reported as 0; the diagonal is always 1.
    """
    features = customer_features(orders, now)
    size = len(CORRELATION_VARIABLES)

    if len(features) < 2:
        matrix = np.eye(size)
    else:
        data = np.array([[f[v] for v in CORRELATION_VARIABLES] for f in features.values()], dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            matrix = np.corrcoef(data, rowvar=False)
        matrix = np.nan_to_num(matrix, nan=0.0, posinf=0.0, neginf=0.0)
        np.fill_diagonal(matrix, 1.0)

    return {
        "variables": list(CORRELATION_VARIABLES),
        "matrix": [[round(float(v), 2) for v in row] for row in matrix],
        "customers": len(features),
    }


def lifetime_value(orders: Sequence[Order]) -> Dict[str, float]:
    """Mean and median lifetime spend of customers with orders."""
    spend = customer_summary(orders)["total_spent"]
    if spend.is_empty():
        return {"average": 0.0, "median": 0.0, "customers": 0}

    return {
        "average": round(float(spend.mean()), 2),
        "median": round(float(spend.median()), 2),
        "customers": spend.len(),
    }


def churn_rate(orders: Sequence[Order], now: datetime, window_days: int = 30, lookback_days: int = 90) -> float:
    """
    Share (%) of previously active customers who stopped transacting.

    Previously active customers ordered in [now - lookback, now - window);
    they churned when they placed no order in [now - window, now].
    """
    window_start = now - timedelta(days=window_days)
    lookback_start = now - timedelta(days=lookback_days)

    activity = (
        orders_frame(orders)
        .filter(pl.col("user_id").is_not_null())
        .group_by("user_id")
        .agg([
            pl.col("created_at").is_between(lookback_start, window_start, closed="left").any().alias("previously_active"),
            pl.col("created_at").is_between(window_start, now, closed="both").any().alias("still_active"),
        ])
        .filter(pl.col("previously_active"))
    )
    if activity.is_empty():
        return 0.0

    churned = activity.filter(~pl.col("still_active")).height
    return percentage(churned, activity.height)


def recent_activity(
    orders: Sequence[Order],
    users: Sequence[User],
    limit: int = 10,
) -> List[Dict[str, Any]]:
    """Latest orders as an activity feed, newest first."""
    users_by_id = {u.id: u for u in users}
    latest = sorted(orders, key=lambda o: (o.created_at, o.id), reverse=True)[:limit]
    feed = []
    for order in latest:
        user = users_by_id.get(order.user_id) if order.user_id else None
        feed.append({
            "id": order.id,
            "type": "order",
            "user": user.display_name if user else "Anonymous",
            "description": f"Placed order for {order.item_count} items",
            "amount": order.total,
            "status": order.status.value,
            "timestamp": order.created_at.isoformat(),
        })
    return feed


def repeat_customers(orders: Iterable[Order]) -> int:
    """Customers with more than one of the given orders."""
    return customer_summary(orders).filter(pl.col("order_count") > 1).height
