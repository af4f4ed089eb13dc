"""
Report Exporters

Flat export rows per report type and their JSON / CSV renderings.

CSV follows the usual convention: a header from the first row's keys, one
comma-joined line per row, and a value is wrapped in double quotes only when
it contains a comma, a double quote or a newline (inner quotes doubled).
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import polars as pl
import structlog

from marketplace.analytics.segmentation import SegmentationResult
from marketplace.data.entities import Order, Product, User

logger = structlog.get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"
CSV_CONTENT_TYPE = "text/csv; charset=utf-8"


# =============================================================================
# ROWS
# =============================================================================

def product_rows(products: Sequence[Product]) -> List[Dict[str, Any]]:
    return [
        {
            "id": p.id,
            "name": p.name,
            "category": p.category,
            "brand": p.brand,
            "price": p.price,
            "discount_price": p.discount_price,
            "stock": p.stock,
            "status": "Active" if p.is_active else "Inactive",
            "sales": p.sales_count,
            "rating": p.rating_average,
            "created_at": p.created_at,
        }
        for p in products
    ]


def order_rows(orders: Sequence[Order], users: Sequence[User]) -> List[Dict[str, Any]]:
    users_by_id = {u.id: u for u in users}
    rows = []
    for order in orders:
        user = users_by_id.get(order.user_id) if order.user_id else None
        rows.append({
            "id": order.id,
            "customer": user.display_name if user else "Anonymous",
            "email": user.email if user else None,
            "date": order.created_at,
            "items": order.item_count,
            "total": order.total,
            "status": order.status.value,
            "shipping_method": order.shipping_method,
            "payment_method": order.payment_method,
        })
    return rows


def customer_rows(
    users: Sequence[User],
    orders: Sequence[Order],
    segmentation: Optional[SegmentationResult] = None,
) -> List[Dict[str, Any]]:
    totals: Dict[str, List[float]] = {}
    for order in orders:
        if order.user_id:
            totals.setdefault(order.user_id, []).append(order.total)

    membership = segmentation.membership() if segmentation is not None else {}
    rows = []
    for user in users:
        spent = totals.get(user.id, [])
        row = {
            "id": user.id,
            "name": user.display_name,
            "email": user.email,
            "joined": user.created_at,
            "last_login": user.last_login,
            "total_orders": len(spent),
            "total_spent": round(sum(spent), 2),
            "avg_order_value": round(sum(spent) / len(spent), 2) if spent else 0.0,
            "status": "Active" if user.is_active else "Inactive",
        }
        if segmentation is not None:
            row.update(membership.get(user.id, {"spend_tier": None, "recency": None}))
        rows.append(row)
    return rows


# =============================================================================
# RENDERING
# =============================================================================

def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(rows: List[Dict[str, Any]], meta: Dict[str, Any]) -> bytes:
    """Render ``{"data": rows, "meta": meta}``."""
    return json.dumps({"data": rows, "meta": meta}, default=_json_default, indent=2).encode("utf-8")


def csv_value(value: Any) -> Optional[str]:
    """Text of one CSV cell; None and empty strings become empty cells."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=_json_default)
    return str(value)


def to_csv(rows: List[Dict[str, Any]]) -> str:
    """
    Render rows as CSV text.

    Args:
        rows: Flat records; the header comes from the first record

    Returns:
        CSV text, empty when there are no rows
    """
    if not rows:
        return ""

    header = list(rows[0].keys())
    frame = pl.DataFrame(
        {column: [csv_value(row.get(column)) for row in rows] for column in header},
        schema={column: pl.Utf8 for column in header},
    )
    # a lone empty cell would be a blank line, which CSV readers skip
    null_value = '""' if len(header) == 1 else ""
    return frame.write_csv(quote_style="necessary", line_terminator="\n", null_value=null_value)
