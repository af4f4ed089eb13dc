"""
Test Suite Configuration
"""
from datetime import datetime
from typing import List

import pytest

from marketplace.config.settings import AnalyticsSettings
from marketplace.data.entities import Address, Order, OrderItem, Product, User
from marketplace.data.stores import InMemoryStore
from marketplace.reporting.assembler import ReportAssembler

NOW = datetime(2024, 6, 15, 12, 0)


def make_order(
    order_id: str,
    user_id: str,
    created_at: datetime,
    items: List[tuple],
    status: str = "delivered",
    **extra,
) -> Order:
    """Build an order from (product_id, price, quantity) tuples."""
    line_items = [OrderItem(product_id=pid, price=price, quantity=qty) for pid, price, qty in items]
    return Order(
        id=order_id,
        user_id=user_id,
        created_at=created_at,
        status=status,
        items=line_items,
        total=sum(item.subtotal for item in line_items),
        **extra,
    )


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant"""
    return NOW


@pytest.fixture
def analytics_settings() -> AnalyticsSettings:
    """Analytics settings with a seeded forecast"""
    return AnalyticsSettings(forecast_seed=7)


@pytest.fixture
def sample_users() -> List[User]:
    """Five customers across four join months"""
    return [
        User(
            id="u1", created_at=datetime(2024, 1, 10), last_login=datetime(2024, 6, 15, 11, 30),
            first_name="John", last_name="Doe", email="john@example.com",
            address=Address(city="Austin", country="US"),
        ),
        User(
            id="u2", created_at=datetime(2024, 1, 20), last_login=datetime(2024, 6, 10),
            first_name="Jane", last_name="Smith", email="jane@example.com",
            address=Address(city="London", country="UK"),
        ),
        User(
            id="u3", created_at=datetime(2024, 2, 5), last_login=datetime(2024, 3, 1),
            first_name="Bob", last_name="Wilson", email="bob@example.com",
            address=Address(city="Denver", country="US"),
        ),
        User(
            id="u4", created_at=datetime(2024, 6, 1), last_login=datetime(2024, 6, 14),
            first_name="Amy", last_name="Chen", email="amy@example.com",
            address=Address(city="Toronto", country="CA"),
        ),
        User(id="u5", created_at=datetime(2024, 3, 15), email="quiet@example.com"),
    ]


@pytest.fixture
def sample_products() -> List[Product]:
    """In-stock, low-stock and out-of-stock products"""
    return [
        Product(id="p1", name="Wireless Mouse", category="electronics", price=25.0, stock=100,
                rating_average=4.5, rating_count=10),
        Product(id="p2", name="USB Keyboard", category="electronics", price=50.0, stock=5),
        Product(id="p3", name="Monitor Stand", category="home", price=40.0, stock=0),
    ]


@pytest.fixture
def sample_orders() -> List[Order]:
    """Eight orders between January and the reference instant"""
    return [
        make_order("o1", "u1", datetime(2024, 1, 15, 10), [("p1", 25.0, 2)], payment_method="card"),
        make_order("o2", "u2", datetime(2024, 2, 10, 9), [("p2", 50.0, 1)], payment_method="paypal"),
        make_order("o3", "u1", datetime(2024, 5, 20, 14), [("p1", 25.0, 1), ("p2", 50.0, 1)], payment_method="card"),
        make_order("o4", "u3", datetime(2024, 2, 20, 8), [("p3", 40.0, 1)]),
        make_order("o5", "u2", datetime(2024, 6, 1, 16), [("p2", 50.0, 2)], status="shipped", shipping_method="express"),
        make_order(
            "o6", "u4", datetime(2024, 6, 14, 10), [("p1", 25.0, 4)],
            shipping_address=Address(city="Montreal", country="CA"),
        ),
        make_order("o7", "u1", datetime(2024, 6, 15, 9), [("p1", 25.0, 1)], status="pending"),
        make_order("o8", "u4", datetime(2024, 6, 15, 11), [("p2", 50.0, 1)]),
    ]


@pytest.fixture
def store(sample_users, sample_products, sample_orders) -> InMemoryStore:
    """In-memory store over the sample collections"""
    return InMemoryStore(users=sample_users, products=sample_products, orders=sample_orders)


@pytest.fixture
def assembler(store, analytics_settings) -> ReportAssembler:
    """Report assembler pinned to the reference instant"""
    return ReportAssembler(store, analytics_settings, clock=lambda: NOW)


@pytest.fixture
def order_factory():
    """Order builder taking (product_id, price, quantity) tuples"""
    return make_order
