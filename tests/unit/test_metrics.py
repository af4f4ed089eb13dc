"""
Unit Tests - Report Metrics
"""
from datetime import datetime, timedelta

import pytest

from marketplace.analytics import metrics
from marketplace.data.entities import User

START = datetime(2024, 5, 15, 12, 0)
END = datetime(2024, 6, 15, 12, 0)


class TestKpis:
    """Tests for headline KPIs"""

    def test_revenue_counts_delivered_orders_in_range(self, sample_orders):
        """Test revenue and average order value over delivered orders"""
        assert metrics.total_revenue(sample_orders, START, END, ["delivered"]) == 225.0
        assert metrics.average_order_value(sample_orders, START, END, ["delivered"]) == 75.0

    def test_revenue_statuses_are_configurable(self, sample_orders):
        """Test shipped orders count when configured"""
        assert metrics.total_revenue(sample_orders, START, END, ["delivered", "shipped"]) == 325.0

    def test_empty_range_yields_zero(self, sample_orders):
        """Test a range without orders"""
        start = datetime(2030, 1, 1)
        assert metrics.total_revenue(sample_orders, start, start + timedelta(days=1), ["delivered"]) == 0.0
        assert metrics.average_order_value(sample_orders, start, start + timedelta(days=1), ["delivered"]) == 0.0

    def test_range_end_is_exclusive(self, order_factory):
        """Test an order exactly at the end is outside the range"""
        orders = [order_factory("a", "u1", END, [("p1", 10.0, 1)])]

        assert metrics.orders_in_range(orders, START, END) == []
        assert metrics.orders_in_range(orders, END, END + timedelta(seconds=1)) == orders

    def test_customer_counts(self, sample_users, sample_orders):
        """Test active, new and returning customers"""
        assert metrics.active_customers(sample_users, START, END) == 3
        assert metrics.new_customers(sample_users, START, END) == 1
        assert metrics.returning_rate(sample_orders, START, END) == 100.0


class TestDistributions:
    """Tests for categorical distributions"""

    def test_status_distribution(self, sample_orders):
        """Test counts and shares sorted by frequency"""
        in_range = metrics.orders_in_range(sample_orders, START, END)

        assert metrics.status_distribution(in_range) == [
            {"status": "delivered", "count": 3, "percentage": 60.0},
            {"status": "pending", "count": 1, "percentage": 20.0},
            {"status": "shipped", "count": 1, "percentage": 20.0},
        ]

    def test_missing_methods_use_defaults(self, sample_orders):
        """Test unknown payment and standard shipping defaults"""
        in_range = metrics.orders_in_range(sample_orders, START, END)

        payment = metrics.payment_method_distribution(in_range)
        shipping = metrics.shipping_method_distribution(in_range)

        assert payment[0] == {"method": "unknown", "count": 4, "percentage": 80.0}
        assert {row["method"] for row in shipping} == {"standard", "express"}

    def test_sales_by_hour(self, sample_orders):
        """Test the 24-slot hourly histogram"""
        hours = metrics.sales_by_hour(sample_orders)

        assert len(hours) == 24
        assert hours[14] == {"hour": 14, "orders": 1, "revenue": 75.0}
        assert sum(slot["orders"] for slot in hours) == len(sample_orders)


class TestProductMetrics:
    """Tests for product rankings and inventory"""

    def test_product_sales(self, sample_orders):
        """Test units, revenue and orders per product"""
        sales = metrics.product_sales(sample_orders)

        assert sales["p1"] == {"units": 8, "revenue": 200.0, "orders": 4}
        assert sales["p2"] == {"units": 5, "revenue": 250.0, "orders": 4}
        assert metrics.product_sales([]) == {}

    def test_top_products_without_history(self, sample_orders, sample_products):
        """Test ranking by revenue with no growth baseline"""
        top = metrics.top_products(sample_orders, sample_products, limit=2)

        assert [p["product_id"] for p in top] == ["p2", "p1"]
        assert top[0]["name"] == "USB Keyboard"
        assert top[0]["growth"] is None

    def test_top_products_growth(self, sample_orders, sample_products):
        """Test growth against the previous window"""
        june = metrics.orders_in_range(sample_orders, datetime(2024, 6, 1), datetime(2024, 7, 1))
        may = metrics.orders_in_range(sample_orders, datetime(2024, 5, 1), datetime(2024, 6, 1))

        top = {p["product_id"]: p for p in metrics.top_products(june, sample_products, previous_orders=may)}

        assert top["p2"]["growth"] == 200.0
        assert top["p1"]["growth"] == 400.0

    def test_inventory(self, sample_products):
        """Test low stock excludes out-of-stock products"""
        low = metrics.low_stock_products(sample_products, threshold=10)

        assert [p["id"] for p in low] == ["p2"]
        assert metrics.out_of_stock_count(sample_products) == 1

    def test_monthly_product_sales(self, sample_orders):
        """Test per-month sales of one product"""
        assert metrics.monthly_product_sales(sample_orders, "p1") == [
            {"month": "2024-01", "units": 2, "revenue": 50.0, "orders": 1},
            {"month": "2024-05", "units": 1, "revenue": 25.0, "orders": 1},
            {"month": "2024-06", "units": 5, "revenue": 125.0, "orders": 2},
        ]
        assert metrics.monthly_product_sales(sample_orders, "missing") == []


class TestGeography:
    """Tests for regional breakdowns"""

    def test_regional_revenue(self, sample_orders, sample_users):
        """Test shipping country wins over the customer's address"""
        delivered = metrics.revenue_orders(sample_orders, ["delivered"])

        regions = metrics.regional_revenue(delivered, sample_users)

        assert [r["region"] for r in regions] == ["US", "CA", "UK"]
        assert regions[0] == {"region": "US", "revenue": 165.0, "orders": 3, "percentage": 45.2}
        assert sum(r["orders"] for r in regions) == len(delivered)

    def test_location_distribution(self, sample_users):
        """Test users without an address count as Unknown"""
        locations = metrics.location_distribution(sample_users)

        assert locations == {"US": 2, "CA": 1, "UK": 1, "Unknown": 1}
        assert next(iter(locations)) == "US"


class TestCustomerMetrics:
    """Tests for customer-level analytics"""

    def test_correlation_matrix(self, sample_orders):
        """Test a symmetric matrix with a unit diagonal"""
        result = metrics.correlation_matrix(sample_orders, END)
        matrix = result["matrix"]

        assert result["customers"] == 4
        assert len(matrix) == len(result["variables"]) == 5
        for i, row in enumerate(matrix):
            assert row[i] == 1.0
            for j, value in enumerate(row):
                assert -1.0 <= value <= 1.0
                assert value == pytest.approx(matrix[j][i])

    def test_correlation_needs_two_customers(self, order_factory):
        """Test an identity matrix when correlation is undefined"""
        orders = [order_factory("a", "u1", START, [("p1", 10.0, 1)])]

        matrix = metrics.correlation_matrix(orders, END)["matrix"]

        assert matrix[0] == [1.0, 0.0, 0.0, 0.0, 0.0]

    def test_lifetime_value(self, sample_orders):
        """Test mean and median spend per customer"""
        assert metrics.lifetime_value(sample_orders) == {"average": 122.5, "median": 150.0, "customers": 4}
        assert metrics.lifetime_value([]) == {"average": 0.0, "median": 0.0, "customers": 0}

    def test_churn_rate(self, order_factory):
        """Test previously active customers without recent orders churn"""
        now = datetime(2024, 6, 15)
        orders = [
            order_factory("a1", "a", now - timedelta(days=60), [("p1", 10.0, 1)]),
            order_factory("b1", "b", now - timedelta(days=60), [("p1", 10.0, 1)]),
            order_factory("b2", "b", now - timedelta(days=10), [("p1", 10.0, 1)]),
            order_factory("c1", "c", now - timedelta(days=5), [("p1", 10.0, 1)]),
        ]

        assert metrics.churn_rate(orders, now) == 50.0
        assert metrics.churn_rate([], now) == 0.0

    def test_recent_activity(self, sample_orders, sample_users):
        """Test newest orders first with customer names"""
        feed = metrics.recent_activity(sample_orders, sample_users, limit=3)

        assert [entry["id"] for entry in feed] == ["o8", "o7", "o6"]
        assert feed[0]["user"] == "Amy Chen"

    def test_repeat_customers(self, sample_orders):
        """Test customers with more than one order"""
        assert metrics.repeat_customers(sample_orders) == 3

    def test_anonymous_display_name(self):
        """Test users without a name"""
        assert User(id="x", created_at=START).display_name == "Anonymous"


class TestCustomerSummary:
    """Tests for per-customer order aggregates"""

    def test_aggregates_per_customer(self, sample_orders):
        """Test spend, counts and first and last order per customer"""
        summary = metrics.customer_summary(sample_orders)

        assert summary["user_id"].to_list() == ["u1", "u2", "u3", "u4"]
        u1 = summary.row(0, named=True)
        assert u1["total_spent"] == 150.0
        assert u1["order_count"] == 3
        assert u1["avg_order_value"] == 50.0
        assert u1["total_items"] == 4
        assert u1["first_order_at"] == datetime(2024, 1, 15, 10)
        assert u1["last_order_at"] == datetime(2024, 6, 15, 9)

    def test_orders_without_customer_are_ignored(self, order_factory):
        """Test guest orders do not form a customer row"""
        orders = [
            order_factory("a", None, START, [("p1", 10.0, 1)]),
            order_factory("b", "u1", START, [("p1", 10.0, 2)]),
        ]

        summary = metrics.customer_summary(orders)

        assert summary["user_id"].to_list() == ["u1"]
        assert summary["total_spent"].to_list() == [20.0]

    def test_empty_orders(self):
        """Test no orders yields an empty summary"""
        assert metrics.customer_summary([]).is_empty()
        assert metrics.customer_features([], END) == {}

    def test_customer_features(self, sample_orders):
        """Test behaviour variables derived from the summary"""
        features = metrics.customer_features(sample_orders, datetime(2024, 6, 16, 9))

        assert features["u1"]["order_count"] == 3.0
        assert features["u1"]["items_per_order"] == pytest.approx(4 / 3)
        assert features["u1"]["days_since_last_order"] == 1.0
        assert features["u3"]["total_spent"] == 40.0
