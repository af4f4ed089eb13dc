"""
Synthetic Data Generator

Generates a SYNTHETIC storefront snapshot for demos and local development.
Includes:
- Users with join dates, logins and addresses
- Products across categories with stock and ratings
- Orders with line items, statuses, payment and shipping methods

Nothing here feeds report fields; reports are always computed from a store.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import numpy as np
import structlog
from faker import Faker

from marketplace.data.entities import Address, Order, OrderItem, OrderStatus, Product, User

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("electronics", ["Phones", "Laptops", "Tablets", "Headphones", "Cameras"]),
    ("clothing", ["Shirts", "Pants", "Dresses", "Shoes", "Jackets"]),
    ("home_garden", ["Furniture", "Kitchen", "Bedding", "Garden", "Decor"]),
    ("sports", ["Fitness", "Outdoor", "Team Sports", "Water Sports", "Cycling"]),
    ("beauty", ["Skincare", "Makeup", "Haircare", "Fragrance", "Tools"]),
    ("books", ["Fiction", "Non-Fiction", "Educational", "Children", "Comics"]),
]

PRICE_RANGES = {
    "electronics": (50, 2000),
    "clothing": (20, 500),
    "home_garden": (30, 1000),
    "sports": (25, 800),
    "beauty": (10, 200),
    "books": (10, 50),
}

BRANDS = [
    "TechPro", "StyleMax", "HomeEase", "SportFit", "BeautyGlow",
    "BookWorld", "GenericCo", "PremiumPlus", "ValueChoice", "EcoFriendly",
]

COUNTRIES = ["United States", "United Kingdom", "Canada", "Australia", "Germany", "France"]
PAYMENT_METHODS = ["credit_card", "debit_card", "paypal", "apple_pay", "google_pay"]
SHIPPING_METHODS = ["standard", "express", "overnight", "pickup"]

ORDER_STATUSES = [
    (OrderStatus.PENDING, 0.05),
    (OrderStatus.CONFIRMED, 0.05),
    (OrderStatus.PROCESSING, 0.05),
    (OrderStatus.SHIPPED, 0.10),
    (OrderStatus.DELIVERED, 0.70),
    (OrderStatus.CANCELLED, 0.03),
    (OrderStatus.REFUNDED, 0.02),
]

RECENT_STATUSES = [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED]


# =============================================================================
# GENERATORS
# =============================================================================

class SyntheticGenerator:
    """Shared seeded randomness for the entity generators"""

    def __init__(self, seed: Optional[int] = 42, now: Optional[datetime] = None):
        self.now = now or datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)
        self.random = random.Random(seed)
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        if seed is not None:
            self.fake.seed_instance(seed)

    def timestamp_between(self, start: datetime, end: datetime) -> datetime:
        span = max((end - start).total_seconds(), 0)
        return start + timedelta(seconds=int(self.random.uniform(0, span)))

    def address(self) -> Address:
        return Address(
            street=self.fake.street_address(),
            city=self.fake.city(),
            state=self.fake.state_abbr() if self.random.random() > 0.3 else None,
            zip_code=self.fake.postcode(),
            country=self.random.choice(COUNTRIES),
        )


class UserGenerator(SyntheticGenerator):
    """Generate storefront accounts"""

    def generate(self, n: int = 200, history_days: int = 730) -> List[User]:
        users = []
        for i in range(n):
            created_at = self.timestamp_between(self.now - timedelta(days=history_days), self.now)
            last_login = (
                self.timestamp_between(created_at, self.now)
                if self.random.random() > 0.1 else None
            )
            users.append(User(
                id=f"user-{i + 1:05d}",
                created_at=created_at,
                last_login=last_login,
                is_active=self.random.random() > 0.05,
                first_name=self.fake.first_name(),
                last_name=self.fake.last_name(),
                email=self.fake.email(),
                address=self.address(),
            ))
        return users


class ProductGenerator(SyntheticGenerator):
    """Generate a product catalog"""

    def generate(self, n: int = 100) -> List[Product]:
        products = []
        for i in range(n):
            category, subcategories = self.random.choice(CATEGORIES)
            low, high = PRICE_RANGES[category]
            price = round(self.random.uniform(low, high), 2)
            discount_price = round(price * self.random.uniform(0.7, 0.95), 2) if self.random.random() < 0.25 else None

            products.append(Product(
                id=f"prod-{i + 1:05d}",
                name=f"{self.fake.word().title()} {self.random.choice(subcategories)}",
                category=category,
                brand=self.random.choice(BRANDS),
                price=price,
                discount_price=discount_price,
                stock=int(self.rng.choice([0, 3, 8, 25, 120, 500], p=[0.05, 0.05, 0.10, 0.30, 0.30, 0.20])),
                sales_count=self.random.randint(0, 2000),
                rating_average=round(self.random.uniform(3.0, 5.0), 1),
                rating_count=self.random.randint(0, 500),
                is_active=self.random.random() > 0.05,
                created_at=self.timestamp_between(self.now - timedelta(days=730), self.now),
            ))
        return products


class OrderGenerator(SyntheticGenerator):
    """Generate orders with line items for existing users and products"""

    def __init__(
        self,
        users: List[User],
        products: List[Product],
        seed: Optional[int] = 42,
        now: Optional[datetime] = None,
    ):
        super().__init__(seed=seed, now=now)
        self.users = users
        self.products = products

    def generate(self, n: int = 1000) -> List[Order]:
        if not self.users or not self.products:
            return []

        orders = []
        for i in range(n):
            user = self.random.choice(self.users)
            created_at = self.timestamp_between(user.created_at, self.now)

            # Most orders have 1-3 line items
            num_items = int(self.rng.choice([1, 2, 3, 4, 5], p=[0.40, 0.30, 0.15, 0.10, 0.05]))
            items = []
            for product in self.random.sample(self.products, min(num_items, len(self.products))):
                quantity = int(self.rng.choice([1, 2, 3, 4], p=[0.65, 0.25, 0.07, 0.03]))
                items.append(OrderItem(
                    product_id=product.id,
                    name=product.name,
                    price=product.effective_price,
                    quantity=quantity,
                ))

            subtotal = sum(item.subtotal for item in items)
            shipping = 0 if subtotal > 100 else self.random.choice([5.99, 9.99, 14.99])
            tax = subtotal * self.random.uniform(0.05, 0.10)

            # Status based on order age
            if (self.now - created_at).days > 7:
                status = self.random.choices(
                    [s[0] for s in ORDER_STATUSES],
                    weights=[s[1] for s in ORDER_STATUSES],
                )[0]
            else:
                status = self.random.choice(RECENT_STATUSES)

            orders.append(Order(
                id=f"order-{i + 1:06d}",
                user_id=user.id,
                items=items,
                total=round(subtotal + shipping + tax, 2),
                status=status,
                created_at=created_at,
                payment_method=self.random.choice(PAYMENT_METHODS),
                payment_status="refunded" if status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED) else "captured",
                shipping_method=self.random.choice(SHIPPING_METHODS),
                shipping_address=user.address,
            ))

        orders.sort(key=lambda o: o.created_at)
        return orders


def generate_dataset(
    n_users: int = 200,
    n_products: int = 100,
    n_orders: int = 1000,
    seed: Optional[int] = 42,
    now: Optional[datetime] = None,
) -> Tuple[List[User], List[Product], List[Order]]:
    """
    Generate a consistent synthetic snapshot.

    Returns:
        (users, products, orders)
    """
    users = UserGenerator(seed=seed, now=now).generate(n_users)
    products = ProductGenerator(seed=None if seed is None else seed + 1, now=now).generate(n_products)
    orders = OrderGenerator(users, products, seed=None if seed is None else seed + 2, now=now).generate(n_orders)

    logger.info(
        "Synthetic dataset generated",
        users=len(users),
        products=len(products),
        orders=len(orders),
        seed=seed,
    )
    return users, products, orders
