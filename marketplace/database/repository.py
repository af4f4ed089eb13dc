"""
Relational Data Store

``DataStore`` implementation reading the storefront collections from
SQL tables through an async SQLAlchemy session.
"""

from typing import List, Optional, Sequence

import structlog
from sqlalchemy import select

from marketplace.data.entities import Address, Order, OrderItem, Product, User
from marketplace.data.stores import DataStore
from marketplace.database.connection import Database
from marketplace.database.models import (
    OrderItemRecord,
    OrderRecord,
    ProductRecord,
    UserRecord,
)

logger = structlog.get_logger(__name__)


def _address(country, state, city) -> Optional[Address]:
    if country is None and state is None and city is None:
        return None
    return Address(country=country, state=state, city=city)


class SqlAlchemyStore(DataStore):
    """
    Store backed by the users/products/orders/order_items tables.

    Example:
        store = SqlAlchemyStore(Database(settings.database))
        orders = await store.list_orders()
    """

    def __init__(self, database: Database):
        self.database = database

    async def list_users(self) -> List[User]:
        async with self.database.session() as session:
            rows = (await session.execute(select(UserRecord))).scalars().all()

        return [
            User(
                id=row.id,
                created_at=row.created_at,
                last_login=row.last_login,
                is_active=row.is_active,
                first_name=row.first_name,
                last_name=row.last_name,
                email=row.email,
                role=row.role,
                address=_address(row.country, row.state, row.city),
            )
            for row in rows
        ]

    async def list_products(self) -> List[Product]:
        async with self.database.session() as session:
            rows = (await session.execute(select(ProductRecord))).scalars().all()

        return [
            Product(
                id=row.id,
                name=row.name,
                category=row.category,
                brand=row.brand,
                price=row.price,
                discount_price=row.discount_price,
                stock=row.stock,
                sales_count=row.sales_count,
                rating_average=row.rating_average,
                rating_count=row.rating_count,
                is_active=row.is_active,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def list_orders(self) -> List[Order]:
        async with self.database.session() as session:
            rows = (await session.execute(select(OrderRecord))).scalars().all()

            orders = [
                Order(
                    id=row.id,
                    user_id=row.user_id,
                    items=[
                        OrderItem(
                            product_id=item.product_id,
                            name=item.name,
                            price=item.price,
                            quantity=item.quantity,
                        )
                        for item in row.items
                    ],
                    total=row.total,
                    status=row.status,
                    created_at=row.created_at,
                    payment_method=row.payment_method,
                    payment_status=row.payment_status,
                    shipping_method=row.shipping_method,
                    shipping_address=_address(row.shipping_country, row.shipping_state, row.shipping_city),
                )
                for row in rows
            ]

        logger.debug("Orders loaded from database", count=len(orders))
        return orders

    async def save(
        self,
        users: Sequence[User] = (),
        products: Sequence[Product] = (),
        orders: Sequence[Order] = (),
    ) -> None:
        """Insert entities (seeding and tests; the analytics engine never writes)."""
        await self.database.create_schema()

        async with self.database.session() as session:
            for user in users:
                address = user.address or Address()
                session.add(UserRecord(
                    id=user.id,
                    email=user.email,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    role=user.role,
                    is_active=user.is_active,
                    country=address.country,
                    state=address.state,
                    city=address.city,
                    created_at=user.created_at,
                    last_login=user.last_login,
                ))

            for product in products:
                session.add(ProductRecord(
                    id=product.id,
                    name=product.name,
                    category=product.category,
                    brand=product.brand,
                    price=product.price,
                    discount_price=product.discount_price,
                    stock=product.stock,
                    sales_count=product.sales_count,
                    rating_average=product.rating_average,
                    rating_count=product.rating_count,
                    is_active=product.is_active,
                    created_at=product.created_at,
                ))

            # users must exist before orders reference them
            await session.flush()

            for order in orders:
                address = order.shipping_address or Address()
                session.add(OrderRecord(
                    id=order.id,
                    user_id=order.user_id,
                    total=order.total,
                    status=order.status.value,
                    payment_method=order.payment_method,
                    payment_status=order.payment_status,
                    shipping_method=order.shipping_method,
                    shipping_country=address.country,
                    shipping_state=address.state,
                    shipping_city=address.city,
                    created_at=order.created_at,
                    items=[
                        OrderItemRecord(
                            position=position,
                            product_id=item.product_id,
                            name=item.name,
                            price=item.price,
                            quantity=item.quantity,
                        )
                        for position, item in enumerate(order.items)
                    ],
                ))

        logger.info(
            "Entities saved",
            users=len(users),
            products=len(products),
            orders=len(orders),
        )

    async def close(self) -> None:
        await self.database.close()

    async def check_health(self) -> dict:
        health = await self.database.check_health()
        health["backend"] = type(self).__name__
        return health
