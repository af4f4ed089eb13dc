"""
Data Access Layer

The analytics engine reads three full collections per report request and
depends only on the ``DataStore`` interface defined here. Concrete stores:

- InMemoryStore: lists already held in memory
- JsonFileStore: the storefront's flat JSON-file store
- SqlAlchemyStore: relational tables (see ``marketplace.database``)
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Type, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter

from marketplace.data.entities import Order, Product, User

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DataStore(ABC):
    """
    Read-only snapshot interface over users, products and orders.

    Implementations must return complete collections; the analytics core
    performs no pagination, filtering or retries of its own.
    """

    @abstractmethod
    async def list_users(self) -> List[User]:
        """Return every user"""

    @abstractmethod
    async def list_products(self) -> List[Product]:
        """Return every product"""

    @abstractmethod
    async def list_orders(self) -> List[Order]:
        """Return every order"""

    async def close(self) -> None:
        """Release any held resources"""

    async def check_health(self) -> dict:
        """Report store availability for health probes."""
        try:
            await self.list_products()
            return {"status": "healthy", "backend": type(self).__name__}
        except Exception as e:
            return {"status": "unhealthy", "backend": type(self).__name__, "error": str(e)}


class InMemoryStore(DataStore):
    """
    Store over in-memory collections.

    Example:
        store = InMemoryStore(users=[...], products=[...], orders=[...])
        users = await store.list_users()
    """

    def __init__(
        self,
        users: Optional[Iterable[User]] = None,
        products: Optional[Iterable[Product]] = None,
        orders: Optional[Iterable[Order]] = None,
    ):
        self._users = list(users or [])
        self._products = list(products or [])
        self._orders = list(orders or [])

    async def list_users(self) -> List[User]:
        return list(self._users)

    async def list_products(self) -> List[Product]:
        return list(self._products)

    async def list_orders(self) -> List[Order]:
        return list(self._orders)


class JsonFileStore(DataStore):
    """
    Flat JSON-file store.

    Reads ``users.json``, ``products.json`` and ``orders.json`` from a
    directory, each holding a JSON array of storefront documents. A missing
    file reads as an empty collection. File I/O runs in a worker thread so
    the event loop is never blocked.
    """

    USERS_FILE = "users.json"
    PRODUCTS_FILE = "products.json"
    ORDERS_FILE = "orders.json"

    def __init__(self, directory: str):
        self.directory = Path(directory)

    async def list_users(self) -> List[User]:
        return await asyncio.to_thread(self._read, self.USERS_FILE, User)

    async def list_products(self) -> List[Product]:
        return await asyncio.to_thread(self._read, self.PRODUCTS_FILE, Product)

    async def list_orders(self) -> List[Order]:
        return await asyncio.to_thread(self._read, self.ORDERS_FILE, Order)

    def _read(self, file_name: str, model: Type[ModelT]) -> List[ModelT]:
        path = self.directory / file_name
        if not path.exists():
            logger.debug("Store file missing, treating as empty", path=str(path))
            return []

        adapter = TypeAdapter(List[model])
        records = adapter.validate_json(path.read_bytes())
        logger.debug("Store file loaded", path=str(path), records=len(records))
        return records

    def write(
        self,
        users: Sequence[User] = (),
        products: Sequence[Product] = (),
        orders: Sequence[Order] = (),
    ) -> None:
        """Write collections back as storefront documents (used for seeding)."""
        self.directory.mkdir(parents=True, exist_ok=True)
        for file_name, records in (
            (self.USERS_FILE, users),
            (self.PRODUCTS_FILE, products),
            (self.ORDERS_FILE, orders),
        ):
            documents = [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in records]
            (self.directory / file_name).write_text(json.dumps(documents, indent=2), encoding="utf-8")
            logger.info("Store file written", file=file_name, records=len(documents))


def create_store(settings) -> DataStore:
    """
    Build the store configured in ``settings.store``.

    Args:
        settings: Application settings

    Returns:
        DataStore: JSON-file or database-backed store
    """
    if settings.store.backend == "database":
        from marketplace.database.repository import SqlAlchemyStore
        from marketplace.database.connection import Database

        return SqlAlchemyStore(Database(settings.database))

    return JsonFileStore(settings.store.json_path)
