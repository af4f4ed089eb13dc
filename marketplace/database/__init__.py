"""
Database Module
"""
from .connection import Database
from .models import Base, OrderItemRecord, OrderRecord, ProductRecord, UserRecord
from .repository import SqlAlchemyStore

__all__ = [
    "Database",
    "Base",
    "UserRecord",
    "ProductRecord",
    "OrderRecord",
    "OrderItemRecord",
    "SqlAlchemyStore",
]
