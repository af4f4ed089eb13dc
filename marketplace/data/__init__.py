"""
Data Module

Storefront entities and the stores that serve them.
"""
from .entities import Address, Order, OrderItem, OrderStatus, Product, User
from .stores import DataStore, InMemoryStore, JsonFileStore, create_store

__all__ = [
    "Address",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "User",
    "DataStore",
    "InMemoryStore",
    "JsonFileStore",
    "create_store",
]
