"""
Storefront Entities

Read-only views of the three collections the analytics engine consumes.
Documents are stored with the storefront's camelCase keys (``_id``,
``userId``, ``createdAt``); the models expose snake_case attributes and
accept either spelling.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def to_naive_utc(value: datetime) -> datetime:
    """Normalise a timestamp to a naive UTC datetime."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# =============================================================================
# ENTITIES
# =============================================================================

class StoreModel(BaseModel):
    """Base for stored documents"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class Address(StoreModel):
    """Postal address attached to users and orders"""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(default=None, alias="zipCode")
    country: Optional[str] = None


class User(StoreModel):
    """Storefront account"""
    id: str = Field(alias="_id")
    created_at: datetime = Field(alias="createdAt")
    last_login: Optional[datetime] = Field(default=None, alias="lastLogin")
    is_active: bool = Field(default=True, alias="isActive")
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    role: str = "customer"
    address: Optional[Address] = None

    @field_validator("created_at", "last_login")
    @classmethod
    def normalise_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_login_after_creation(self) -> "User":
        if self.last_login is not None and self.last_login < self.created_at:
            raise ValueError("lastLogin precedes createdAt")
        return self

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Anonymous"


class Product(StoreModel):
    """Catalog entry"""
    id: str = Field(alias="_id")
    name: str = ""
    category: str = "other"
    brand: Optional[str] = None
    price: float = Field(ge=0)
    discount_price: Optional[float] = Field(default=None, ge=0, alias="discountPrice")
    stock: int = Field(default=0, ge=0)
    sales_count: int = Field(default=0, ge=0, alias="salesCount")
    rating_average: float = Field(default=0.0, ge=0, le=5, alias="ratingAverage")
    rating_count: int = Field(default=0, ge=0, alias="ratingCount")
    is_active: bool = Field(default=True, alias="isActive")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def unpack_rating(cls, data: Any) -> Any:
        # storefront documents nest rating as {"average": .., "count": ..}
        if isinstance(data, dict) and isinstance(data.get("rating"), dict):
            data = dict(data)
            rating = data.pop("rating")
            data.setdefault("ratingAverage", rating.get("average") or 0)
            data.setdefault("ratingCount", rating.get("count") or 0)
        return data

    @field_validator("created_at")
    @classmethod
    def normalise_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_discount(self) -> "Product":
        if self.discount_price is not None and self.discount_price > self.price:
            raise ValueError("discountPrice exceeds price")
        return self

    @property
    def effective_price(self) -> float:
        return self.discount_price if self.discount_price is not None else self.price


class OrderItem(StoreModel):
    """Order line item"""
    product_id: str = Field(alias="productId")
    name: Optional[str] = None
    price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)

    @model_validator(mode="before")
    @classmethod
    def accept_product_reference(cls, data: Any) -> Any:
        if isinstance(data, dict) and "productId" not in data and "product_id" not in data and "product" in data:
            data = dict(data)
            data["productId"] = str(data.pop("product"))
        return data

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class Order(StoreModel):
    """Placed order"""
    id: str = Field(alias="_id")
    user_id: Optional[str] = Field(default=None, alias="userId")
    items: List[OrderItem] = Field(default_factory=list)
    total: float = Field(default=0.0, ge=0)
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(alias="createdAt")
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    shipping_method: Optional[str] = Field(default=None, alias="shippingMethod")
    shipping_address: Optional[Address] = Field(default=None, alias="shippingAddress")

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_fields(cls, data: Any) -> Any:
        """Map the JSON-store spellings onto the canonical fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "createdAt" not in data and "created_at" not in data and "date" in data:
            data["createdAt"] = data.pop("date")
        if "userId" not in data and "user_id" not in data and "user" in data:
            data["userId"] = str(data.pop("user"))
        payment = data.pop("payment", None)
        if isinstance(payment, dict) and "paymentMethod" not in data:
            data["paymentMethod"] = payment.get("method")
        shipping = data.pop("shipping", None)
        if isinstance(shipping, dict) and "shippingMethod" not in data:
            data["shippingMethod"] = shipping.get("method")
        return data

    @field_validator("created_at")
    @classmethod
    def normalise_timestamp(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def units(self) -> int:
        return sum(item.quantity for item in self.items)
