"""
Database Schemas

MongoDB collection schemas and the JSON shapes exchanged over HTTP.
Each collection model lowercased is the collection name. Documents are
stored with snake_case keys; the wire format is camelCase.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Collections

class Review(BaseModel):
    user_id: str
    comment: Optional[str] = None
    rating: float = Field(..., ge=0, le=5)


class Product(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    category: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    image: Optional[str] = None
    rating: float = Field(default=0, ge=0, le=5)
    reviews: List[Review] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class CartLine(BaseModel):
    product_id: str
    quantity: int


class User(BaseModel):
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt hashed password")
    name: Optional[str] = None
    cart: List[CartLine] = Field(default_factory=list)
    orders: List[str] = Field(default_factory=list, description="Order ids")
    created_at: datetime = Field(default_factory=utcnow)


class OrderItem(BaseModel):
    product_id: str
    quantity: int
    price: float = Field(..., description="Unit price captured at order time")


class Order(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    items: List[OrderItem]
    total: float
    status: OrderStatus = OrderStatus.PENDING
    stripe_payment_id: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


# Wire models

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReviewOut(ApiModel):
    user_id: str
    comment: Optional[str] = None
    rating: float


class ProductOut(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    category: Optional[str] = None
    stock: int = 0
    image: Optional[str] = None
    rating: float = 0
    reviews: List[ReviewOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class CartLineOut(ApiModel):
    product_id: str
    quantity: int


class OrderItemOut(ApiModel):
    product_id: str
    quantity: int
    price: float


class OrderOut(ApiModel):
    id: str
    user_id: str
    items: List[OrderItemOut]
    total: float
    status: OrderStatus
    stripe_payment_id: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class UserOut(ApiModel):
    id: str
    email: EmailStr
    name: Optional[str] = None


class AuthResponse(ApiModel):
    token: str
    user: UserOut


class CheckoutResponse(ApiModel):
    client_secret: str
    order_id: str
