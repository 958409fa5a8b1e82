"""Pydantic schemas for request/response validation.

Request models are the single place where client JSON is normalized: strings
are trimmed and must fit their columns, ids, counts and prices must be real
JSON numbers and size lists must be JSON arrays. Anything ambiguous is
rejected instead of coerced.
"""
import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    field_validator,
)
from pydantic.alias_generators import to_camel

from models import Order, OrderStatus, UserRole

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SHORT_TEXT_LENGTH = 64
NAME_LENGTH = 255


def _reject_text_number(value):
    # JSON strings and booleans are not prices
    if isinstance(value, (str, bool)):
        raise ValueError("price must be a JSON number")
    return value


Price = Annotated[Decimal, BeforeValidator(_reject_text_number), Field(ge=0, max_digits=10, decimal_places=2)]
Stock = Annotated[StrictInt, Field(ge=0)]
PositiveId = Annotated[StrictInt, Field(gt=0)]
ShortText = Annotated[StrictStr, Field(max_length=SHORT_TEXT_LENGTH)]
Name = Annotated[StrictStr, Field(max_length=NAME_LENGTH)]


def _required_text(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{field} must not be blank")
    return value


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def normalize_sizes(values: List[str]) -> List[str]:
    """Trim size labels, reject blanks and drop repeated labels."""
    sizes: List[str] = []
    for raw in values:
        size = raw.strip()
        if not size:
            raise ValueError("size options must not be blank")
        if size not in sizes:
            sizes.append(size)
    return sizes


class ApiModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Accounts

class UserCreate(ApiModel):
    """Schema for creating an account."""
    username: ShortText
    email: Optional[Name] = None
    role: UserRole = UserRole.CUSTOMER

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Username must be at least 3 characters long.")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        value = _optional_text(value)
        if value is None:
            return None
        value = value.lower()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address supplied.")
        return value


class UserResponse(ApiModel):
    """Schema for account response."""
    id: int
    username: str
    email: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None


# Catalog

class ProductCreate(ApiModel):
    """Schema for creating a product."""
    name: Name
    price: Price
    stock: Stock = 0
    sizes: List[ShortText] = Field(default_factory=list)
    image_url: Optional[StrictStr] = None
    description: Optional[StrictStr] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _required_text(value, "name")

    @field_validator("sizes")
    @classmethod
    def check_sizes(cls, value: List[str]) -> List[str]:
        return normalize_sizes(value)

    @field_validator("image_url", "description")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)


class ProductUpdate(ApiModel):
    """Schema for a partial product update; omitted fields are left alone."""
    name: Optional[Name] = None
    price: Optional[Price] = None
    stock: Optional[Stock] = None
    sizes: Optional[List[ShortText]] = None
    image_url: Optional[StrictStr] = None
    description: Optional[StrictStr] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_text(value, "name")

    @field_validator("sizes")
    @classmethod
    def check_sizes(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return normalize_sizes(value)

    @field_validator("image_url", "description")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)


class ProductResponse(ApiModel):
    """Schema for product response."""
    id: int
    seller_id: Optional[int] = None
    name: str
    price: float
    stock: int
    sizes: List[str]
    image_url: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Orders

class LineItem(ApiModel):
    """One (product, quantity) pair of a checkout request."""
    product_id: PositiveId
    quantity: Annotated[StrictInt, Field(gt=0)]
    size: Optional[ShortText] = None

    @field_validator("size")
    @classmethod
    def strip_size(cls, value: Optional[str]) -> Optional[str]:
        return _optional_text(value)


class BuyerInfo(ApiModel):
    """Buyer and shipping details attached to every order row of a checkout."""
    full_name: Name
    address: StrictStr
    phone: ShortText
    payment_method: ShortText
    customer_id: Optional[PositiveId] = None

    @field_validator("full_name", "address", "phone", "payment_method")
    @classmethod
    def check_text(cls, value: str, info) -> str:
        return _required_text(value, info.field_name)


class CheckoutRequest(ApiModel):
    """Schema for checkout request."""
    items: List[LineItem] = Field(min_length=1)
    full_name: Name
    address: StrictStr
    phone: ShortText
    payment_method: ShortText

    @field_validator("full_name", "address", "phone", "payment_method")
    @classmethod
    def check_text(cls, value: str, info) -> str:
        return _required_text(value, info.field_name)

    def buyer(self, customer_id: Optional[int]) -> BuyerInfo:
        """Buyer details for the order workflow."""
        return BuyerInfo(
            full_name=self.full_name,
            address=self.address,
            phone=self.phone,
            payment_method=self.payment_method,
            customer_id=customer_id,
        )


class ProductSnapshot(ApiModel):
    """Product fields copied into an order when it was placed."""
    name: str
    price: float
    image_url: Optional[str] = None


class OrderResponse(ApiModel):
    """Schema for order response."""
    id: int
    product_id: int
    seller_id: Optional[int] = None
    customer_id: Optional[int] = None
    quantity: int
    size: Optional[str] = None
    status: OrderStatus
    full_name: str
    address: str
    phone: str
    payment_method: str
    product: ProductSnapshot
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        """Build the response from an order row and its product snapshot."""
        return cls(
            id=order.id,
            product_id=order.product_id,
            seller_id=order.seller_id,
            customer_id=order.customer_id,
            quantity=order.quantity,
            size=order.size,
            status=order.status,
            full_name=order.full_name,
            address=order.address,
            phone=order.phone,
            payment_method=order.payment_method,
            product=ProductSnapshot(
                name=order.product_name,
                price=order.product_price,
                image_url=order.product_image_url,
            ),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class CheckoutResponse(ApiModel):
    """Schema for checkout response."""
    updated_products: List[ProductResponse]
    created_orders: List[OrderResponse]


class OrdersListResponse(ApiModel):
    """Schema for orders list response."""
    orders: List[OrderResponse]


class StatusUpdateRequest(ApiModel):
    """Schema for a seller status change."""
    status: OrderStatus
