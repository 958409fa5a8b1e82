"""Database models for the Quick Shop service."""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current time used for server-maintained stamps."""
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    """Account roles."""
    CUSTOMER = "customer"
    SELLER = "seller"


class OrderStatus(str, enum.Enum):
    """Order lifecycle: pending -> packing -> shipped -> completed."""
    PENDING = "pending"
    PACKING = "packing"
    SHIPPED = "shipped"
    COMPLETED = "completed"


class User(Base):
    """User model."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(String(255), unique=True)
    password_hash = Column(String(255))
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles], native_enum=False),
        nullable=False,
        default=UserRole.CUSTOMER,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)


# Usernames are unique regardless of case
Index("ix_users_username_lower", func.lower(User.username), unique=True)


class Product(Base):
    """Product model."""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    name = Column(String(255), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    sizes = Column(JSON, nullable=False, default=list)
    image_url = Column(Text)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Order(Base):
    """Order model.

    One row per purchased product. The ``product_*`` columns hold a snapshot of
    the product taken when the order was placed, so later catalog edits do not
    rewrite order history.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    quantity = Column(Integer, nullable=False)
    size = Column(String(64))
    status = Column(
        Enum(OrderStatus, values_callable=lambda states: [s.value for s in states], native_enum=False),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    full_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    phone = Column(String(64), nullable=False)
    payment_method = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=False)
    product_price = Column(Numeric(10, 2), nullable=False)
    product_image_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
