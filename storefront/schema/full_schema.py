import enum
import uuid
from decimal import Decimal
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, Text, UniqueConstraint, Uuid, text
from uuid6 import uuid7
from datetime import datetime
from typing import Optional
from sqlmodel import Column, SQLModel, Field, String
from storefront.common.utils import now


# Catalog ------------------------------------------------------------------------------------------------

class Comic(SQLModel, table=True):
    __tablename__ = "comics"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    issue: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    publisher: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    price: Decimal = Field(default=Decimal("0.00"), sa_column=Column(Numeric(10, 2), nullable=False))   # current list price
    image: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now, index=True))


class Company(SQLModel, table=True):
    __tablename__ = "companies"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(128), nullable=False, unique=True))
    image: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))


class Character(SQLModel, table=True):
    __tablename__ = "characters"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    image: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    first_appearance: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))


# Cart ---------------------------------------------------------------------------------------------------

class Cart(SQLModel, table=True):
    __tablename__ = "carts"

    id: Optional[int] = Field(default=None, primary_key=True)
    # opaque client supplied token, one cart per token
    session_token: str = Field(sa_column=Column(String(255), nullable=False, unique=True, index=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


class CartItem(SQLModel, table=True):
    __tablename__ = "cart_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: int = Field(sa_column=Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True))
    # catalog reference is soft: the comic may be deleted while the line still sits in a cart
    item_id: int = Field(sa_column=Column(Integer, nullable=False))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (
        UniqueConstraint("cart_id", "item_id", name="uq_cart_item"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )


# Orders -------------------------------------------------------------------------------------------------

class OrderStatus(str, enum.Enum):
    PENDING = "pending"                  # manual path, awaiting offline payment
    PENDING_PAYMENT = "pending_payment"  # hosted path, awaiting the provider


class Orders(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid, unique=True, index=True, nullable=False))
    session_token: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False))
    address: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    country: str = Field(default="CA", sa_column=Column(String(64), nullable=False))
    payment_method: str = Field(sa_column=Column(String(64), nullable=False))
    pickup: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, server_default=text("false")))
    subtotal: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    shipping: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    total: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    currency: str = Field(default="CAD", sa_column=Column(String(8), nullable=False))
    status: str = Field(default=OrderStatus.PENDING.value, sa_column=Column(String(32), nullable=False, index=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))


# order lines are snapshots, no FK back to the catalog
class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True))
    item_id: int = Field(sa_column=Column(Integer, nullable=False))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    issue: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    qty: int = Field(sa_column=Column(Integer, nullable=False))
    unit_price: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    line_total: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    image: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))


class IdempotencyKey(SQLModel, table=True):
    __tablename__ = "idempotency_keys"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(sa_column=Column(String(128), unique=True, nullable=False, index=True))
    session_token: str = Field(sa_column=Column(String(255), nullable=False))
    order_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True))
    response_code: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    response_body: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
