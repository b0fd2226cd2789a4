"""Database models for restaurants and their orders.

All tenants share one schema; every tenant-owned row carries a
``restaurant_id`` and staff-facing queries filter on it. The models are kept
free of application wiring so they can be used in tests and migrations
independently."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

DEFAULT_CATEGORY = "General"


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Restaurant(Base):
    """Tenant record holding credentials and payment onboarding state."""

    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    stripe_account_id = Column(String, nullable=True)
    stripe_onboarded = Column(Boolean, nullable=False, default=False)
    platform_fee_percent = Column(Numeric(5, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Table(Base):
    """Dining tables numbered per restaurant and reachable through a QR URL."""

    __tablename__ = "tables"
    __table_args__ = (UniqueConstraint("restaurant_id", "number"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    number = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=True)
    qr_code_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class MenuItem(Base):
    """Tenant-specific menu items."""

    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String, nullable=False, default=DEFAULT_CATEGORY)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Order(Base):
    """A customer's order placed from a table.

    ``status`` stores :class:`~api.app.domain.OrderStatus` values and is only
    changed through conditional updates issued by the lifecycle service.
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_restaurant_created", "restaurant_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False)
    customer_name = Column(String, nullable=True)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String(32), nullable=False)
    payment_id = Column(String, nullable=True)
    payment_method = Column(String(8), nullable=True)
    device_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    items = relationship(
        "OrderItem", order_by="OrderItem.position", lazy="raise", cascade="all"
    )
    restaurant = relationship("Restaurant", lazy="raise")
    table = relationship("Table", lazy="raise")


class OrderItem(Base):
    """Line items belonging to an order with a snapshot of the unit price."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    comment = Column(Text, nullable=True)

    menu_item = relationship("MenuItem", lazy="raise")


class PaymentLog(Base):
    """Append-only audit trail of payment and status actions for an order."""

    __tablename__ = "payment_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    action = Column(String(32), nullable=False)
    amount = Column(Numeric(10, 2), nullable=True)
    payment_id = Column(String, nullable=True)
    previous_status = Column(String(32), nullable=True)
    new_status = Column(String(32), nullable=True)
    meta = Column("metadata", Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


__all__ = [
    "Base",
    "Restaurant",
    "Table",
    "MenuItem",
    "Order",
    "OrderItem",
    "PaymentLog",
    "utcnow",
]
