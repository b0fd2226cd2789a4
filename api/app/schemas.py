# schemas.py

"""Pydantic request models and response serializers for the order API."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .models_tenant import MenuItem, Order, Restaurant, Table


class OrderItemIn(BaseModel):
    """One cart line as submitted by the menu page."""

    menu_item_id: str
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0)
    comment: Optional[str] = Field(default=None, max_length=500)


class OrderCreate(BaseModel):
    """Payload for placing an order from a table."""

    restaurant_id: str
    table_number: int = Field(gt=0)
    customer_name: str = Field(min_length=1, max_length=100)
    items: List[OrderItemIn] = Field(min_length=1)
    device_id: Optional[str] = Field(default=None, max_length=128)


class StatusUpdate(BaseModel):
    status: str


class PaymentIntentRequest(BaseModel):
    order_id: str


class ConfirmRequest(BaseModel):
    """Optional details passed back from the payment-success redirect."""

    payment_intent_id: Optional[str] = None


class PlatformFeeUpdate(BaseModel):
    platform_fee_percent: Decimal


class MenuItemIn(BaseModel):
    """Create or replace the editable fields of a menu item."""

    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    category: str = Field(min_length=1, max_length=60)
    available: bool = True


class MenuItemAvailability(BaseModel):
    available: bool


class TableIn(BaseModel):
    number: int = Field(gt=0)
    capacity: Optional[int] = Field(default=None, gt=0)


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)


def _money(value: Any) -> float | None:
    return float(value) if value is not None else None


def _ts(value) -> str | None:
    return value.isoformat() if value else None


def order_to_dict(order: Order) -> dict[str, Any]:
    """Serialize an order loaded with items, restaurant and table."""

    return {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "restaurant_name": order.restaurant.name if order.restaurant else None,
        "table_number": order.table.number if order.table else None,
        "customer_name": order.customer_name,
        "total": _money(order.total),
        "status": order.status,
        "payment_id": order.payment_id,
        "payment_method": order.payment_method,
        "device_id": order.device_id,
        "created_at": _ts(order.created_at),
        "updated_at": _ts(order.updated_at),
        "items": [
            {
                "id": item.id,
                "menu_item_id": item.menu_item_id,
                "name": item.menu_item.name if item.menu_item else None,
                "quantity": item.quantity,
                "price": _money(item.price),
                "comment": item.comment,
            }
            for item in order.items
        ],
    }


def menu_item_to_dict(item: MenuItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "restaurant_id": item.restaurant_id,
        "name": item.name,
        "description": item.description,
        "price": _money(item.price),
        "category": item.category,
        "available": item.available,
    }


def table_to_dict(table: Table) -> dict[str, Any]:
    return {
        "id": table.id,
        "number": table.number,
        "capacity": table.capacity,
        "qr_code_url": table.qr_code_url,
        "created_at": _ts(table.created_at),
    }


def public_restaurant_to_dict(restaurant: Restaurant) -> dict[str, Any]:
    """Fields a customer's menu page may see; credentials and payout state stay private."""

    return {"id": restaurant.id, "name": restaurant.name}
