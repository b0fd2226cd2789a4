"""Guest-facing order routes.

Customers act on an order through its id alone; there is no guest login.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from .deps.lifecycle import get_lifecycle
from .repos_sqlalchemy.orders_repo_sql import OrderLine
from .schemas import ConfirmRequest, OrderCreate, order_to_dict
from .services.lifecycle import OrderLifecycle
from .utils.responses import ok

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("")
async def create_order(
    payload: OrderCreate, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> dict:
    """Place an order for a table."""

    lines = [
        OrderLine(
            menu_item_id=item.menu_item_id,
            quantity=item.quantity,
            price=item.price,
            comment=item.comment,
        )
        for item in payload.items
    ]
    order = await lifecycle.create_order(
        payload.restaurant_id,
        payload.table_number,
        payload.customer_name,
        lines,
        device_id=payload.device_id,
    )
    return ok(order_to_dict(order))


@router.get("/device/{device_id}")
async def device_orders(
    device_id: str,
    restaurant_id: Optional[str] = Query(default=None),
    table_number: Optional[int] = Query(default=None),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    """List the orders placed from one browser, newest first."""

    orders = await lifecycle.list_device_orders(device_id, restaurant_id, table_number)
    return ok([order_to_dict(o) for o in orders])


@router.get("/{order_id}")
async def get_order(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> dict:
    order = await lifecycle.get_order(order_id)
    return ok(order_to_dict(order))


@router.post("/{order_id}/cash-payment")
async def select_cash_payment(
    order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)
) -> dict:
    order = await lifecycle.select_cash_payment(order_id)
    return ok({"order": order_to_dict(order), "message": "Order confirmed for cash payment"})


@router.post("/{order_id}/confirm")
async def confirm_order(
    order_id: str,
    payload: Optional[ConfirmRequest] = Body(default=None),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    """Confirm a card payment after the processor redirect."""

    intent_id = payload.payment_intent_id if payload else None
    order = await lifecycle.confirm_order(order_id, payment_intent_id=intent_id)
    return ok(order_to_dict(order))


@router.post("/{order_id}/cancel")
async def cancel_order(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> dict:
    order = await lifecycle.cancel_order(order_id)
    return ok(order_to_dict(order))
