"""Staff routes for managing a restaurant's orders.

Every route is scoped to the restaurant in the bearer token; orders of other
restaurants are reported as not found.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .deps.lifecycle import get_lifecycle
from .deps.tenant import get_tenant_id
from .schemas import StatusUpdate, order_to_dict
from .services.lifecycle import OrderLifecycle
from .utils.responses import ok

router = APIRouter(prefix="/api/restaurant/orders", tags=["restaurant"])


@router.get("")
async def list_orders(
    restaurant_id: str = Depends(get_tenant_id),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    """Today's orders, newest first."""

    orders = await lifecycle.list_today(restaurant_id)
    return ok([order_to_dict(o) for o in orders])


@router.put("/{order_id}/status")
async def update_status(
    order_id: str,
    payload: StatusUpdate,
    restaurant_id: str = Depends(get_tenant_id),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.advance_status(order_id, payload.status, restaurant_id)
    return ok(order_to_dict(order))


@router.post("/{order_id}/confirm-cash-payment")
async def confirm_cash_payment(
    order_id: str,
    restaurant_id: str = Depends(get_tenant_id),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.confirm_cash_payment(order_id, restaurant_id)
    return ok({"order": order_to_dict(order), "message": "Cash payment confirmed successfully"})


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    restaurant_id: str = Depends(get_tenant_id),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.cancel_order(order_id, restaurant_id=restaurant_id, by_staff=True)
    return ok(order_to_dict(order))


@router.get("/{order_id}/payment-logs")
async def payment_logs(
    order_id: str,
    restaurant_id: str = Depends(get_tenant_id),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    """Audit trail of payment and status actions for one order."""

    summary = await lifecycle.get_audit_summary(order_id, restaurant_id)
    return ok(summary.as_dict())
