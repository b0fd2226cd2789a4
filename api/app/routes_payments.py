"""Card payment routes: intent creation and the processor webhook."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from .deps.lifecycle import get_gateway, get_lifecycle
from .domain import Conflict, NotFound, SignatureError
from .providers.base import PaymentGateway
from .schemas import PaymentIntentRequest
from .services.lifecycle import OrderLifecycle
from .utils.responses import ok

router = APIRouter(prefix="/api/payments", tags=["payments"])

logger = logging.getLogger("api.gateway")

SUCCEEDED = "payment_intent.succeeded"


@router.post("/intent")
async def create_payment_intent(
    payload: PaymentIntentRequest,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
) -> dict:
    """Create a card payment intent for an unpaid order."""

    intent = await lifecycle.create_card_payment_intent(
        payload.order_id, idempotency_key=idempotency_key
    )
    return ok(intent.as_dict())


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    gateway: PaymentGateway = Depends(get_gateway),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
) -> dict:
    """Confirm orders from verified ``payment_intent.succeeded`` events.

    Repeated deliveries of the same event are acknowledged as duplicates.
    """

    body = await request.body()
    try:
        event = gateway.parse_webhook(body, stripe_signature)
    except SignatureError as exc:
        logger.warning("rejected payment webhook: %s", exc)
        raise HTTPException(status_code=400, detail="invalid signature") from exc

    if event.type != SUCCEEDED:
        return ok({"ignored": True, "type": event.type})

    order_id = (event.data.get("metadata") or {}).get("orderId")
    if not order_id:
        logger.warning("payment event %s carries no order id", event.id)
        return ok({"ignored": True, "type": event.type})
    try:
        order = await lifecycle.confirm_order(
            order_id, payment_intent_id=event.data.get("id"), source="webhook"
        )
    except NotFound:
        logger.warning("payment event %s for unknown order %s", event.id, order_id)
        return ok({"ignored": True, "type": event.type})
    except Conflict as exc:
        return ok({"duplicate": True, "status": exc.current_status})
    return ok({"order_id": order.id, "status": order.status})
