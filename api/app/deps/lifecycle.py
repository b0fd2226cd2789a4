"""Per-request wiring for the order lifecycle service."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from ..db import get_session
from ..domain import GatewayFailure
from ..providers.base import PaymentGateway
from ..services.lifecycle import OrderLifecycle
from ..services.notifications import OrderNotifier


def get_gateway(request: Request) -> PaymentGateway:
    """Return the gateway the application built at startup."""

    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise GatewayFailure("Payment gateway is not configured")
    return gateway


def get_notifier(request: Request) -> OrderNotifier:
    return OrderNotifier(getattr(request.app.state, "redis", None))


def get_lifecycle(
    request: Request,
    session: AsyncSession = Depends(get_session),
    notifier: OrderNotifier = Depends(get_notifier),
) -> OrderLifecycle:
    """Build the coordinator on the request's session.

    The gateway is optional here; operations that need it fail with
    :class:`GatewayFailure` when none is configured.
    """

    gateway = getattr(request.app.state, "gateway", None)
    return OrderLifecycle(session, gateway, notifier, get_settings())
