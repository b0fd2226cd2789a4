"""Payment gateway providers and the factory used by the application."""

from __future__ import annotations

from config import GatewayKind, Settings

from .base import AccountStatus, PaymentGateway, PaymentIntent, WebhookEvent
from .gateway_stub import StubGateway
from .stripe_gateway import StripeGateway


def build_gateway(settings: Settings) -> PaymentGateway:
    """Return the gateway selected by ``settings.payment_gateway``."""

    if settings.payment_gateway == GatewayKind.STRIPE:
        return StripeGateway(settings.stripe_secret_key or "", settings.stripe_webhook_secret)
    return StubGateway(webhook_secret=settings.stripe_webhook_secret or "whsec_stub")


__all__ = [
    "AccountStatus",
    "PaymentGateway",
    "PaymentIntent",
    "WebhookEvent",
    "StubGateway",
    "StripeGateway",
    "build_gateway",
]
