"""Service layer helpers for the API."""

from . import connect
from .lifecycle import CardPaymentIntent, OrderLifecycle
from .notifications import OrderNotifier, channel_for

__all__ = [
    "CardPaymentIntent",
    "OrderLifecycle",
    "OrderNotifier",
    "channel_for",
    "connect",
]
