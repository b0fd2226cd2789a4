"""Order status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum

from .errors import ValidationFailure


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    PENDING = "PENDING"
    PENDING_CASH_PAYMENT = "PENDING_CASH_PAYMENT"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """How the customer settles an order."""

    CARD = "card"
    CASH = "cash"


CASH_PAYMENT_PREFIX = "cash_payment_"

TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [
        OrderStatus.PENDING_CASH_PAYMENT,
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    ],
    # Choosing cash again refreshes the cash reference in place.
    OrderStatus.PENDING_CASH_PAYMENT: [
        OrderStatus.PENDING_CASH_PAYMENT,
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.CONFIRMED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
    OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
}

# Linear progression used when staff advance an order.
NEXT_STATUS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.DELIVERED,
}

PAID_STATUSES = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.DELIVERED,
    }
)
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
PAYABLE_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.PENDING_CASH_PAYMENT}
)
CUSTOMER_CANCELLABLE = PAYABLE_STATUSES
ACTIVE_STATUSES = frozenset(OrderStatus) - TERMINAL_STATUSES


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


def parse_status(value: str | OrderStatus | None) -> OrderStatus:
    """Coerce ``value`` into an :class:`OrderStatus`.

    Raises :class:`ValidationFailure` for missing or unknown values.
    """

    if value is None or value == "":
        raise ValidationFailure("Status is required")
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).upper())
    except ValueError as exc:
        raise ValidationFailure(
            f"Unknown status {value!r}", details={"status": value}
        ) from exc


def is_cash_token(payment_id: str | None) -> bool:
    """Return ``True`` when ``payment_id`` is a synthesized cash reference."""

    return bool(payment_id) and payment_id.startswith(CASH_PAYMENT_PREFIX)
