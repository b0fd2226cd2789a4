"""Domain models and helpers."""

from .errors import (
    AlreadyProcessed,
    Conflict,
    GatewayAccountInvalid,
    GatewayError,
    GatewayFailure,
    InUse,
    NotFound,
    OrderError,
    SignatureError,
    ValidationFailure,
)
from .order_status import (
    CASH_PAYMENT_PREFIX,
    NEXT_STATUS,
    PAID_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    can_transition,
    parse_status,
)

__all__ = [
    "OrderStatus",
    "PaymentMethod",
    "TRANSITIONS",
    "NEXT_STATUS",
    "PAID_STATUSES",
    "TERMINAL_STATUSES",
    "CASH_PAYMENT_PREFIX",
    "can_transition",
    "parse_status",
    "OrderError",
    "NotFound",
    "ValidationFailure",
    "Conflict",
    "AlreadyProcessed",
    "InUse",
    "GatewayFailure",
    "GatewayError",
    "GatewayAccountInvalid",
    "SignatureError",
]
