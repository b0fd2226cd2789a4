"""Error kinds raised by the order lifecycle.

Routes never see raw persistence or gateway exceptions; the coordinator maps
them onto these classes and a single exception handler in ``main`` renders
them with the standard error envelope.
"""

from __future__ import annotations

from typing import Any


class OrderError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500
    code = "ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(OrderError):
    """An order, table, menu item or restaurant lookup failed."""

    status_code = 404
    code = "NOT_FOUND"


class ValidationFailure(OrderError):
    """Input was rejected before any state was touched."""

    status_code = 422
    code = "VALIDATION"


class Conflict(OrderError):
    """A business rule blocked the requested transition.

    ``current_status`` is the freshly read status of the order so clients can
    redirect to order tracking instead of retrying the payment.
    """

    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        current_status: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        data = dict(details or {})
        if current_status is not None:
            data["status"] = current_status
        super().__init__(message, data)
        self.current_status = current_status


class InUse(OrderError):
    """A table or menu item cannot be changed because other rows depend on it."""

    status_code = 409
    code = "CONFLICT"


class AlreadyProcessed(Conflict):
    """The order is already paid; a second payment or confirmation was refused."""

    code = "ALREADY_PROCESSED"


class GatewayFailure(OrderError):
    """The payment gateway failed or rejected the restaurant's account."""

    status_code = 502
    code = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        account_reset: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        data = dict(details or {})
        if account_reset:
            data["account_reset"] = True
        super().__init__(message, data)
        self.account_reset = account_reset


class GatewayError(Exception):
    """Raised by gateway providers for any processor-side failure."""


class GatewayAccountInvalid(GatewayError):
    """The connected account is invalid, revoked or not accessible."""


class SignatureError(GatewayError):
    """A webhook payload failed signature verification."""


__all__ = [
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
