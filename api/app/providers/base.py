"""Base interface for payment gateway providers.

The lifecycle service only depends on :class:`PaymentGateway`; concrete
providers are built by the host application from configuration and injected
per request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


@dataclass
class PaymentIntent:
    """A card charge awaiting client-side confirmation."""

    id: str
    client_secret: str
    amount: int
    currency: str
    destination: Optional[str] = None
    application_fee: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class AccountStatus:
    """Onboarding flags reported by the gateway for a connected account."""

    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool

    @property
    def onboarded(self) -> bool:
        return self.charges_enabled and self.payouts_enabled and self.details_submitted


@dataclass
class WebhookEvent:
    """A verified gateway event."""

    id: str
    type: str
    data: Dict[str, Any]


class PaymentGateway(Protocol):
    """Capabilities the order lifecycle needs from a payment processor."""

    async def create_intent(
        self,
        amount: int,
        currency: str,
        *,
        destination: Optional[str] = None,
        application_fee: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """Create a payment intent for ``amount`` minor units."""

    async def retrieve_account_status(self, account_id: str) -> AccountStatus:
        """Return onboarding flags for ``account_id``."""

    async def create_connected_account(self, email: str, business_name: str) -> str:
        """Create an express connected account and return its id."""

    async def create_onboarding_link(
        self, account_id: str, refresh_url: str, return_url: str
    ) -> str:
        """Return a hosted onboarding URL for ``account_id``."""

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        """Verify ``signature`` over ``payload`` and decode the event."""
