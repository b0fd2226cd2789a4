"""Stub payment gateway used for development and tests.

Intents and connected accounts live in memory. Webhooks are signed with the
HMAC scheme in :mod:`api.app.utils.webhook_signing` so the verification path
is exercised exactly like a real processor's.
"""

from __future__ import annotations

import itertools
import json
import secrets
from typing import Dict, List, Optional, Set

from ..domain.errors import GatewayAccountInvalid, SignatureError
from ..utils import webhook_signing
from .base import AccountStatus, PaymentIntent, WebhookEvent


class StubGateway:
    """In-memory gateway recording every call it receives."""

    def __init__(self, webhook_secret: str = "whsec_stub") -> None:
        self.webhook_secret = webhook_secret
        self.intents: List[PaymentIntent] = []
        self.accounts: Dict[str, AccountStatus] = {}
        self.revoked: Set[str] = set()
        self._seq = itertools.count(1)

    def _check(self, account_id: str) -> None:
        if account_id in self.revoked:
            raise GatewayAccountInvalid(f"account {account_id} is not accessible")

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
        if destination:
            self._check(destination)
        intent_id = f"pi_stub_{next(self._seq)}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{secrets.token_hex(8)}",
            amount=amount,
            currency=currency,
            destination=destination,
            application_fee=application_fee if destination else None,
            metadata=dict(metadata or {}),
        )
        self.intents.append(intent)
        return intent

    async def retrieve_account_status(self, account_id: str) -> AccountStatus:
        self._check(account_id)
        if account_id not in self.accounts:
            raise GatewayAccountInvalid(f"no such account {account_id}")
        return self.accounts[account_id]

    async def create_connected_account(self, email: str, business_name: str) -> str:
        account_id = f"acct_stub_{next(self._seq)}"
        self.accounts[account_id] = AccountStatus(False, False, False)
        return account_id

    async def create_onboarding_link(
        self, account_id: str, refresh_url: str, return_url: str
    ) -> str:
        self._check(account_id)
        return f"https://connect.stub.local/setup/{account_id}?return_url={return_url}"

    def complete_onboarding(self, account_id: str) -> None:
        """Mark ``account_id`` as fully onboarded."""

        self.accounts[account_id] = AccountStatus(True, True, True)

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        if not webhook_signing.verify(self.webhook_secret, payload, signature):
            raise SignatureError("invalid signature")
        try:
            event = json.loads(payload)
            return WebhookEvent(
                id=event["id"], type=event["type"], data=event["data"]["object"]
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise SignatureError("invalid payload") from exc
