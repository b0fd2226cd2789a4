"""Stripe Connect implementation of :class:`PaymentGateway`.

The secret key is passed on every call instead of being assigned to the
module-global ``stripe.api_key`` so several gateways (e.g. test and live) can
coexist in one process. The SDK is synchronous; calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import stripe

from ..domain.errors import GatewayAccountInvalid, GatewayError, SignatureError
from .base import AccountStatus, PaymentIntent, WebhookEvent

logger = logging.getLogger("api.gateway")

PRODUCT_DESCRIPTION = "Restaurant table ordering and pickup"


def _is_account_invalid(exc: stripe.StripeError) -> bool:
    return getattr(exc, "code", None) == "account_invalid" or getattr(
        exc, "http_status", None
    ) == 403


class StripeGateway:
    """Payment gateway backed by the Stripe API."""

    def __init__(self, secret_key: str, webhook_secret: Optional[str] = None) -> None:
        if not secret_key:
            raise ValueError("stripe secret key is required")
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, api_key=self._secret_key, **kwargs)
        except stripe.StripeError as exc:
            if _is_account_invalid(exc):
                logger.warning("stripe rejected connected account: %s", exc.code)
                raise GatewayAccountInvalid(str(exc)) from exc
            logger.error("stripe call %s failed: %s", getattr(fn, "__qualname__", fn), exc)
            raise GatewayError(str(exc)) from exc

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
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        if destination:
            params["transfer_data"] = {"destination": destination}
            if application_fee is not None:
                params["application_fee_amount"] = application_fee
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        intent = await self._call(stripe.PaymentIntent.create, **params)
        return PaymentIntent(
            id=intent["id"],
            client_secret=intent["client_secret"],
            amount=amount,
            currency=currency,
            destination=destination,
            application_fee=application_fee if destination else None,
            metadata=dict(metadata or {}),
        )

    async def retrieve_account_status(self, account_id: str) -> AccountStatus:
        account = await self._call(stripe.Account.retrieve, account_id)
        return AccountStatus(
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
            details_submitted=bool(account.get("details_submitted")),
        )

    async def create_connected_account(self, email: str, business_name: str) -> str:
        account = await self._call(
            stripe.Account.create,
            type="express",
            email=email,
            business_profile={
                "name": business_name,
                "product_description": PRODUCT_DESCRIPTION,
            },
        )
        return account["id"]

    async def create_onboarding_link(
        self, account_id: str, refresh_url: str, return_url: str
    ) -> str:
        link = await self._call(
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link["url"]

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        if not self._webhook_secret:
            raise SignatureError("webhook secret not configured")
        if not signature:
            raise SignatureError("missing signature")
        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise SignatureError("invalid signature") from exc
        except ValueError as exc:
            raise SignatureError("invalid payload") from exc
        event = json.loads(payload)
        return WebhookEvent(
            id=event["id"],
            type=event["type"],
            data=event["data"]["object"],
        )
