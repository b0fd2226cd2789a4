"""Payment-processor onboarding for restaurants.

Restaurants receive card payouts through a connected account. Until the
gateway reports the account fully onboarded, card payments fall back to the
platform account (see :meth:`OrderLifecycle.create_card_payment_intent`).
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings

from ..domain import Conflict, GatewayAccountInvalid, GatewayError, GatewayFailure, NotFound
from ..domain import ValidationFailure
from ..models_tenant import Restaurant
from ..providers.base import PaymentGateway
from ..repos_sqlalchemy import restaurants_repo_sql

logger = logging.getLogger("api.gateway")

REFRESH_PATH = "/dashboard/payments/refresh"
RETURN_PATH = "/dashboard/payments/success"
ACCOUNT_RESET_MESSAGE = "Invalid payment account cleaned up. Please start onboarding again."


async def _restaurant(session: AsyncSession, restaurant_id: str) -> Restaurant:
    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    if restaurant is None:
        raise NotFound("Restaurant not found")
    return restaurant


async def start_onboarding(
    session: AsyncSession,
    gateway: PaymentGateway,
    restaurant_id: str,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Create a connected account and return its onboarding link."""

    settings = settings or get_settings()
    restaurant = await _restaurant(session, restaurant_id)
    if restaurant.stripe_account_id:
        raise Conflict("Payment account already exists")
    email, name = restaurant.email, restaurant.name
    base = settings.public_base_url.rstrip("/")
    try:
        account_id = await gateway.create_connected_account(email, name)
        await restaurants_repo_sql.update_restaurant(
            session, restaurant_id, stripe_account_id=account_id, stripe_onboarded=False
        )
        url = await gateway.create_onboarding_link(
            account_id, refresh_url=base + REFRESH_PATH, return_url=base + RETURN_PATH
        )
    except GatewayError as exc:
        logger.error("onboarding failed for restaurant %s: %s", restaurant_id, exc)
        raise GatewayFailure("Payment provider error") from exc
    logger.info(
        "connected account %s created for restaurant %s",
        account_id,
        restaurant_id,
        extra={"restaurant": restaurant_id},
    )
    return {"account_id": account_id, "onboarding_url": url}


async def account_status(
    session: AsyncSession, gateway: PaymentGateway, restaurant_id: str
) -> dict[str, Any]:
    """Refresh and return the restaurant's onboarding flags.

    A revoked or unknown account is cleared so the restaurant can start over.
    """

    restaurant = await _restaurant(session, restaurant_id)
    account_id = restaurant.stripe_account_id
    stored = bool(restaurant.stripe_onboarded)
    if not account_id:
        return {"has_account": False, "onboarded": False}
    try:
        status = await gateway.retrieve_account_status(account_id)
    except GatewayAccountInvalid as exc:
        logger.warning(
            "connected account %s is invalid, clearing it: %s",
            account_id,
            exc,
            extra={"restaurant": restaurant_id},
        )
        await restaurants_repo_sql.clear_gateway_account(session, restaurant_id)
        return {"has_account": False, "onboarded": False, "message": ACCOUNT_RESET_MESSAGE}
    except GatewayError as exc:
        raise GatewayFailure("Payment provider error") from exc

    if status.onboarded != stored:
        await restaurants_repo_sql.update_restaurant(
            session, restaurant_id, stripe_onboarded=status.onboarded
        )
        logger.info(
            "restaurant %s onboarded=%s", restaurant_id, status.onboarded,
            extra={"restaurant": restaurant_id},
        )
    return {
        "has_account": True,
        "onboarded": status.onboarded,
        "account_id": account_id,
        "charges_enabled": status.charges_enabled,
        "payouts_enabled": status.payouts_enabled,
        "details_submitted": status.details_submitted,
    }


async def set_platform_fee(
    session: AsyncSession, restaurant_id: str, percent: Any
) -> Decimal:
    """Store the restaurant's platform fee percentage (0 to 100)."""

    try:
        value = Decimal(str(percent))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailure("Platform fee must be a number") from exc
    if not value.is_finite() or value < 0 or value > 100:
        raise ValidationFailure(
            "Platform fee must be between 0 and 100", details={"platform_fee_percent": str(percent)}
        )
    await _restaurant(session, restaurant_id)
    value = value.quantize(Decimal("0.01"))
    await restaurants_repo_sql.update_restaurant(
        session, restaurant_id, platform_fee_percent=value
    )
    return value


__all__ = ["start_onboarding", "account_status", "set_platform_fee", "ACCOUNT_RESET_MESSAGE"]
