"""Payout onboarding routes for restaurants."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .deps.lifecycle import get_gateway
from .deps.tenant import get_tenant_id
from .providers.base import PaymentGateway
from .schemas import PlatformFeeUpdate
from .services import connect
from .utils.responses import ok

router = APIRouter(tags=["payouts"])


@router.post("/api/stripe/connect")
async def start_onboarding(
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
) -> dict:
    """Create a connected account and return the onboarding URL."""

    return ok(await connect.start_onboarding(session, gateway, restaurant_id))


@router.get("/api/stripe/status")
async def onboarding_status(
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
) -> dict:
    return ok(await connect.account_status(session, gateway, restaurant_id))


@router.put("/api/restaurant/platform-fee")
async def update_platform_fee(
    payload: PlatformFeeUpdate,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    value = await connect.set_platform_fee(session, restaurant_id, payload.platform_fee_percent)
    return ok({"platform_fee_percent": float(value)})
