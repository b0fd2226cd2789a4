"""SQLAlchemy helpers for restaurant (tenant) records."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models_tenant import Restaurant, utcnow


async def get_restaurant(session: AsyncSession, restaurant_id: str) -> Restaurant | None:
    result = await session.execute(
        select(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_email(session: AsyncSession, email: str) -> Restaurant | None:
    result = await session.execute(
        select(Restaurant).where(Restaurant.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def create_restaurant(
    session: AsyncSession, *, name: str, email: str, password_hash: str
) -> Restaurant:
    """Insert a restaurant and return it with its generated id."""

    restaurant = Restaurant(
        name=name.strip(), email=email.strip().lower(), password_hash=password_hash
    )
    session.add(restaurant)
    await session.commit()
    return restaurant


async def update_restaurant(session: AsyncSession, restaurant_id: str, **values) -> None:
    """Persist ``values`` on ``restaurant_id`` and commit."""

    await session.execute(
        update(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def clear_gateway_account(session: AsyncSession, restaurant_id: str) -> None:
    """Forget the connected account so the restaurant re-onboards."""

    await update_restaurant(
        session, restaurant_id, stripe_account_id=None, stripe_onboarded=False
    )
