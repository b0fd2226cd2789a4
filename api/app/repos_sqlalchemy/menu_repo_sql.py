"""SQLAlchemy helpers for a restaurant's menu items.

Orders snapshot item prices, so editing or hiding an item never changes an
order already placed. Items that appear on an order can only be hidden; the
delete helper refuses them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List

from sqlalchemy import delete, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models_tenant import MenuItem, OrderItem, utcnow


async def list_items(
    session: AsyncSession, restaurant_id: str, include_unavailable: bool = False
) -> List[MenuItem]:
    """Return ``restaurant_id``'s items ordered by category then name."""

    stmt = select(MenuItem).where(MenuItem.restaurant_id == restaurant_id)
    if not include_unavailable:
        stmt = stmt.where(MenuItem.available.is_(True))
    result = await session.execute(stmt.order_by(MenuItem.category, MenuItem.name))
    return list(result.scalars())


async def get_item(
    session: AsyncSession, restaurant_id: str, item_id: str
) -> MenuItem | None:
    result = await session.execute(
        select(MenuItem)
        .where(MenuItem.id == item_id, MenuItem.restaurant_id == restaurant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_item(
    session: AsyncSession,
    restaurant_id: str,
    *,
    name: str,
    price: Decimal,
    category: str,
    description: str | None = None,
    available: bool = True,
) -> MenuItem:
    item = MenuItem(
        restaurant_id=restaurant_id,
        name=name.strip(),
        price=price,
        category=category.strip(),
        description=description,
        available=available,
    )
    session.add(item)
    await session.commit()
    return item


async def update_item(
    session: AsyncSession, restaurant_id: str, item_id: str, **values
) -> bool:
    """Persist ``values`` on the item; ``False`` when it is not the restaurant's."""

    result = await session.execute(
        update(MenuItem)
        .where(MenuItem.id == item_id, MenuItem.restaurant_id == restaurant_id)
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


async def is_ordered(session: AsyncSession, item_id: str) -> bool:
    """Return ``True`` when any order line references ``item_id``."""

    return bool(
        await session.scalar(select(exists().where(OrderItem.menu_item_id == item_id)))
    )


async def delete_item(session: AsyncSession, restaurant_id: str, item_id: str) -> bool:
    result = await session.execute(
        delete(MenuItem)
        .where(MenuItem.id == item_id, MenuItem.restaurant_id == restaurant_id)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


__all__ = [
    "list_items",
    "get_item",
    "create_item",
    "update_item",
    "is_ordered",
    "delete_item",
]
