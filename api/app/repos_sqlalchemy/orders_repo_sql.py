"""SQLAlchemy-backed repository helpers for orders.

These helpers implement the order store without any side effects beyond
database mutations. They operate on ``AsyncSession`` instances and snapshot
unit prices onto order items so that later menu edits never change a placed
order.

Status changes go through :func:`transition`, a single conditional
``UPDATE ... WHERE status IN (...)``. Its row count tells the caller whether
the order was still in an allowed state at write time, which closes the
read-then-write race between concurrent confirmations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain import OrderStatus
from ..models_tenant import MenuItem, Order, OrderItem, Table, utcnow
from . import TenantGuard


@dataclass
class OrderLine:
    """One requested line of a new order."""

    menu_item_id: str
    quantity: int
    price: Decimal
    comment: Optional[str] = None


def _with_details(stmt):
    return stmt.options(
        selectinload(Order.items).selectinload(OrderItem.menu_item),
        selectinload(Order.restaurant),
        selectinload(Order.table),
    ).execution_options(populate_existing=True)


async def find_table(
    session: AsyncSession, restaurant_id: str, number: int
) -> Table | None:
    """Return the table numbered ``number`` in ``restaurant_id``."""

    result = await session.execute(
        select(Table).where(Table.restaurant_id == restaurant_id, Table.number == number)
    )
    return result.scalar_one_or_none()


async def known_menu_items(
    session: AsyncSession, restaurant_id: str, item_ids: Iterable[str]
) -> set[str]:
    """Return the subset of ``item_ids`` that belong to ``restaurant_id``."""

    ids = set(item_ids)
    if not ids:
        return set()
    result = await session.execute(
        select(MenuItem.id).where(
            MenuItem.restaurant_id == restaurant_id, MenuItem.id.in_(ids)
        )
    )
    return set(result.scalars())


async def create_order(
    session: AsyncSession,
    *,
    restaurant_id: str,
    table_id: str,
    customer_name: str | None,
    lines: List[OrderLine],
    total: Decimal,
    device_id: str | None = None,
) -> str:
    """Persist an order and its items in one commit and return its id."""

    order = Order(
        restaurant_id=restaurant_id,
        table_id=table_id,
        customer_name=customer_name,
        total=total,
        status=OrderStatus.PENDING.value,
        device_id=device_id,
    )
    order.items = [
        OrderItem(
            menu_item_id=line.menu_item_id,
            position=pos,
            quantity=line.quantity,
            price=line.price,
            comment=line.comment,
        )
        for pos, line in enumerate(lines)
    ]
    session.add(order)
    await session.commit()
    return order.id


async def get_order(
    session: AsyncSession, order_id: str, restaurant_id: str | None = None
) -> Order | None:
    """Fetch ``order_id`` with items, menu names, restaurant and table."""

    stmt = TenantGuard.scope(
        _with_details(select(Order).where(Order.id == order_id)), Order, restaurant_id
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_since(
    session: AsyncSession, restaurant_id: str, cutoff: datetime
) -> List[Order]:
    """Return ``restaurant_id``'s orders created at or after ``cutoff``, newest first."""

    TenantGuard.assert_tenant(restaurant_id)
    result = await session.execute(
        _with_details(
            select(Order)
            .where(Order.restaurant_id == restaurant_id, Order.created_at >= cutoff)
            .order_by(Order.created_at.desc())
        )
    )
    return list(result.scalars())


async def list_by_device(
    session: AsyncSession,
    device_id: str,
    restaurant_id: str | None = None,
    table_number: int | None = None,
) -> List[Order]:
    """Return orders placed from ``device_id``, newest first."""

    stmt = select(Order).where(Order.device_id == device_id)
    stmt = TenantGuard.scope(stmt, Order, restaurant_id)
    if table_number is not None:
        stmt = stmt.join(Table, Order.table_id == Table.id).where(
            Table.number == table_number
        )
    result = await session.execute(
        _with_details(stmt.order_by(Order.created_at.desc()))
    )
    return list(result.scalars())


async def current_status(
    session: AsyncSession, order_id: str, restaurant_id: str | None = None
) -> OrderStatus | None:
    """Read the latest committed status of ``order_id``."""

    stmt = TenantGuard.scope(
        select(Order.status).where(Order.id == order_id), Order, restaurant_id
    )
    value = (await session.execute(stmt)).scalar_one_or_none()
    return OrderStatus(value) if value is not None else None


async def transition(
    session: AsyncSession,
    order_id: str,
    allowed_from: Iterable[OrderStatus],
    restaurant_id: str | None = None,
    **values,
) -> bool:
    """Apply ``values`` only if the order's status is in ``allowed_from``.

    Commits and returns ``True`` when exactly one row was updated.
    """

    allowed = [OrderStatus(s).value for s in allowed_from]
    if "status" in values:
        values["status"] = OrderStatus(values["status"]).value
    stmt = TenantGuard.scope(
        update(Order).where(Order.id == order_id, Order.status.in_(allowed)),
        Order,
        restaurant_id,
    )
    result = await session.execute(
        stmt.values(updated_at=utcnow(), **values).execution_options(
            synchronize_session=False
        )
    )
    await session.commit()
    return result.rowcount == 1


__all__ = [
    "OrderLine",
    "find_table",
    "known_menu_items",
    "create_order",
    "get_order",
    "list_since",
    "list_by_device",
    "current_status",
    "transition",
]
