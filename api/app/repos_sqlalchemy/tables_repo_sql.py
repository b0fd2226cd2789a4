"""SQLAlchemy helpers for a restaurant's dining tables."""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import OrderStatus
from ..models_tenant import Order, Table


def qr_code_url(base_url: str, restaurant_id: str, number: int) -> str:
    """Return the menu page a table's QR code points at."""

    return f"{base_url.rstrip('/')}/menu/{restaurant_id}/{number}"


async def list_tables(session: AsyncSession, restaurant_id: str) -> List[Table]:
    result = await session.execute(
        select(Table).where(Table.restaurant_id == restaurant_id).order_by(Table.number)
    )
    return list(result.scalars())


async def get_table(session: AsyncSession, restaurant_id: str, table_id: str) -> Table | None:
    result = await session.execute(
        select(Table)
        .where(Table.id == table_id, Table.restaurant_id == restaurant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def number_taken(
    session: AsyncSession, restaurant_id: str, number: int, exclude_id: str | None = None
) -> bool:
    """Return ``True`` when another table of the restaurant uses ``number``."""

    stmt = select(Table.id).where(Table.restaurant_id == restaurant_id, Table.number == number)
    if exclude_id is not None:
        stmt = stmt.where(Table.id != exclude_id)
    return (await session.execute(stmt)).first() is not None


async def create_table(
    session: AsyncSession,
    restaurant_id: str,
    *,
    number: int,
    capacity: int | None,
    qr_code_url: str,
) -> Table:
    table = Table(
        restaurant_id=restaurant_id,
        number=number,
        capacity=capacity,
        qr_code_url=qr_code_url,
    )
    session.add(table)
    await session.commit()
    return table


async def save(session: AsyncSession, table: Table) -> Table:
    await session.commit()
    return table


async def count_orders(
    session: AsyncSession, table_id: str, statuses: Iterable[OrderStatus] | None = None
) -> int:
    """Count orders placed at ``table_id``, optionally only in ``statuses``."""

    stmt = select(func.count()).select_from(Order).where(Order.table_id == table_id)
    if statuses is not None:
        stmt = stmt.where(Order.status.in_([OrderStatus(s).value for s in statuses]))
    return int(await session.scalar(stmt) or 0)


async def delete_table(session: AsyncSession, restaurant_id: str, table_id: str) -> bool:
    result = await session.execute(
        delete(Table)
        .where(Table.id == table_id, Table.restaurant_id == restaurant_id)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


__all__ = [
    "qr_code_url",
    "list_tables",
    "get_table",
    "number_taken",
    "create_table",
    "save",
    "count_orders",
    "delete_table",
]
