"""Staff routes for a restaurant's dining tables and their QR menu links."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .db import get_session
from .deps.tenant import get_tenant_id
from .domain import InUse, NotFound
from .domain.order_status import ACTIVE_STATUSES
from .repos_sqlalchemy import tables_repo_sql
from .schemas import TableIn, table_to_dict
from .utils.responses import ok

router = APIRouter(prefix="/api/tables", tags=["tables"])

logger = logging.getLogger("api.tables")


async def _free_number(session: AsyncSession, restaurant_id: str, number: int, exclude_id=None):
    if await tables_repo_sql.number_taken(session, restaurant_id, number, exclude_id):
        raise InUse("A table with this number already exists", details={"number": number})


async def _table_or_404(session: AsyncSession, restaurant_id: str, table_id: str):
    table = await tables_repo_sql.get_table(session, restaurant_id, table_id)
    if table is None:
        raise NotFound("Table not found", details={"table_id": table_id})
    return table


@router.get("")
async def list_tables(
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    tables = await tables_repo_sql.list_tables(session, restaurant_id)
    return ok([table_to_dict(t) for t in tables])


@router.post("")
async def create_table(
    payload: TableIn,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Add a table; its QR code opens the menu for that table number."""

    await _free_number(session, restaurant_id, payload.number)
    table = await tables_repo_sql.create_table(
        session,
        restaurant_id,
        number=payload.number,
        capacity=payload.capacity,
        qr_code_url=tables_repo_sql.qr_code_url(
            get_settings().public_base_url, restaurant_id, payload.number
        ),
    )
    logger.info("table %s added", payload.number, extra={"restaurant": restaurant_id})
    return ok(table_to_dict(table))


@router.put("/{table_id}")
async def update_table(
    table_id: str,
    payload: TableIn,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Renumber a table or change its capacity; the QR link follows the number."""

    table = await _table_or_404(session, restaurant_id, table_id)
    await _free_number(session, restaurant_id, payload.number, exclude_id=table_id)
    table.number = payload.number
    table.capacity = payload.capacity
    table.qr_code_url = tables_repo_sql.qr_code_url(
        get_settings().public_base_url, restaurant_id, payload.number
    )
    return ok(table_to_dict(await tables_repo_sql.save(session, table)))


@router.delete("/{table_id}")
async def delete_table(
    table_id: str,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Remove a table that has never been ordered from."""

    await _table_or_404(session, restaurant_id, table_id)
    if await tables_repo_sql.count_orders(session, table_id, ACTIVE_STATUSES):
        raise InUse(
            "Cannot delete table with active orders. Please complete or cancel all orders first.",
            details={"table_id": table_id},
        )
    if await tables_repo_sql.count_orders(session, table_id):
        raise InUse("Table has order history and cannot be deleted", details={"table_id": table_id})
    await tables_repo_sql.delete_table(session, restaurant_id, table_id)
    return ok({"deleted": table_id})
