# routes_menu.py

"""Menu routes: the public menu a table's QR code opens and staff editing.

The public menu lists available items only and is cached in Redis for a
minute under ``menu:<restaurant_id>``. Every staff edit drops that key.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .deps.tenant import get_tenant_id
from .domain import InUse, NotFound
from .repos_sqlalchemy import menu_repo_sql, restaurants_repo_sql
from .schemas import (
    MenuItemAvailability,
    MenuItemIn,
    menu_item_to_dict,
    public_restaurant_to_dict,
)
from .utils.responses import ok

router = APIRouter(tags=["menu"])

logger = logging.getLogger("api.menu")

MENU_CACHE_TTL = 60


def _cache_key(restaurant_id: str) -> str:
    return f"menu:{restaurant_id}"


async def _forget_menu(request: Request, restaurant_id: str) -> None:
    redis = getattr(request.app.state, "redis", None)
    if redis is not None:
        await redis.delete(_cache_key(restaurant_id))


async def _restaurant_or_404(session: AsyncSession, restaurant_id: str):
    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    if restaurant is None:
        raise NotFound("Restaurant not found", details={"restaurant_id": restaurant_id})
    return restaurant


@router.get("/api/public/restaurant/{restaurant_id}")
async def public_restaurant(
    restaurant_id: str, session: AsyncSession = Depends(get_session)
) -> dict:
    return ok(public_restaurant_to_dict(await _restaurant_or_404(session, restaurant_id)))


@router.get("/api/public/menu/{restaurant_id}")
async def public_menu(
    restaurant_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Available items with the ids and prices an order must quote."""

    redis = getattr(request.app.state, "redis", None)
    key = _cache_key(restaurant_id)
    if redis is not None:
        cached = await redis.get(key)
        if cached:
            return ok(json.loads(cached))
    await _restaurant_or_404(session, restaurant_id)
    items = [menu_item_to_dict(i) for i in await menu_repo_sql.list_items(session, restaurant_id)]
    if redis is not None:
        await redis.set(key, json.dumps(items), ex=MENU_CACHE_TTL)
    return ok(items)


@router.get("/api/menu-items")
async def list_menu_items(
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Every item of the restaurant, hidden ones included."""

    items = await menu_repo_sql.list_items(session, restaurant_id, include_unavailable=True)
    return ok([menu_item_to_dict(i) for i in items])


@router.post("/api/menu-items")
async def create_menu_item(
    payload: MenuItemIn,
    request: Request,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    item = await menu_repo_sql.create_item(session, restaurant_id, **payload.model_dump())
    await _forget_menu(request, restaurant_id)
    logger.info("menu item %s created", item.id, extra={"restaurant": restaurant_id})
    return ok(menu_item_to_dict(item))


async def _save_item(request, session, restaurant_id, item_id, values) -> dict:
    if not await menu_repo_sql.update_item(session, restaurant_id, item_id, **values):
        raise NotFound("Menu item not found", details={"menu_item_id": item_id})
    await _forget_menu(request, restaurant_id)
    item = await menu_repo_sql.get_item(session, restaurant_id, item_id)
    return ok(menu_item_to_dict(item))


@router.put("/api/menu-items/{item_id}")
async def update_menu_item(
    item_id: str,
    payload: MenuItemIn,
    request: Request,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Replace name, description, price, category and availability."""

    return await _save_item(request, session, restaurant_id, item_id, payload.model_dump())


@router.patch("/api/menu-items/{item_id}")
async def set_menu_item_availability(
    item_id: str,
    payload: MenuItemAvailability,
    request: Request,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    return await _save_item(
        request, session, restaurant_id, item_id, {"available": payload.available}
    )


@router.delete("/api/menu-items/{item_id}")
async def delete_menu_item(
    item_id: str,
    request: Request,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Delete an item that no order references; ordered items can only be hidden."""

    if await menu_repo_sql.get_item(session, restaurant_id, item_id) is None:
        raise NotFound("Menu item not found", details={"menu_item_id": item_id})
    if await menu_repo_sql.is_ordered(session, item_id):
        raise InUse(
            "Menu item appears on orders; mark it unavailable instead",
            details={"menu_item_id": item_id},
        )
    await menu_repo_sql.delete_item(session, restaurant_id, item_id)
    await _forget_menu(request, restaurant_id)
    return ok({"deleted": item_id})
