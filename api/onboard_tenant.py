# onboard_tenant.py

"""Helper utilities for provisioning a new restaurant.

:func:`onboard_restaurant` creates the restaurant login, its numbered tables
and an optional starter menu in the shared database. :func:`run_migrations`
brings a database up to the latest schema with Alembic first.

Run ``python -m api.onboard_tenant --help`` for the command line form.
"""

from __future__ import annotations

import argparse
import asyncio
import subprocess
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from api.app import db as app_db
from api.app.auth import hash_password
from api.app.models_tenant import MenuItem, Restaurant, Table
from api.app.repos_sqlalchemy.tables_repo_sql import qr_code_url
from config import get_settings


def run_migrations(db_url: str) -> None:
    """Apply Alembic migrations to ``db_url``.

    Raises
    ------
    subprocess.CalledProcessError
        If Alembic migrations fail.
    """

    alembic_cfg = Path(__file__).with_name("alembic.ini")
    subprocess.run(
        ["alembic", "-c", str(alembic_cfg), "-x", f"db_url={db_url}", "upgrade", "head"],
        check=True,
    )


async def onboard_restaurant(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    *,
    tables: int = 0,
    menu: Iterable[Tuple[str, Decimal]] = (),
    base_url: str | None = None,
) -> Restaurant:
    """Create a restaurant with ``tables`` numbered tables and ``menu`` items.

    Each table gets the QR URL of its menu page under ``base_url``.
    """

    base = base_url or get_settings().public_base_url
    restaurant = Restaurant(
        name=name.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password),
    )
    session.add(restaurant)
    await session.flush()
    for number in range(1, tables + 1):
        session.add(
            Table(
                restaurant_id=restaurant.id,
                number=number,
                qr_code_url=qr_code_url(base, restaurant.id, number),
            )
        )
    for item_name, price in menu:
        session.add(
            MenuItem(restaurant_id=restaurant.id, name=item_name, price=Decimal(str(price)))
        )
    await session.commit()
    return restaurant


def _parse_menu(values: list[str]) -> list[Tuple[str, Decimal]]:
    items = []
    for value in values:
        item_name, _, price = value.rpartition("=")
        if not item_name:
            raise ValueError(f"menu item must be NAME=PRICE, got {value!r}")
        items.append((item_name, Decimal(price)))
    return items


async def _main(args: argparse.Namespace) -> None:
    url = args.db_url or get_settings().database_url
    factory, engine = app_db.init_engine(url)
    if args.create_schema:
        await app_db.create_all(engine)
    async with factory() as session:
        restaurant = await onboard_restaurant(
            session,
            args.name,
            args.email,
            args.password,
            tables=args.tables,
            menu=_parse_menu(args.menu),
        )
        print(restaurant.id)
    await engine.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create a restaurant account")
    parser.add_argument("name")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--tables", type=int, default=10)
    parser.add_argument("--menu", nargs="*", default=[], metavar="NAME=PRICE")
    parser.add_argument("--db-url", default=None)
    parser.add_argument("--migrate", action="store_true", help="run alembic upgrade first")
    parser.add_argument("--create-schema", action="store_true", help="create tables directly")
    args = parser.parse_args(argv)
    if args.migrate:
        run_migrations(args.db_url or get_settings().database_url)
    asyncio.run(_main(args))


if __name__ == "__main__":
    main()


__all__ = ["onboard_restaurant", "run_migrations", "main"]
