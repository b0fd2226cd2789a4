from decimal import Decimal

import pytest
from sqlalchemy import select

from api.app.auth import verify_password
from api.app.models_tenant import MenuItem, Table
from api.onboard_tenant import _parse_menu, onboard_restaurant

pytestmark = pytest.mark.anyio


async def test_onboard_restaurant_creates_tables_and_menu(session):
    restaurant = await onboard_restaurant(
        session,
        " Taqueria ",
        "Owner@Taqueria.test",
        "tortilla-pass",
        tables=3,
        menu=[("Taco", Decimal("3.50")), ("Horchata", Decimal("2.00"))],
        base_url="https://order.example/",
    )

    assert restaurant.name == "Taqueria"
    assert restaurant.email == "owner@taqueria.test"
    assert verify_password("tortilla-pass", restaurant.password_hash)

    tables = (
        await session.execute(
            select(Table).where(Table.restaurant_id == restaurant.id).order_by(Table.number)
        )
    ).scalars().all()
    assert [t.number for t in tables] == [1, 2, 3]
    assert tables[0].qr_code_url == f"https://order.example/menu/{restaurant.id}/1"

    menu = (
        await session.execute(select(MenuItem).where(MenuItem.restaurant_id == restaurant.id))
    ).scalars().all()
    assert {m.name: m.price for m in menu} == {"Taco": Decimal("3.50"), "Horchata": Decimal("2.00")}


def test_parse_menu():
    assert _parse_menu(["Fish = Chips=7.25"]) == [("Fish = Chips", Decimal("7.25"))]
    with pytest.raises(ValueError):
        _parse_menu(["no-price"])
