import pytest

from conftest import seed_restaurant, staff_headers

pytestmark = pytest.mark.anyio


async def _order_at(client, seed, table_number=1):
    resp = await client.post(
        "/api/orders",
        json={
            "restaurant_id": seed.restaurant_id,
            "table_number": table_number,
            "customer_name": "Ana",
            "items": [{"menu_item_id": seed.burger_id, "quantity": 1, "price": "10.00"}],
        },
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def test_public_menu_feeds_an_order(client, seed):
    restaurant = (await client.get(f"/api/public/restaurant/{seed.restaurant_id}")).json()["data"]
    assert restaurant == {"id": seed.restaurant_id, "name": "Bistro"}

    menu = (await client.get(f"/api/public/menu/{seed.restaurant_id}")).json()["data"]
    assert [(i["name"], i["price"]) for i in menu] == [("Burger", 10.0), ("Fries", 5.5)]

    resp = await client.post(
        "/api/orders",
        json={
            "restaurant_id": seed.restaurant_id,
            "table_number": 1,
            "customer_name": "Ana",
            "items": [{"menu_item_id": i["id"], "quantity": 1, "price": str(i["price"])} for i in menu],
        },
    )
    assert resp.json()["data"]["total"] == 15.5


async def test_hidden_items_leave_the_cached_public_menu(client, seed, redis):
    url = f"/api/public/menu/{seed.restaurant_id}"
    assert len((await client.get(url)).json()["data"]) == 2
    assert await redis.get(f"menu:{seed.restaurant_id}")

    resp = await client.patch(
        f"/api/menu-items/{seed.fries_id}",
        json={"available": False},
        headers=staff_headers(seed.restaurant_id),
    )
    assert resp.json()["data"]["available"] is False

    assert [i["name"] for i in (await client.get(url)).json()["data"]] == ["Burger"]
    staff_view = (await client.get("/api/menu-items", headers=staff_headers(seed.restaurant_id))).json()
    assert len(staff_view["data"]) == 2


async def test_public_lookups_of_unknown_restaurant(client):
    assert (await client.get("/api/public/restaurant/nope")).status_code == 404
    assert (await client.get("/api/public/menu/nope")).status_code == 404


async def test_staff_menu_item_editing(client, seed, session):
    staff = staff_headers(seed.restaurant_id)
    assert (await client.get("/api/menu-items")).status_code == 401

    created = await client.post(
        "/api/menu-items",
        json={"name": "Lemonade", "price": "3.20", "category": "Drinks"},
        headers=staff,
    )
    item = created.json()["data"]
    assert item["category"] == "Drinks"
    assert item["available"] is True

    resp = await client.put(
        f"/api/menu-items/{item['id']}",
        json={"name": "Lemonade", "price": "3.50", "category": "Drinks", "description": "fresh"},
        headers=staff,
    )
    assert resp.json()["data"]["price"] == 3.5
    assert resp.json()["data"]["description"] == "fresh"

    bad = await client.post(
        "/api/menu-items", json={"name": "Free", "price": "0", "category": "Drinks"}, headers=staff
    )
    assert bad.status_code == 422

    other = await seed_restaurant(session, email="other@diner.test", name="Diner")
    resp = await client.put(
        f"/api/menu-items/{item['id']}",
        json={"name": "Stolen", "price": "1.00", "category": "Drinks"},
        headers=staff_headers(other.restaurant_id),
    )
    assert resp.status_code == 404

    resp = await client.delete(f"/api/menu-items/{item['id']}", headers=staff)
    assert resp.json()["data"] == {"deleted": item["id"]}
    listed = (await client.get("/api/menu-items", headers=staff)).json()["data"]
    assert item["id"] not in [i["id"] for i in listed]


async def test_ordered_menu_item_cannot_be_deleted(client, seed):
    await _order_at(client, seed)

    resp = await client.delete(
        f"/api/menu-items/{seed.burger_id}", headers=staff_headers(seed.restaurant_id)
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"


async def test_table_management(client, seed):
    staff = staff_headers(seed.restaurant_id)
    rid = seed.restaurant_id

    created = await client.post("/api/tables", json={"number": 2, "capacity": 4}, headers=staff)
    table = created.json()["data"]
    assert table["capacity"] == 4
    assert table["qr_code_url"].endswith(f"/menu/{rid}/2")

    dup = await client.post("/api/tables", json={"number": 1}, headers=staff)
    assert dup.status_code == 409

    resp = await client.put(f"/api/tables/{table['id']}", json={"number": 3}, headers=staff)
    assert resp.json()["data"]["number"] == 3
    assert resp.json()["data"]["capacity"] is None
    assert resp.json()["data"]["qr_code_url"].endswith(f"/menu/{rid}/3")

    clash = await client.put(f"/api/tables/{table['id']}", json={"number": 1}, headers=staff)
    assert clash.status_code == 409

    listed = (await client.get("/api/tables", headers=staff)).json()["data"]
    assert [t["number"] for t in listed] == [1, 3]

    resp = await client.delete(f"/api/tables/{table['id']}", headers=staff)
    assert resp.json()["data"] == {"deleted": table["id"]}
    assert (await client.delete(f"/api/tables/{table['id']}", headers=staff)).status_code == 404


async def test_table_with_orders_is_kept(client, seed):
    staff = staff_headers(seed.restaurant_id)
    order = await _order_at(client, seed)
    table_id = (await client.get("/api/tables", headers=staff)).json()["data"][0]["id"]

    resp = await client.delete(f"/api/tables/{table_id}", headers=staff)
    assert resp.status_code == 409
    assert "active orders" in resp.json()["error"]["message"]

    await client.post(f"/api/restaurant/orders/{order['id']}/cancel", headers=staff)
    resp = await client.delete(f"/api/tables/{table_id}", headers=staff)
    assert resp.status_code == 409


async def test_change_password(client, seed):
    staff = staff_headers(seed.restaurant_id)

    wrong = await client.put(
        "/auth/change-password",
        json={"current_password": "not-it", "new_password": "brand-new-pass"},
        headers=staff,
    )
    assert wrong.status_code == 400

    resp = await client.put(
        "/auth/change-password",
        json={"current_password": "secret-pass", "new_password": "brand-new-pass"},
        headers=staff,
    )
    assert resp.status_code == 200

    login = await client.post(
        "/auth/login", data={"username": "owner@bistro.test", "password": "brand-new-pass"}
    )
    assert login.json()["data"]["restaurant_id"] == seed.restaurant_id
    old = await client.post(
        "/auth/login", data={"username": "owner@bistro.test", "password": "secret-pass"}
    )
    assert old.status_code == 401
