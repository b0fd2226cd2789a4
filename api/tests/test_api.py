import json
import time

import pytest

from api.app.utils import webhook_signing

from conftest import WEBHOOK_SECRET, seed_restaurant, staff_headers

pytestmark = pytest.mark.anyio


def _order_payload(seed, **extra):
    payload = {
        "restaurant_id": seed.restaurant_id,
        "table_number": seed.table_number,
        "customer_name": "Ana",
        "items": [
            {"menu_item_id": seed.burger_id, "quantity": 2, "price": "10.00"},
            {"menu_item_id": seed.fries_id, "quantity": 1, "price": "5.50", "comment": "crispy"},
        ],
    }
    payload.update(extra)
    return payload


async def _place(client, seed, **extra):
    resp = await client.post("/api/orders", json=_order_payload(seed, **extra))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"ok": True, "data": {"status": "ok"}}


async def test_cash_flow_over_http(client, seed):
    order = await _place(client, seed, device_id="dev-9")
    assert order["status"] == "PENDING"
    assert order["total"] == 25.5
    assert order["restaurant_name"] == "Bistro"
    assert [i["name"] for i in order["items"]] == ["Burger", "Fries"]

    resp = await client.post(f"/api/orders/{order['id']}/cash-payment")
    data = resp.json()["data"]
    assert data["order"]["status"] == "PENDING_CASH_PAYMENT"
    assert data["order"]["payment_id"].startswith("cash_payment_")

    staff = staff_headers(seed.restaurant_id)
    url = f"/api/restaurant/orders/{order['id']}/confirm-cash-payment"
    resp = await client.post(url, headers=staff)
    assert resp.json()["data"]["order"]["status"] == "CONFIRMED"

    resp = await client.post(url, headers=staff)
    assert resp.status_code == 409
    body = resp.json()
    assert body["ok"] is False
    assert body["request_id"]
    assert body["error"]["code"] == "ALREADY_PROCESSED"
    assert body["error"]["details"] == {"status": "CONFIRMED"}

    logs = (await client.get(f"/api/restaurant/orders/{order['id']}/payment-logs", headers=staff)).json()
    actions = [a["action"] for a in logs["data"]["actions"]]
    assert actions == ["cash_selected", "cash_confirmed", "back_to_payment"]

    mine = (await client.get("/api/orders/device/dev-9", params={"table_number": 1})).json()
    assert [o["id"] for o in mine["data"]] == [order["id"]]


async def test_staff_progression_and_listing(client, seed):
    order = await _place(client, seed)
    staff = staff_headers(seed.restaurant_id)
    for status in ("CONFIRMED", "PREPARING", "READY"):
        resp = await client.put(
            f"/api/restaurant/orders/{order['id']}/status", json={"status": status}, headers=staff
        )
        assert resp.json()["data"]["status"] == status

    resp = await client.put(
        f"/api/restaurant/orders/{order['id']}/status", json={"status": "bogus"}, headers=staff
    )
    assert resp.status_code == 422

    listed = (await client.get("/api/restaurant/orders", headers=staff)).json()["data"]
    assert [o["status"] for o in listed] == ["READY"]

    resp = await client.post(f"/api/restaurant/orders/{order['id']}/cancel", headers=staff)
    assert resp.json()["data"]["status"] == "CANCELLED"


async def test_customer_cancel_after_payment_is_refused(client, seed):
    order = await _place(client, seed)
    await client.post(f"/api/orders/{order['id']}/confirm")

    resp = await client.post(f"/api/orders/{order['id']}/cancel")

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"
    assert resp.json()["error"]["hint"]


async def test_staff_routes_require_token(client, seed):
    resp = await client.get("/api/restaurant/orders")
    assert resp.status_code == 401
    assert resp.json()["ok"] is False

    resp = await client.get("/api/restaurant/orders", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


async def test_other_restaurant_sees_not_found(client, seed, session):
    other = await seed_restaurant(session, email="other@diner.test", name="Diner")
    order = await _place(client, seed)

    resp = await client.put(
        f"/api/restaurant/orders/{order['id']}/status",
        json={"status": "CONFIRMED"},
        headers=staff_headers(other.restaurant_id),
    )

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_invalid_order_payload(client, seed):
    resp = await client.post("/api/orders", json=_order_payload(seed, items=[]))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION"

    resp = await client.post("/api/orders", json=_order_payload(seed, table_number=99))
    assert resp.status_code == 404

    resp = await client.get("/api/orders/missing")
    assert resp.status_code == 404


async def test_idempotent_order_creation(client, seed, redis):
    headers = {"Idempotency-Key": "table-1-order-0001"}
    first = await client.post("/api/orders", json=_order_payload(seed), headers=headers)
    second = await client.post("/api/orders", json=_order_payload(seed), headers=headers)

    assert first.json()["data"]["id"] == second.json()["data"]["id"]
    staff = staff_headers(seed.restaurant_id)
    assert len((await client.get("/api/restaurant/orders", headers=staff)).json()["data"]) == 1

    resp = await client.post("/api/orders", json=_order_payload(seed), headers={"Idempotency-Key": "x"})
    assert resp.status_code == 400


async def test_register_and_login(client):
    resp = await client.post(
        "/auth/register",
        json={"name": "Cafe", "email": "Cafe@Example.test", "password": "long-password"},
    )
    assert resp.status_code == 200
    restaurant_id = resp.json()["data"]["restaurant_id"]

    dup = await client.post(
        "/auth/register",
        json={"name": "Cafe", "email": "cafe@example.test", "password": "long-password"},
    )
    assert dup.status_code == 409

    resp = await client.post(
        "/auth/login", data={"username": "cafe@example.test", "password": "long-password"}
    )
    token = resp.json()["data"]["access_token"]
    listed = await client.get(
        "/api/restaurant/orders", headers={"Authorization": f"Bearer {token}"}
    )
    assert listed.status_code == 200
    assert resp.json()["data"]["restaurant_id"] == restaurant_id

    bad = await client.post(
        "/auth/login", data={"username": "cafe@example.test", "password": "wrong-password"}
    )
    assert bad.status_code == 401


def _signed(event):
    body = json.dumps(event).encode()
    return body, {
        "Stripe-Signature": webhook_signing.sign(WEBHOOK_SECRET, int(time.time()), body),
        "Content-Type": "application/json",
    }


async def test_card_payment_confirmed_by_webhook(client, seed):
    order = await _place(client, seed)
    resp = await client.post("/api/payments/intent", json={"order_id": order["id"]})
    intent = resp.json()["data"]
    assert intent["payment_type"] == "direct"
    assert intent["amount"] == 2550

    event = {
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": intent["payment_intent_id"], "metadata": {"orderId": order["id"]}}},
    }
    body, headers = _signed(event)
    resp = await client.post("/api/payments/webhook", content=body, headers=headers)
    assert resp.json()["data"] == {"order_id": order["id"], "status": "CONFIRMED"}

    # Processors redeliver; the second delivery changes nothing.
    body, headers = _signed(event)
    resp = await client.post("/api/payments/webhook", content=body, headers=headers)
    assert resp.json()["data"] == {"duplicate": True, "status": "CONFIRMED"}

    # The redirect confirmation arriving last is refused as already processed.
    resp = await client.post(
        f"/api/orders/{order['id']}/confirm",
        json={"payment_intent_id": intent["payment_intent_id"]},
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ALREADY_PROCESSED"


async def test_webhook_rejects_bad_signature_and_ignores_other_events(client, seed):
    body = json.dumps({"id": "evt", "type": "payment_intent.succeeded", "data": {"object": {}}})
    resp = await client.post(
        "/api/payments/webhook", content=body, headers={"Stripe-Signature": "t=1,v1=00"}
    )
    assert resp.status_code == 400

    body, headers = _signed({"id": "evt_2", "type": "charge.refunded", "data": {"object": {}}})
    resp = await client.post("/api/payments/webhook", content=body, headers=headers)
    assert resp.json()["data"] == {"ignored": True, "type": "charge.refunded"}


async def test_payout_onboarding_routes(client, seed, gateway):
    staff = staff_headers(seed.restaurant_id)
    status = (await client.get("/api/stripe/status", headers=staff)).json()["data"]
    assert status == {"has_account": False, "onboarded": False}

    started = (await client.post("/api/stripe/connect", headers=staff)).json()["data"]
    gateway.complete_onboarding(started["account_id"])
    status = (await client.get("/api/stripe/status", headers=staff)).json()["data"]
    assert status["onboarded"] is True

    resp = await client.put(
        "/api/restaurant/platform-fee", json={"platform_fee_percent": 2.5}, headers=staff
    )
    assert resp.json()["data"] == {"platform_fee_percent": 2.5}
    resp = await client.put(
        "/api/restaurant/platform-fee", json={"platform_fee_percent": 150}, headers=staff
    )
    assert resp.status_code == 422

    order = await _place(client, seed)
    intent = (await client.post("/api/payments/intent", json={"order_id": order["id"]})).json()
    assert intent["data"]["payment_type"] == "connect"
    assert intent["data"]["platform_fee"] == 64
