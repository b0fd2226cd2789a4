import asyncio
import json
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from api.app import routes_orders_sse
from api.app.middlewares import realtime_guard
from api.app.services.notifications import OrderNotifier, channel_for

pytestmark = pytest.mark.anyio


def _request(redis, ip="10.0.0.5"):
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(redis=redis)),
        client=SimpleNamespace(host=ip),
    )


@pytest.fixture(autouse=True)
def fast_keepalive(monkeypatch, settings):
    monkeypatch.setattr(routes_orders_sse, "get_settings", lambda: settings)


async def test_stream_sends_connected_then_order_events(redis):
    response = await routes_orders_sse.stream_orders(_request(redis), restaurant_id="r1")
    assert response.media_type == "text/event-stream"
    body = response.body_iterator

    first = await body.__anext__()
    assert json.loads(first.removeprefix("data: ").strip()) == {"type": "connected"}

    await OrderNotifier(redis).publish("r1", {"type": "order.updated", "order_id": "o1"})
    frame = await asyncio.wait_for(body.__anext__(), timeout=2)
    assert frame.startswith("event: order\n")
    assert '"order_id": "o1"' in frame

    await body.aclose()
    assert realtime_guard.connections["10.0.0.5"] == 0


class _ConfirmThenMessage:
    """Pub/sub double that answers the subscribe confirmation with ``None``."""

    def __init__(self):
        self.replies = [None, {"type": "message", "data": b'{"order_id": "o2"}'}]

    async def subscribe(self, channel):
        pass

    async def unsubscribe(self, channel):
        pass

    async def get_message(self, ignore_subscribe_messages=False, timeout=None):
        if self.replies:
            return self.replies.pop(0)
        await asyncio.sleep(timeout)
        return None


async def test_subscribe_confirmation_is_not_a_keepalive(settings):
    settings.sse_keepalive_secs = 30
    pubsub = _ConfirmThenMessage()
    redis = SimpleNamespace(pubsub=lambda: pubsub)
    response = await routes_orders_sse.stream_orders(_request(redis, "10.0.0.8"), restaurant_id="r1")
    body = response.body_iterator
    await body.__anext__()

    frame = await asyncio.wait_for(body.__anext__(), timeout=2)

    assert frame == 'event: order\ndata: {"order_id": "o2"}\n\n'
    await body.aclose()


async def test_stream_ignores_other_restaurants_and_keeps_alive(redis):
    response = await routes_orders_sse.stream_orders(_request(redis, "10.0.0.6"), restaurant_id="r1")
    body = response.body_iterator
    await body.__anext__()

    await redis.publish(channel_for("r2"), json.dumps({"type": "order.created"}))
    frame = await asyncio.wait_for(body.__anext__(), timeout=3)
    assert frame == ":keepalive\n\n"
    await body.aclose()


async def test_stream_limits_connections_per_ip(redis, monkeypatch):
    monkeypatch.setattr(realtime_guard, "MAX_CONN_PER_IP", 0)
    with pytest.raises(HTTPException) as exc_info:
        await routes_orders_sse.stream_orders(_request(redis, "10.0.0.7"), restaurant_id="r1")
    assert exc_info.value.status_code == 429


async def test_stream_requires_redis():
    with pytest.raises(HTTPException) as exc_info:
        await routes_orders_sse.stream_orders(_request(None), restaurant_id="r1")
    assert exc_info.value.status_code == 503


async def test_notifier_failure_is_swallowed():
    class Broken:
        async def publish(self, channel, message):
            raise ConnectionError("redis down")

    assert await OrderNotifier(Broken()).publish("r1", {"type": "x"}) is False
    assert await OrderNotifier(None).publish("r1", {"type": "x"}) is False
