"""Server-Sent Events stream of order changes for staff dashboards.

The first event is ``{"type": "connected"}``. Order events published by
:class:`~api.app.services.notifications.OrderNotifier` follow as
``event: order`` frames, and a ``:keepalive`` comment is sent whenever the
channel stays quiet for ``sse_keepalive_secs``. Dashboards also poll, so a
dropped stream loses nothing.
"""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from config import get_settings

from .auth import get_stream_restaurant
from .middlewares.realtime_guard import queue as rt_queue
from .middlewares.realtime_guard import register, unregister
from .routes_metrics import sse_clients_gauge
from .services.notifications import channel_for

router = APIRouter()


@router.get(
    "/api/restaurant/orders/stream",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}},
)
async def stream_orders(
    request: Request,
    restaurant_id: str = Depends(get_stream_restaurant),
) -> StreamingResponse:
    """Stream order updates for the authenticated restaurant."""

    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        raise HTTPException(status_code=503, detail="Realtime updates unavailable")
    keepalive = get_settings().sse_keepalive_secs

    ip = request.client.host if request.client else "?"
    register(ip)

    channel = channel_for(restaurant_id)
    pubsub = redis.pubsub()
    await pubsub.subscribe(channel)
    sse_clients_gauge.inc()

    async def event_gen():
        queue: asyncio.Queue[str | None] = rt_queue()

        async def reader():
            loop = asyncio.get_running_loop()
            last_sent = loop.time()
            try:
                while True:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=keepalive
                    )
                    if message is None:
                        # subscribe confirmations also come back as None
                        if loop.time() - last_sent < keepalive:
                            continue
                        frame = ":keepalive\n\n"
                    else:
                        data = message["data"]
                        if isinstance(data, bytes):
                            data = data.decode()
                        frame = f"event: order\ndata: {data}\n\n"
                    try:
                        queue.put_nowait(frame)
                    except asyncio.QueueFull:
                        await queue.put("DROP")
                        break
                    last_sent = loop.time()
            finally:
                await queue.put(None)

        reader_task = asyncio.create_task(reader())

        try:
            yield f"data: {json.dumps({'type': 'connected'})}\n\n"
            while True:
                item = await queue.get()
                if item is None or item == "DROP":
                    # slow consumer; the client reconnects and re-polls
                    break
                yield item
        finally:
            reader_task.cancel()
            await pubsub.unsubscribe(channel)
            sse_clients_gauge.dec()
            unregister(ip)

    return StreamingResponse(
        event_gen(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
