"""Order change notifications for staff dashboards.

Events are published on the Redis channel ``rt:orders:<restaurant_id>`` and
consumed by the order stream in :mod:`api.app.routes_orders_sse`. Delivery is
best-effort: dashboards also poll, so a failed publish is logged and counted
but never fails the order operation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..routes_metrics import notifications_failed_total

logger = logging.getLogger("api.notifications")


def channel_for(restaurant_id: str) -> str:
    return f"rt:orders:{restaurant_id}"


class OrderNotifier:
    """Publish order events through a Redis client."""

    def __init__(self, redis: Any) -> None:
        self.redis = redis

    async def publish(self, restaurant_id: str, payload: dict[str, Any]) -> bool:
        """Publish ``payload`` for ``restaurant_id``; return whether it was sent."""

        if self.redis is None:
            return False
        try:
            await self.redis.publish(channel_for(restaurant_id), json.dumps(payload, default=str))
        except Exception as exc:  # pubsub is optional; dashboards poll as well
            notifications_failed_total.inc()
            logger.warning("order notification failed for %s: %s", restaurant_id, exc)
            return False
        return True


__all__ = ["OrderNotifier", "channel_for"]
