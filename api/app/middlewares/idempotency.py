from __future__ import annotations

import base64
import hashlib
import json
import re

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..routes_metrics import idempotency_hits_total
from ..utils.responses import err

IDEMPOTENT_PATHS = ("/api/orders",)
KEY_RE = re.compile(r"^[A-Za-z0-9_-]{8,128}$")
TTL_SECS = 86400


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Cache responses for order POSTs carrying an ``Idempotency-Key`` header.

    Keys are stored in Redis for a day so that a customer double-tapping
    "place order" on a flaky network does not create two orders.
    """

    async def dispatch(self, request: Request, call_next):
        key = request.headers.get("Idempotency-Key")
        if request.method != "POST" or request.url.path not in IDEMPOTENT_PATHS or not key:
            return await call_next(request)
        if not KEY_RE.match(key):
            return JSONResponse(
                err("BAD_IDEMPOTENCY_KEY", "Invalid Idempotency-Key"), status_code=400
            )

        redis = request.app.state.redis
        key_hash = hashlib.sha256(key.encode()).hexdigest()
        cache_key = f"idem:{request.url.path}:{key_hash}"
        cached = await redis.get(cache_key)
        if cached:
            idempotency_hits_total.inc()
            data = json.loads(cached)
            return Response(
                content=base64.b64decode(data["body"]),
                status_code=data["status"],
                media_type=data.get("media_type") or "application/json",
            )

        response = await call_next(request)
        body = b"".join([section async for section in response.body_iterator])
        if response.status_code < 500:
            payload = {
                "status": response.status_code,
                "body": base64.b64encode(body).decode(),
                "media_type": response.media_type,
            }
            await redis.set(cache_key, json.dumps(payload), ex=TTL_SECS)
        return Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
