import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Context variable used by log filter and error envelopes to inject request id
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Ensure every request carries a request id.

    A client supplied ``X-Request-ID`` is honoured when it is a short token;
    anything else is replaced with a fresh UUID.
    """

    async def dispatch(self, request: Request, call_next):
        supplied = request.headers.get("X-Request-ID")
        req_id = supplied if supplied and _VALID_ID.match(supplied) else str(uuid.uuid4())
        token = request_id_ctx.set(req_id)
        request.state.request_id = req_id
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = req_id
        return response
