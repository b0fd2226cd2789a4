from __future__ import annotations

from typing import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.status import HTTP_403_FORBIDDEN

from ..utils.responses import err

ALLOW_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
ALLOW_HEADERS = "Authorization, Content-Type, Idempotency-Key, X-Request-ID"


class CORSMiddleware(BaseHTTPMiddleware):
    """CORS middleware with an origin allowlist and max-age caching.

    An empty allowlist accepts any origin, which suits local development.
    Preflight requests are answered directly.
    """

    def __init__(
        self,
        app: Callable,
        allowed_origins: Iterable[str] | None = None,
        max_age: int = 3600,
    ) -> None:
        super().__init__(app)
        self.allowed = set(allowed_origins or [])
        self.max_age = max_age

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[override]
        origin = request.headers.get("origin")
        if self.allowed and origin and origin not in self.allowed:
            return JSONResponse(
                err("FORBIDDEN_ORIGIN", "Origin not allowed"),
                status_code=HTTP_403_FORBIDDEN,
                headers={"Vary": "Origin"},
            )
        if (
            origin
            and request.method == "OPTIONS"
            and "access-control-request-method" in request.headers
        ):
            response: Response = Response(status_code=204)
            response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
            response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
        else:
            response = await call_next(request)
        response.headers.setdefault("Vary", "Origin")
        if origin:
            response.headers.setdefault("Access-Control-Allow-Origin", origin)
            response.headers.setdefault("Access-Control-Max-Age", str(self.max_age))
        return response
