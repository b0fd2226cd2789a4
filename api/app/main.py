# main.py

"""FastAPI application for table ordering and order payments."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.asyncio import from_url
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from . import db as app_db
from .domain import Conflict, OrderError
from .middlewares import (
    IdempotencyMiddleware,
    LoggingMiddleware,
    PrometheusMiddleware,
    RequestIdMiddleware,
)
from .middlewares.cors import CORSMiddleware
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .providers import build_gateway
from .routes_auth import router as auth_router
from .routes_menu import router as menu_router
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .routes_orders_sse import router as orders_sse_router
from .routes_payments import router as payments_router
from .routes_restaurant_orders import router as restaurant_orders_router
from .routes_stripe_connect import router as connect_router
from .routes_tables import router as tables_router
from .utils.responses import err, ok

settings = get_settings()

configure_logging(getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("api")
init_sentry()

app = FastAPI(
    title="Table Ordering API",
    version="1.0.0",
    servers=[{"url": "/"}],
    openapi_url="/openapi.json",
)

redis_client = from_url(settings.redis_url, decode_responses=True)
app.state.redis = redis_client
app.state.gateway = build_gateway(settings)

# Starlette runs the last added middleware first.
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(CORSMiddleware, allowed_origins=settings.origin_list)
app.add_middleware(RequestIdMiddleware)


@app.on_event("startup")
async def init_database() -> None:
    """Create the engine unless tests already installed a session factory."""

    if app_db.SessionLocal is None:
        _, engine = app_db.init_engine(settings.database_url)
        if settings.database_url.startswith("sqlite"):
            await app_db.create_all(engine)


@app.on_event("shutdown")
async def close_connections() -> None:
    if app_db.engine is not None:
        await app_db.engine.dispose()
    await redis_client.aclose()


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    hint = None
    if isinstance(exc, Conflict):
        hint = "Refresh the order and follow its current status"
    logger.warning(
        exc.message,
        extra={
            "status": exc.status_code,
            "route": request.url.path,
            "restaurant": getattr(request.state, "restaurant_id", None),
            "order_id": request.path_params.get("order_id"),
        },
    )
    return JSONResponse(
        err(exc.code, exc.message, exc.details, hint), status_code=exc.status_code
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return JSONResponse(
        err("VALIDATION", "Invalid request", {"errors": errors}), status_code=422
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        exc.detail,
        extra={
            "status": exc.status_code,
            "route": request.url.path,
            "restaurant": getattr(request.state, "restaurant_id", None),
        },
    )
    return JSONResponse(
        err(exc.status_code, str(exc.detail)),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.exception(
        "unhandled_error",
        extra={
            "status": 500,
            "route": request.url.path,
            "restaurant": getattr(request.state, "restaurant_id", None),
        },
    )
    capture_exception(exc)
    return JSONResponse(err(500, "Internal Server Error"), status_code=500)


@app.get("/health")
async def health() -> dict:
    return ok({"status": "ok"})


app.include_router(auth_router)
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(restaurant_orders_router)
app.include_router(orders_sse_router)
app.include_router(connect_router)
app.include_router(menu_router)
app.include_router(tables_router)
app.include_router(metrics_router)
