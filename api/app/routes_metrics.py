# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

router = APIRouter()

# Counters
http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["path", "method", "status"]
)

orders_created_total = Counter("orders_created_total", "Total orders created")
orders_created_total.inc(0)

order_transitions_total = Counter(
    "order_transitions_total",
    "Accepted order status transitions",
    ["from_status", "to_status"],
)

payment_conflicts_total = Counter(
    "payment_conflicts_total",
    "Payment or status actions blocked by the lifecycle guards",
    ["action"],
)

payment_intents_total = Counter(
    "payment_intents_total",
    "Card payment intents created",
    ["payment_type"],
)

payment_audit_write_failures_total = Counter(
    "payment_audit_write_failures_total",
    "Payment audit entries that could not be persisted",
)
payment_audit_write_failures_total.inc(0)

idempotency_hits_total = Counter(
    "idempotency_hits_total", "Order requests answered from the idempotency cache"
)
idempotency_hits_total.inc(0)

notifications_failed_total = Counter(
    "notifications_failed_total", "Order notifications that could not be published"
)
notifications_failed_total.inc(0)

# Gauges
sse_clients_gauge = Gauge("sse_clients", "Connected order stream clients")


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
