"""Utilities to guard Server-Sent Events streams.

Per-IP connection limits and bounded queues for the order stream.
Environment variables provide tunables:
- ``MAX_CONN_PER_IP`` (default ``20``)
- ``QUEUE_MAX`` (default ``100``)
"""

from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from typing import Any

from fastapi import HTTPException

MAX_CONN_PER_IP = int(os.getenv("MAX_CONN_PER_IP", "20"))
QUEUE_MAX = int(os.getenv("QUEUE_MAX", "100"))

connections: dict[str, int] = defaultdict(int)


def register(ip: str) -> None:
    """Increment connection count for ``ip`` or raise ``HTTPException``."""
    if connections[ip] >= MAX_CONN_PER_IP:
        raise HTTPException(status_code=429, detail="Too many open streams")
    connections[ip] += 1


def unregister(ip: str) -> None:
    """Decrement connection count for ``ip``."""
    if connections[ip] > 0:
        connections[ip] -= 1


def queue(maxsize: int | None = None) -> asyncio.Queue[Any]:
    """Return an ``asyncio.Queue`` bounded by ``QUEUE_MAX`` by default."""
    return asyncio.Queue(maxsize=maxsize or QUEUE_MAX)
