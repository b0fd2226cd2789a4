"""Shared helpers for telling customer traffic apart from staff traffic."""

from __future__ import annotations

GUEST_PREFIXES = ("/api/orders", "/api/payments")


def _is_guest_post(path: str, method: str) -> bool:
    """Return True if the request is a customer POST (orders or payments)."""
    return method == "POST" and path.startswith(GUEST_PREFIXES)
