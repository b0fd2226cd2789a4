"""Helpers for signing and verifying gateway webhook requests.

The header format mirrors the one used by card processors:
``t=<unix ts>,v1=<hex hmac-sha256 of "<ts>.<body>">``.
"""

from __future__ import annotations

import hashlib
import hmac
import time


def sign(secret: str, timestamp: int, body: bytes) -> str:
    """Return the signature header for a webhook payload."""
    msg = f"{timestamp}.".encode() + body
    digest = hmac.new(secret.encode(), msg, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _parse(header: str) -> tuple[int, list[str]]:
    ts = None
    sigs: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t" and value.isdigit():
            ts = int(value)
        elif key == "v1" and value:
            sigs.append(value)
    if ts is None or not sigs:
        raise ValueError("malformed signature header")
    return ts, sigs


def verify(
    secret: str,
    body: bytes,
    header_sig: str | None,
    max_skew: int = 300,
) -> bool:
    """Validate a webhook request signature.

    Returns ``True`` if one of the ``v1`` values in ``header_sig`` matches the
    expected digest for ``secret`` and ``body`` and the timestamp is within
    ``max_skew`` seconds of the current time.
    """
    if not secret or not header_sig:
        return False
    try:
        ts, sigs = _parse(header_sig)
    except ValueError:
        return False
    if abs(time.time() - ts) > max_skew:
        return False
    expected = sign(secret, ts, body).split("v1=", 1)[1]
    return any(hmac.compare_digest(expected, sig) for sig in sigs)
