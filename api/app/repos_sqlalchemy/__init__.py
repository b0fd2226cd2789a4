"""SQLAlchemy-backed repository implementations.

This module also exposes ``TenantGuard``, a tiny helper ensuring that staff
queries are always scoped to a specific restaurant. All tenants share one
database, so scoping means adding a ``restaurant_id`` predicate to every
statement touching tenant-owned rows.
"""

from __future__ import annotations

from typing import Any, TypeVar

Stmt = TypeVar("Stmt")


class TenantGuard:
    """Utility providing tenant scoping helpers."""

    @staticmethod
    def assert_tenant(restaurant_id: str | None) -> str:
        """Return ``restaurant_id`` or raise ``AssertionError`` when blank."""

        if not restaurant_id:
            raise AssertionError("restaurant_id required")
        return restaurant_id

    @staticmethod
    def scope(stmt: Stmt, model: Any, restaurant_id: str | None) -> Stmt:
        """Restrict ``stmt`` to ``restaurant_id`` when one is given.

        Customer-side calls pass ``None``: the order id they hold acts as a
        capability and is not re-checked against a tenant.
        """

        if restaurant_id is None:
            return stmt
        return stmt.where(model.restaurant_id == restaurant_id)


__all__ = ["TenantGuard"]
