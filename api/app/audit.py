# audit.py

"""Payment audit log.

Every payment or status action the lifecycle service evaluates, including
the ones it refuses, is appended to ``payment_logs``. Rows are never updated
or deleted; their chronology is ``created_at`` then ``id``.

Writes are best-effort: :func:`record` commits on its own and, if the insert
fails, rolls back, logs on the ``api.audit`` logger, bumps
``payment_audit_write_failures_total`` and returns ``None`` so the order
operation that triggered it carries on.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models_tenant import PaymentLog
from .routes_metrics import payment_audit_write_failures_total

logger = logging.getLogger("api.audit")


class PaymentAction(str, Enum):
    """Kinds of entries written to the payment audit log."""

    CASH_SELECTED = "cash_selected"
    CASH_CONFIRMED = "cash_confirmed"
    CARD_PAYMENT = "card_payment"
    BACK_TO_PAYMENT = "back_to_payment"
    STATUS_CHANGE = "status_change"


# Actions that establish how the customer intends to pay.
PAYMENT_METHOD_ACTIONS = frozenset(
    {PaymentAction.CASH_SELECTED.value, PaymentAction.CARD_PAYMENT.value}
)


@dataclass
class PaymentLogEntry:
    """Values for one audit row."""

    order_id: str
    action: PaymentAction
    amount: Optional[Decimal] = None
    payment_id: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AuditSummary:
    """Chronological audit trail for one order plus derived views."""

    order_id: str
    total_logs: int
    actions: list[dict[str, Any]]
    has_multiple_payment_attempts: bool
    last_payment_method: Optional[str]

    def as_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "total_logs": self.total_logs,
            "actions": self.actions,
            "has_multiple_payment_attempts": self.has_multiple_payment_attempts,
            "last_payment_method": self.last_payment_method,
        }


def _value(status: Any) -> Optional[str]:
    return getattr(status, "value", status)


async def record(session: AsyncSession, entry: PaymentLogEntry) -> PaymentLog | None:
    """Append ``entry`` and commit; return the row, or ``None`` on failure."""

    action = PaymentAction(entry.action).value
    try:
        row = PaymentLog(
            order_id=entry.order_id,
            action=action,
            amount=entry.amount,
            payment_id=entry.payment_id,
            previous_status=_value(entry.previous_status),
            new_status=_value(entry.new_status),
            meta=json.dumps(entry.metadata, default=str) if entry.metadata else None,
        )
        session.add(row)
        await session.commit()
    except Exception as exc:  # audit writes never fail the order operation
        await session.rollback()
        payment_audit_write_failures_total.inc()
        logger.warning(
            "payment log write failed action=%s order=%s: %s",
            action,
            entry.order_id,
            exc,
            extra={"order_id": entry.order_id},
        )
        return None
    logger.info(
        "payment log %s for order %s",
        action,
        entry.order_id,
        extra={"order_id": entry.order_id},
    )
    return row


async def list_entries(session: AsyncSession, order_id: str) -> list[PaymentLog]:
    """Return every audit row for ``order_id`` oldest first."""

    result = await session.execute(
        select(PaymentLog)
        .where(PaymentLog.order_id == order_id)
        .order_by(PaymentLog.created_at.asc(), PaymentLog.id.asc())
    )
    return list(result.scalars())


def _details(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("unreadable payment log metadata: %.80s", raw)
        return None


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


async def summarize(session: AsyncSession, order_id: str) -> AuditSummary:
    """Build the :class:`AuditSummary` for ``order_id``."""

    logs = await list_entries(session, order_id)
    payment_actions = [log.action for log in logs if log.action in PAYMENT_METHOD_ACTIONS]
    return AuditSummary(
        order_id=order_id,
        total_logs=len(logs),
        actions=[
            {
                "action": log.action,
                "timestamp": _timestamp(log.created_at),
                "amount": float(log.amount) if log.amount is not None else None,
                "payment_id": log.payment_id,
                "previous_status": log.previous_status,
                "new_status": log.new_status,
                "details": _details(log.meta),
            }
            for log in logs
        ],
        has_multiple_payment_attempts=len(payment_actions) > 1,
        last_payment_method=payment_actions[-1] if payment_actions else None,
    )


__all__ = [
    "PaymentAction",
    "PaymentLogEntry",
    "AuditSummary",
    "PAYMENT_METHOD_ACTIONS",
    "record",
    "list_entries",
    "summarize",
]
