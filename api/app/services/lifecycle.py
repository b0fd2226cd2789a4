# lifecycle.py

"""Order lifecycle coordinator.

:class:`OrderLifecycle` owns every status change an order goes through, from
placement at the table to delivery or cancellation, and the payment steps in
between. Status writes use :func:`orders_repo_sql.transition`, so the decision
is made against the committed row rather than a copy read earlier in the
request. When a write is refused the status is read again and reported back
in the :class:`Conflict`.

Each accepted transition appends one payment audit entry. Each business-rule
refusal appends one entry whose previous and new status are both the current
status, with a ``reason``. Input validation failures write nothing.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, time as dt_time, timezone
from decimal import Decimal
from typing import Any, Iterable, List, NoReturn, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings

from .. import audit
from ..audit import AuditSummary, PaymentAction, PaymentLogEntry
from ..domain import (
    AlreadyProcessed,
    Conflict,
    GatewayAccountInvalid,
    GatewayError,
    GatewayFailure,
    NotFound,
    OrderStatus,
    PaymentMethod,
    ValidationFailure,
    parse_status,
)
from ..domain.money import from_minor_units, order_total, platform_fee_minor, to_minor_units
from ..domain.order_status import (
    ACTIVE_STATUSES,
    CASH_PAYMENT_PREFIX,
    CUSTOMER_CANCELLABLE,
    NEXT_STATUS,
    PAID_STATUSES,
    PAYABLE_STATUSES,
    can_transition,
    is_cash_token,
)
from ..models_tenant import Order
from ..providers.base import PaymentGateway
from ..repos_sqlalchemy import orders_repo_sql, restaurants_repo_sql
from ..repos_sqlalchemy.orders_repo_sql import OrderLine
from ..routes_metrics import (
    order_transitions_total,
    orders_created_total,
    payment_conflicts_total,
    payment_intents_total,
)
from .notifications import OrderNotifier

logger = logging.getLogger("api.lifecycle")

NOT_ONBOARDED_NOTE = (
    "Restaurant not onboarded for payouts; charge routed to the platform account"
)

# Conditional writes retried when another request changes the order first.
TRANSITION_ATTEMPTS = 3


@dataclass
class CardPaymentIntent:
    """Result of :meth:`OrderLifecycle.create_card_payment_intent`."""

    order_id: str
    payment_intent_id: str
    client_secret: str
    amount: int
    currency: str
    platform_fee: int
    destination: Optional[str]
    payment_type: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "payment_intent_id": self.payment_intent_id,
            "client_secret": self.client_secret,
            "amount": self.amount,
            "currency": self.currency,
            "platform_fee": self.platform_fee,
            "destination": self.destination,
            "payment_type": self.payment_type,
        }


def cash_token(now_ms: int | None = None) -> str:
    """Return a fresh ``cash_payment_<ms>`` reference."""

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{CASH_PAYMENT_PREFIX}{now_ms}"


def start_of_day(now: datetime | None = None) -> datetime:
    """Return UTC midnight of ``now``'s day."""

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return datetime.combine(now.astimezone(timezone.utc).date(), dt_time.min, tzinfo=timezone.utc)


class OrderLifecycle:
    """Coordinate order state, payment steps and the audit trail.

    One instance serves one request; it shares that request's session.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: PaymentGateway | None = None,
        notifier: OrderNotifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.notifier = notifier
        self.settings = settings or get_settings()

    # -- helpers -----------------------------------------------------------

    async def _load(self, order_id: str, restaurant_id: str | None = None) -> Order:
        order = await orders_repo_sql.get_order(self.session, order_id, restaurant_id)
        if order is None:
            raise NotFound("Could not find order", details={"order_id": order_id})
        return order

    @staticmethod
    def _permits(
        previous: OrderStatus, target: OrderStatus, allowed: frozenset[OrderStatus]
    ) -> bool:
        return previous in allowed and can_transition(previous, target)

    async def _refuse(
        self,
        order_id: str,
        status: OrderStatus | None,
        attempted: str,
        action: PaymentAction,
        reason: str,
        *,
        amount: Decimal | None = None,
        payment_id: str | None = None,
    ) -> NoReturn:
        """Record a blocked attempt and raise the matching conflict."""

        if status is None:
            raise NotFound("Could not find order", details={"order_id": order_id})
        await audit.record(
            self.session,
            PaymentLogEntry(
                order_id=order_id,
                action=action,
                amount=amount,
                payment_id=payment_id,
                previous_status=status.value,
                new_status=status.value,
                metadata={"reason": reason, "attempted": attempted, "blocked": True},
            ),
        )
        payment_conflicts_total.labels(action=action.value).inc()
        logger.warning(
            "blocked %s on order %s in %s: %s",
            attempted,
            order_id,
            status.value,
            reason,
            extra={"order_id": order_id},
        )
        paying = attempted in (
            OrderStatus.CONFIRMED.value,
            OrderStatus.PENDING_CASH_PAYMENT.value,
            PaymentAction.CARD_PAYMENT.value,
        )
        if paying and status in PAID_STATUSES:
            raise AlreadyProcessed(
                "Order has already been processed", current_status=status.value
            )
        raise Conflict(
            f"Cannot move order from {status.value} to {attempted}",
            current_status=status.value,
        )

    async def _apply(
        self,
        order: Order,
        target: OrderStatus,
        allowed_from: Iterable[OrderStatus],
        action: PaymentAction,
        *,
        blocked_action: PaymentAction | None = None,
        reason: str,
        restaurant_id: str | None = None,
        values: dict[str, Any] | None = None,
        payment_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        noop_status: OrderStatus | None = None,
    ) -> Order:
        """Move ``order`` to ``target`` if its committed status allows it.

        The write is conditional on the exact status last read, so the audit
        entry always names the status the update replaced. When another
        request changes the order first, the decision is made again against
        what it committed.
        """

        allowed = frozenset(allowed_from)
        order_id = order.id
        amount = order.total
        blocked_action = blocked_action or action
        previous: OrderStatus | None = OrderStatus(order.status)
        for _ in range(TRANSITION_ATTEMPTS):
            if previous is None or not self._permits(previous, target, allowed):
                await self._refuse(
                    order_id, previous, target.value, blocked_action, reason, amount=amount
                )
            applied = await orders_repo_sql.transition(
                self.session,
                order_id,
                [previous],
                restaurant_id,
                status=target,
                **(values or {}),
            )
            if applied:
                break
            # Another request won the race; decide on what it committed.
            previous = await orders_repo_sql.current_status(self.session, order_id, restaurant_id)
            if noop_status is not None and previous == noop_status:
                return await self._load(order_id, restaurant_id)
        else:
            await self._refuse(
                order_id, previous, target.value, blocked_action, reason, amount=amount
            )

        await audit.record(
            self.session,
            PaymentLogEntry(
                order_id=order_id,
                action=action,
                amount=amount,
                payment_id=payment_id,
                previous_status=previous.value,
                new_status=target.value,
                metadata=metadata or {},
            ),
        )
        order_transitions_total.labels(
            from_status=previous.value, to_status=target.value
        ).inc()
        logger.info(
            "order %s %s -> %s",
            order_id,
            previous.value,
            target.value,
            extra={"order_id": order_id},
        )
        updated = await self._load(order_id, restaurant_id)
        await self._notify(updated, "order.updated")
        return updated

    async def _notify(self, order: Order, event: str) -> None:
        if self.notifier is None:
            return
        await self.notifier.publish(
            order.restaurant_id,
            {
                "type": event,
                "order_id": order.id,
                "status": order.status,
                "table_number": order.table.number if order.table else None,
            },
        )

    # -- customer operations ------------------------------------------------

    async def create_order(
        self,
        restaurant_id: str,
        table_number: int | None,
        customer_name: str | None,
        items: Sequence[OrderLine],
        device_id: str | None = None,
    ) -> Order:
        """Place an order for a table and return it with its items."""

        if not restaurant_id:
            raise ValidationFailure("Restaurant is required")
        if table_number is None:
            raise ValidationFailure("Table number is required")
        name = (customer_name or "").strip()
        if not name:
            raise ValidationFailure("Customer name is required")
        if not items:
            raise ValidationFailure("Order must contain at least one item")
        for line in items:
            if line.quantity is None or line.quantity <= 0:
                raise ValidationFailure(
                    "Quantity must be positive", details={"menu_item_id": line.menu_item_id}
                )
            if line.price is None or Decimal(line.price) < 0:
                raise ValidationFailure(
                    "Price must not be negative", details={"menu_item_id": line.menu_item_id}
                )

        table = await orders_repo_sql.find_table(self.session, restaurant_id, table_number)
        if table is None:
            raise NotFound(
                "Table not found",
                details={"restaurant_id": restaurant_id, "table_number": table_number},
            )
        requested = {line.menu_item_id for line in items}
        known = await orders_repo_sql.known_menu_items(self.session, restaurant_id, requested)
        missing = sorted(requested - known)
        if missing:
            raise NotFound("Menu item not found", details={"menu_item_ids": missing})

        total = order_total((line.price, line.quantity) for line in items)
        order_id = await orders_repo_sql.create_order(
            self.session,
            restaurant_id=restaurant_id,
            table_id=table.id,
            customer_name=name,
            lines=list(items),
            total=total,
            device_id=device_id or None,
        )
        orders_created_total.inc()
        logger.info(
            "order %s placed at table %s total=%s",
            order_id,
            table_number,
            total,
            extra={"order_id": order_id, "restaurant": restaurant_id},
        )
        order = await self._load(order_id)
        await self._notify(order, "order.created")
        return order

    async def select_cash_payment(self, order_id: str) -> Order:
        """Mark the order as waiting for cash at the counter.

        Choosing cash again while already waiting refreshes the cash reference.
        """

        order = await self._load(order_id)
        token = cash_token()
        return await self._apply(
            order,
            OrderStatus.PENDING_CASH_PAYMENT,
            PAYABLE_STATUSES,
            PaymentAction.CASH_SELECTED,
            blocked_action=PaymentAction.BACK_TO_PAYMENT,
            reason="cash payment can only be selected for an unpaid order",
            values={"payment_id": token, "payment_method": PaymentMethod.CASH.value},
            payment_id=token,
            metadata={"paymentMethod": PaymentMethod.CASH.value},
        )

    async def confirm_order(
        self,
        order_id: str,
        payment_intent_id: str | None = None,
        source: str = "redirect",
    ) -> Order:
        """Confirm a card payment; safe to call more than once.

        A repeated confirmation of a paid order raises
        :class:`AlreadyProcessed` and leaves the order untouched.
        """

        order = await self._load(order_id)
        if payment_intent_id:
            method = PaymentMethod.CARD
        elif order.payment_method:
            method = PaymentMethod(order.payment_method)
        else:
            method = PaymentMethod.CASH if is_cash_token(order.payment_id) else PaymentMethod.CARD
        if method == PaymentMethod.CASH and OrderStatus(order.status) not in PAID_STATUSES:
            await self._refuse(
                order_id,
                OrderStatus(order.status),
                OrderStatus.CONFIRMED.value,
                PaymentAction.STATUS_CHANGE,
                "cash payments are confirmed by staff",
                amount=order.total,
                payment_id=order.payment_id,
            )
        payment_id = payment_intent_id or order.payment_id
        values: dict[str, Any] = {"payment_method": method.value}
        metadata: dict[str, Any] = {"paymentMethod": method.value, "source": source}
        if payment_intent_id:
            values["payment_id"] = payment_intent_id
            recorded = order.payment_id
            if recorded and not is_cash_token(recorded) and recorded != payment_intent_id:
                logger.warning(
                    "order %s confirmed with intent %s but %s was created for it",
                    order_id,
                    payment_intent_id,
                    recorded,
                    extra={"order_id": order_id},
                )
                metadata["paymentIdMismatch"] = True
                metadata["recordedPaymentId"] = recorded
        return await self._apply(
            order,
            OrderStatus.CONFIRMED,
            PAYABLE_STATUSES,
            PaymentAction.STATUS_CHANGE,
            reason="order already paid or no longer payable",
            values=values,
            payment_id=payment_id,
            metadata=metadata,
        )

    async def create_card_payment_intent(
        self, order_id: str, idempotency_key: str | None = None
    ) -> CardPaymentIntent:
        """Create a gateway charge for the order total.

        Restaurants that finished onboarding get a destination charge with the
        platform fee withheld. Everyone else is charged on the platform account
        with no fee split.
        """

        if self.gateway is None:
            raise GatewayFailure("Payment gateway is not configured")
        order = await self._load(order_id)
        status = OrderStatus(order.status)
        total = order.total
        if status not in PAYABLE_STATUSES:
            await self._refuse(
                order_id,
                status,
                PaymentAction.CARD_PAYMENT.value,
                PaymentAction.STATUS_CHANGE,
                "card payment requested for an order that is not payable",
                amount=total,
                payment_id=order.payment_id,
            )

        restaurant = order.restaurant
        restaurant_id = restaurant.id
        amount = to_minor_units(total)
        currency = self.settings.currency
        onboarded = bool(restaurant.stripe_account_id and restaurant.stripe_onboarded)
        if onboarded:
            percent = restaurant.platform_fee_percent
            if percent is None:
                percent = self.settings.default_platform_fee_percent
            fee = platform_fee_minor(total, percent)
            destination = restaurant.stripe_account_id
            payment_type = "connect"
        else:
            percent = None
            fee = 0
            destination = None
            payment_type = "direct"

        metadata = {
            "orderId": order_id,
            "restaurantId": restaurant_id,
            "customerName": order.customer_name or "Anonymous",
            "restaurantName": restaurant.name,
            "paymentType": payment_type,
        }
        try:
            intent = await self.gateway.create_intent(
                amount,
                currency,
                destination=destination,
                application_fee=fee if destination else None,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except GatewayAccountInvalid as exc:
            logger.warning(
                "connected account %s rejected for restaurant %s; clearing it: %s",
                destination,
                restaurant_id,
                exc,
                extra={"order_id": order_id, "restaurant": restaurant_id},
            )
            await restaurants_repo_sql.clear_gateway_account(self.session, restaurant_id)
            raise GatewayFailure(
                "Restaurant payment account is no longer valid", account_reset=True
            ) from exc
        except GatewayError as exc:
            logger.error(
                "payment intent failed for order %s: %s",
                order_id,
                exc,
                extra={"order_id": order_id},
            )
            raise GatewayFailure("Payment provider error") from exc

        details: dict[str, Any] = {
            "paymentType": payment_type,
            "platformFee": float(from_minor_units(fee)),
            "platformFeeMinor": fee,
            "destination": destination,
            "currency": currency,
        }
        if percent is not None:
            details["platformFeePercent"] = float(percent)
        if not onboarded:
            details["note"] = NOT_ONBOARDED_NOTE
        await audit.record(
            self.session,
            PaymentLogEntry(
                order_id=order_id,
                action=PaymentAction.CARD_PAYMENT,
                amount=total,
                payment_id=intent.id,
                previous_status=status.value,
                metadata=details,
            ),
        )
        payment_intents_total.labels(payment_type=payment_type).inc()

        attached = await orders_repo_sql.transition(
            self.session,
            order_id,
            PAYABLE_STATUSES,
            payment_id=intent.id,
            payment_method=PaymentMethod.CARD.value,
        )
        if not attached:
            fresh = await orders_repo_sql.current_status(self.session, order_id)
            await self._refuse(
                order_id,
                fresh,
                PaymentAction.CARD_PAYMENT.value,
                PaymentAction.STATUS_CHANGE,
                "order changed while the card payment was being created",
                amount=total,
                payment_id=intent.id,
            )
        logger.info(
            "payment intent %s (%s) for order %s amount=%s fee=%s",
            intent.id,
            payment_type,
            order_id,
            amount,
            fee,
            extra={"order_id": order_id, "restaurant": restaurant_id},
        )
        return CardPaymentIntent(
            order_id=order_id,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=currency,
            platform_fee=fee,
            destination=destination,
            payment_type=payment_type,
        )

    # -- staff operations ---------------------------------------------------

    async def confirm_cash_payment(self, order_id: str, restaurant_id: str) -> Order:
        """Staff confirm that the customer paid cash at the counter."""

        order = await self._load(order_id, restaurant_id)
        return await self._apply(
            order,
            OrderStatus.CONFIRMED,
            {OrderStatus.PENDING_CASH_PAYMENT},
            PaymentAction.CASH_CONFIRMED,
            blocked_action=PaymentAction.BACK_TO_PAYMENT,
            reason="order is not waiting for a cash payment",
            restaurant_id=restaurant_id,
            values={"payment_method": PaymentMethod.CASH.value},
            payment_id=order.payment_id,
            metadata={"paymentMethod": PaymentMethod.CASH.value, "confirmedBy": "staff"},
        )

    async def advance_status(
        self, order_id: str, new_status: str | OrderStatus | None, restaurant_id: str
    ) -> Order:
        """Move the order one step along the kitchen progression.

        ``CANCELLED`` is accepted as a target and handled like a staff cancel.
        Orders waiting for cash are confirmed through
        :meth:`confirm_cash_payment`, not here.
        """

        target = parse_status(new_status)
        if target == OrderStatus.CANCELLED:
            return await self.cancel_order(order_id, restaurant_id=restaurant_id, by_staff=True)
        order = await self._load(order_id, restaurant_id)
        predecessors = {src for src, dst in NEXT_STATUS.items() if dst == target}
        return await self._apply(
            order,
            target,
            predecessors,
            PaymentAction.STATUS_CHANGE,
            reason=f"{target.value} does not follow {order.status}",
            restaurant_id=restaurant_id,
            payment_id=order.payment_id,
            metadata={"source": "staff"},
        )

    async def cancel_order(
        self,
        order_id: str,
        restaurant_id: str | None = None,
        by_staff: bool = False,
    ) -> Order:
        """Cancel the order.

        Customers may cancel only before payment; staff may cancel any order
        that is not finished. Cancelling a cancelled order changes nothing.
        """

        if by_staff and not restaurant_id:
            raise ValidationFailure("Restaurant is required")
        order = await self._load(order_id, restaurant_id)
        if order.status == OrderStatus.CANCELLED.value:
            return order
        allowed = ACTIVE_STATUSES if by_staff else CUSTOMER_CANCELLABLE
        reason = (
            "order is already delivered"
            if by_staff
            else "paid orders can only be cancelled by the restaurant"
        )
        return await self._apply(
            order,
            OrderStatus.CANCELLED,
            allowed,
            PaymentAction.STATUS_CHANGE,
            reason=reason,
            restaurant_id=restaurant_id,
            payment_id=order.payment_id,
            metadata={"cancelledBy": "staff" if by_staff else "customer"},
            noop_status=OrderStatus.CANCELLED,
        )

    # -- queries --------------------------------------------------------------

    async def get_order(self, order_id: str, restaurant_id: str | None = None) -> Order:
        return await self._load(order_id, restaurant_id)

    async def get_audit_summary(
        self, order_id: str, restaurant_id: str | None = None
    ) -> AuditSummary:
        await self._load(order_id, restaurant_id)
        return await audit.summarize(self.session, order_id)

    async def list_today(
        self, restaurant_id: str, now: datetime | None = None
    ) -> List[Order]:
        """Return the restaurant's orders placed since midnight UTC, newest first."""

        return await orders_repo_sql.list_since(self.session, restaurant_id, start_of_day(now))

    async def list_device_orders(
        self,
        device_id: str,
        restaurant_id: str | None = None,
        table_number: int | None = None,
    ) -> List[Order]:
        if not device_id or not device_id.strip():
            raise ValidationFailure("Device id is required")
        return await orders_repo_sql.list_by_device(
            self.session, device_id, restaurant_id, table_number
        )


__all__ = [
    "CardPaymentIntent",
    "OrderLifecycle",
    "NOT_ONBOARDED_NOTE",
    "cash_token",
    "start_of_day",
]
