"""Order aggregate (Event Sourced) — a submitted stringing job.

The Order aggregate uses event sourcing: every state change is a domain
event, and the current state is rebuilt by replaying events via @apply
decorators. Each applied event also appends to ``status_log``, so the full
history of an order is readable without touching the event store.

Line items, price snapshot and redemption record are fixed at submission.

State Machine (8 states):
    PENDING → AWAITING_PAYMENT → CONFIRMED → IN_PROGRESS → COMPLETED
    AWAITING_PAYMENT → PAYMENT_PENDING_VERIFICATION → CONFIRMED
    AWAITING_PAYMENT / PAYMENT_PENDING_VERIFICATION → PAYMENT_REJECTED
    PENDING → CONFIRMED (zero total only, e.g. covered by a package)
    CANCELLED (from PENDING, AWAITING_PAYMENT, PAYMENT_PENDING_VERIFICATION, CONFIRMED)
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from booking.domain import booking
from booking.order.events import (
    OrderCancelled,
    OrderCompleted,
    OrderConfirmed,
    OrderSubmitted,
    PaymentAwaitingVerification,
    PaymentCaptured,
    PaymentRejected,
    PaymentRequested,
    StringingStarted,
)
from booking.redemption.record import RedemptionRecord
from booking.shared.line_item import RacketLineItem
from booking.shared.money import ZERO, format_money, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_PENDING_VERIFICATION = "payment_pending_verification"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PAYMENT_REJECTED = "payment_rejected"


class CancellationActor(Enum):
    CUSTOMER = "Customer"
    SYSTEM = "System"
    ADMIN = "Admin"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.AWAITING_PAYMENT,
        OrderStatus.CONFIRMED,  # Zero total only
        OrderStatus.CANCELLED,
    },
    OrderStatus.AWAITING_PAYMENT: {
        OrderStatus.CONFIRMED,
        OrderStatus.PAYMENT_PENDING_VERIFICATION,
        OrderStatus.PAYMENT_REJECTED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAYMENT_PENDING_VERIFICATION: {
        OrderStatus.CONFIRMED,
        OrderStatus.PAYMENT_REJECTED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.PAYMENT_REJECTED: set(),  # Terminal
}

# States from which cancellation is allowed
_CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.AWAITING_PAYMENT,
    OrderStatus.PAYMENT_PENDING_VERIFICATION,
    OrderStatus.CONFIRMED,
}

_PAYMENT_STATES = {
    OrderStatus.AWAITING_PAYMENT,
    OrderStatus.PAYMENT_PENDING_VERIFICATION,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@booking.value_object(part_of="Order")
class OrderPricing:
    """Price snapshot taken at submission, rounded to cents.

    Never recomputed: later changes to string prices, vouchers or tiers do
    not touch a submitted order.
    """

    base_total = String(required=True, max_length=20)
    voucher_discount = String(default="0.00", max_length=20)
    membership_discount = String(default="0.00", max_length=20)
    package_covered = Boolean(default=False)
    final_total = String(required=True, max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@booking.entity(part_of="Order")
class OrderLine:
    """One racket in the order: string product, price paid, tensions."""

    product_id = Identifier(required=True)
    unit_price = String(required=True, max_length=20)
    tension_main = Integer(required=True)
    tension_cross = Integer(required=True)
    racket_photo_ref = String(max_length=500)
    notes = String(max_length=1000)

    def as_line_item(self) -> RacketLineItem:
        return RacketLineItem(
            product_id=str(self.product_id),
            unit_price=self.unit_price,
            tension_main=self.tension_main,
            tension_cross=self.tension_cross,
            racket_photo_ref=self.racket_photo_ref,
            notes=self.notes,
        )


@booking.entity(part_of="Order")
class StatusEntry:
    """One line of the order's append-only status history."""

    status = String(required=True, choices=OrderStatus)
    recorded_at = DateTime(required=True)
    note = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@booking.aggregate(is_event_sourced=True)
class Order:
    customer_id = Identifier(required=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    lines = HasMany(OrderLine)
    pricing = ValueObject(OrderPricing)
    currency = String(max_length=3, default="MYR")
    membership_label = String(max_length=50)
    redemption = Text()  # JSON: RedemptionRecord
    payment_reference = String(max_length=255)
    payment_captured = Boolean(default=False)
    resources_released = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    refund_due = String(max_length=20)
    status_log = HasMany(StatusEntry)
    submitted_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def submit(
        cls,
        customer_id,
        line_items,
        breakdown,
        redemption,
        membership_label=None,
        currency="MYR",
    ):
        """Create an order from already-redeemed resources.

        Only the redemption coordinator should call this: by the time an
        Order exists, its stock, credits and voucher use are already taken.

        Args:
            customer_id: The customer placing the order.
            line_items: Sequence of RacketLineItem with authoritative prices.
            breakdown: PriceBreakdown computed from those items.
            redemption: RedemptionRecord of everything consumed.
            membership_label: Tier label applied at submission, if any.
            currency: ISO currency code of the amounts.
        """
        if not line_items:
            raise ValidationError({"lines": ["An order needs at least one racket"]})

        rounded = breakdown.rounded()
        # Pre-generate line IDs for deterministic replay
        lines_with_ids = [{**item.to_dict(), "id": str(uuid4())} for item in line_items]

        order = cls._create_new()
        order.raise_(
            OrderSubmitted(
                order_id=str(order.id),
                customer_id=str(customer_id),
                items=json.dumps(lines_with_ids),
                base_total=format_money(rounded.base_total),
                voucher_discount=format_money(rounded.voucher_discount),
                membership_discount=format_money(rounded.membership_discount),
                package_covered=rounded.package_covered,
                final_total=format_money(rounded.final_total),
                currency=currency,
                membership_label=membership_label,
                redemption=redemption.to_json(),
                submitted_at=datetime.now(UTC),
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def final_total(self) -> Decimal:
        return to_decimal(self.pricing.final_total) if self.pricing else ZERO

    @property
    def redemption_record(self) -> RedemptionRecord:
        return RedemptionRecord.from_json(self.redemption)

    @property
    def line_items(self) -> list[RacketLineItem]:
        return [line.as_line_item() for line in self.lines]

    @property
    def is_cancellable(self) -> bool:
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    @property
    def requires_payment(self) -> bool:
        return self.final_total > ZERO

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _log_status(self, status, recorded_at, note=None):
        self.status = status.value
        self.updated_at = recorded_at
        self.add_status_log(StatusEntry(status=status.value, recorded_at=recorded_at, note=note))

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def request_payment(self):
        """Move a payable order into the payment flow."""
        self._assert_can_transition(OrderStatus.AWAITING_PAYMENT)
        if not self.requires_payment:
            raise ValidationError({"status": ["Orders with nothing to pay skip payment"]})

        self.raise_(
            PaymentRequested(
                order_id=str(self.id),
                amount=self.pricing.final_total,
                requested_at=datetime.now(UTC),
            )
        )

    def await_verification(self, gateway_reference=None):
        """Park the order until someone verifies the payment."""
        if OrderStatus(self.status) != OrderStatus.AWAITING_PAYMENT:
            raise ValidationError({"status": ["Only orders awaiting payment can wait for verification"]})

        self.raise_(
            PaymentAwaitingVerification(
                order_id=str(self.id),
                gateway_reference=gateway_reference,
                recorded_at=datetime.now(UTC),
            )
        )

    def capture_payment(self, gateway_reference=None):
        """Record a successful payment and confirm the order."""
        if OrderStatus(self.status) not in _PAYMENT_STATES:
            raise ValidationError({"status": [f"Cannot capture payment for an order in {self.status} state"]})

        self.raise_(
            PaymentCaptured(
                order_id=str(self.id),
                gateway_reference=gateway_reference,
                amount=self.pricing.final_total,
                captured_at=datetime.now(UTC),
            )
        )

    def reject_payment(self, reason):
        """Record a refused payment. Resources must already be released."""
        self._assert_can_transition(OrderStatus.PAYMENT_REJECTED)

        self.raise_(
            PaymentRejected(
                order_id=str(self.id),
                reason=reason,
                rejected_at=datetime.now(UTC),
            )
        )

    def confirm(self):
        """Confirm an order that has nothing to pay."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Only pending orders can be confirmed without payment"]})
        if self.requires_payment:
            raise ValidationError({"status": ["Orders with an amount due must go through payment"]})

        self.raise_(
            OrderConfirmed(
                order_id=str(self.id),
                confirmed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def start_stringing(self):
        self._assert_can_transition(OrderStatus.IN_PROGRESS)
        self.raise_(
            StringingStarted(
                order_id=str(self.id),
                started_at=datetime.now(UTC),
            )
        )

    def complete(self):
        self._assert_can_transition(OrderStatus.COMPLETED)
        self.raise_(
            OrderCompleted(
                order_id=str(self.id),
                completed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason, cancelled_by):
        """Cancel the order. Resources must already be released.

        Cancelling a cancelled order does nothing, so a retried request is
        harmless.
        """
        current = OrderStatus(self.status)
        if current == OrderStatus.CANCELLED:
            return

        if current not in _CANCELLABLE_STATES:
            raise ValidationError(
                {
                    "status": [
                        f"Cannot cancel order in {current.value} state. "
                        f"Cancellation is only allowed from: "
                        f"{', '.join(sorted(s.value for s in _CANCELLABLE_STATES))}"
                    ]
                }
            )

        refund_due = self.final_total if self.payment_captured else ZERO
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                refund_due=format_money(refund_due),
                cancelled_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_submitted(self, event: OrderSubmitted):
        self.id = event.order_id
        self.customer_id = event.customer_id
        self.currency = event.currency
        self.membership_label = event.membership_label
        self.redemption = event.redemption
        self.submitted_at = event.submitted_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.lines = [OrderLine(**item_data) for item_data in items_data]

        self.pricing = OrderPricing(
            base_total=event.base_total,
            voucher_discount=event.voucher_discount,
            membership_discount=event.membership_discount,
            package_covered=event.package_covered,
            final_total=event.final_total,
        )
        self._log_status(OrderStatus.PENDING, event.submitted_at, "Order submitted")

    @apply
    def _on_payment_requested(self, event: PaymentRequested):
        self._log_status(OrderStatus.AWAITING_PAYMENT, event.requested_at, f"Amount due {event.amount}")

    @apply
    def _on_payment_awaiting_verification(self, event: PaymentAwaitingVerification):
        self.payment_reference = event.gateway_reference
        self._log_status(OrderStatus.PAYMENT_PENDING_VERIFICATION, event.recorded_at)

    @apply
    def _on_payment_captured(self, event: PaymentCaptured):
        self.payment_reference = event.gateway_reference or self.payment_reference
        self.payment_captured = True
        self._log_status(OrderStatus.CONFIRMED, event.captured_at, f"Paid {event.amount}")

    @apply
    def _on_payment_rejected(self, event: PaymentRejected):
        self.resources_released = True
        self._log_status(OrderStatus.PAYMENT_REJECTED, event.rejected_at, event.reason)

    @apply
    def _on_order_confirmed(self, event: OrderConfirmed):
        self._log_status(OrderStatus.CONFIRMED, event.confirmed_at, "Nothing to pay")

    @apply
    def _on_stringing_started(self, event: StringingStarted):
        self._log_status(OrderStatus.IN_PROGRESS, event.started_at)

    @apply
    def _on_order_completed(self, event: OrderCompleted):
        self._log_status(OrderStatus.COMPLETED, event.completed_at)

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self.cancellation_reason = event.reason
        self.cancelled_by = event.cancelled_by
        self.refund_due = event.refund_due
        self.resources_released = True
        self._log_status(OrderStatus.CANCELLED, event.cancelled_at, event.reason)
