"""Domain events for the Order aggregate.

All events are versioned, immutable facts. They rebuild the order through
its @apply handlers, and each one appends an entry to the order's status
log. Money travels as two-place decimal strings.
"""

from protean.fields import Boolean, DateTime, Identifier, String, Text

from booking.domain import booking


@booking.event(part_of="Order")
class OrderSubmitted:
    """Resources were redeemed and the order was created from a cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line item dicts
    base_total = String(required=True)
    voucher_discount = String(required=True)
    membership_discount = String(required=True)
    package_covered = Boolean(default=False)
    final_total = String(required=True)
    currency = String(required=True, max_length=3)
    membership_label = String(max_length=50)
    redemption = Text(required=True)  # JSON: RedemptionRecord
    submitted_at = DateTime(required=True)


@booking.event(part_of="Order")
class PaymentRequested:
    """The order is waiting for the customer's payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    amount = String(required=True)
    requested_at = DateTime(required=True)


@booking.event(part_of="Order")
class PaymentAwaitingVerification:
    """The gateway accepted the payment but a person has to verify it."""

    __version__ = 1

    order_id = Identifier(required=True)
    gateway_reference = String(max_length=255)
    recorded_at = DateTime(required=True)


@booking.event(part_of="Order")
class PaymentCaptured:
    """Payment went through; the order is confirmed."""

    __version__ = 1

    order_id = Identifier(required=True)
    gateway_reference = String(max_length=255)
    amount = String(required=True)
    captured_at = DateTime(required=True)


@booking.event(part_of="Order")
class PaymentRejected:
    """Payment was refused; redeemed resources were released."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    rejected_at = DateTime(required=True)


@booking.event(part_of="Order")
class OrderConfirmed:
    """A zero-total order (package or fully discounted) was confirmed."""

    __version__ = 1

    order_id = Identifier(required=True)
    confirmed_at = DateTime(required=True)


@booking.event(part_of="Order")
class StringingStarted:
    """A stringer picked up the order's rackets."""

    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@booking.event(part_of="Order")
class OrderCompleted:
    """All rackets were strung and handed back."""

    __version__ = 1

    order_id = Identifier(required=True)
    completed_at = DateTime(required=True)


@booking.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and its redeemed resources released."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(required=True, max_length=50)
    refund_due = String(required=True)
    cancelled_at = DateTime(required=True)
