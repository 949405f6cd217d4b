"""Order payment — commands and handler.

Payable orders move PENDING → AWAITING_PAYMENT, then the gateway is
charged once with the rounded final total, keyed on the order id:

- success: the order is confirmed
- pending verification: the order is parked until VerifyPayment
- rejected: redeemed resources are handed back, order ends PAYMENT_REJECTED

Orders with nothing to pay skip all of this through ConfirmOrder.

A gateway outage leaves the order in AWAITING_PAYMENT so the charge can be
retried; retrying never charges twice.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from booking.config import settings
from booking.domain import booking
from booking.errors import UpstreamFailure
from booking.gateway import get_gateway
from booking.gateway.port import ChargeOutcome, GatewayUnavailable
from booking.order.order import Order, OrderStatus
from booking.redemption.coordinator import RedemptionCoordinator

logger = structlog.get_logger(__name__)


@booking.command(part_of="Order")
class RequestPayment:
    order_id = Identifier(required=True)


@booking.command(part_of="Order")
class ConfirmOrder:
    """Confirm an order with nothing to pay (package or fully discounted)."""

    order_id = Identifier(required=True)


@booking.command(part_of="Order")
class ChargeOrder:
    order_id = Identifier(required=True)


@booking.command(part_of="Order")
class VerifyPayment:
    """Outcome of a manual check on a parked payment."""

    order_id = Identifier(required=True)
    approved = Boolean(required=True)
    note = String(max_length=500)


@booking.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(RequestPayment)
    def request_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.request_payment()
        repo.add(order)

    @handle(ConfirmOrder)
    def confirm_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.confirm()
        repo.add(order)

    @handle(ChargeOrder)
    def charge_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if OrderStatus(order.status) != OrderStatus.AWAITING_PAYMENT:
            raise ValidationError({"status": [f"Cannot charge an order in {order.status} state"]})

        log = logger.bind(order_id=str(order.id))
        try:
            result = get_gateway().charge(
                order_id=str(order.id),
                amount=order.final_total,
                currency=order.currency,
                timeout=settings.payment_timeout_seconds,
            )
        except GatewayUnavailable as exc:
            log.warning("payment.gateway_unavailable", error=str(exc))
            raise UpstreamFailure(str(order.id), str(exc)) from exc

        log.info("payment.charge_answered", outcome=result.outcome.value)
        if result.outcome == ChargeOutcome.SUCCESS:
            order.capture_payment(gateway_reference=result.gateway_reference)
        elif result.outcome == ChargeOutcome.PENDING_VERIFICATION:
            order.await_verification(gateway_reference=result.gateway_reference)
        else:
            reason = result.failure_reason or "Payment rejected"
            RedemptionCoordinator().compensate(order.redemption_record, reason=f"payment rejected: {reason}")
            order.reject_payment(reason=reason)

        repo.add(order)
        return order.status

    @handle(VerifyPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if OrderStatus(order.status) != OrderStatus.PAYMENT_PENDING_VERIFICATION:
            raise ValidationError({"status": [f"No payment awaiting verification in {order.status} state"]})

        if command.approved:
            order.capture_payment(gateway_reference=order.payment_reference)
        else:
            reason = command.note or "Payment could not be verified"
            RedemptionCoordinator().compensate(order.redemption_record, reason=f"verification failed: {reason}")
            order.reject_payment(reason=reason)

        repo.add(order)
        return order.status
