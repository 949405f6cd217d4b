"""Order cancellation — command and handler.

Cancelling hands every redeemed resource back before the cancellation is
recorded. Each hand-back is keyed on the order's redemption record, and a
second cancel of a cancelled order does nothing, so retried requests never
credit anything twice.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from booking.domain import booking
from booking.order.order import CancellationActor, Order, OrderStatus
from booking.redemption.coordinator import RedemptionCoordinator

logger = structlog.get_logger(__name__)


@booking.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(max_length=50, default=CancellationActor.CUSTOMER.value)


@booking.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if OrderStatus(order.status) == OrderStatus.CANCELLED:
            logger.info("order.cancel_ignored", order_id=str(order.id))
            return order.status
        if not order.is_cancellable:
            raise ValidationError({"status": [f"Cannot cancel order in {order.status} state"]})

        RedemptionCoordinator().compensate(order.redemption_record, reason=f"order cancelled: {command.reason}")
        order.cancel(reason=command.reason, cancelled_by=command.cancelled_by)
        repo.add(order)

        logger.info(
            "order.cancelled",
            order_id=str(order.id),
            cancelled_by=command.cancelled_by,
            refund_due=order.refund_due,
        )
        return order.status
