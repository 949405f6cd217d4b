"""Order fulfillment — the stringer's side of a confirmed order."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from booking.domain import booking
from booking.order.order import Order


@booking.command(part_of="Order")
class StartStringing:
    order_id = Identifier(required=True)


@booking.command(part_of="Order")
class CompleteOrder:
    order_id = Identifier(required=True)


@booking.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(StartStringing)
    def start_stringing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.start_stringing()
        repo.add(order)

    @handle(CompleteOrder)
    def complete_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.complete()
        repo.add(order)
