"""Order lookups."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from booking.errors import OrderNotFound
from booking.order.order import Order


def get_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise OrderNotFound(str(order_id)) from exc
