"""Checkout — quoting a cart and turning it into an order.

``quote_cart`` is advisory: it prices the cart with the customer's current
tier and a chosen instrument so the customer can see the total. ``submit_cart``
hands the cart to the redemption coordinator, which re-reads and re-checks
everything before consuming anything.

A cart yields at most one order. Submissions of the same cart run one at a
time, and an order whose cart cannot be marked submitted afterwards is
cancelled with its resources handed back.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from booking.cart.cart import Cart, CartStatus
from booking.discounts.catalog import DiscountCatalog
from booking.order.order import CancellationActor, Order
from booking.pricing.engine import PriceBreakdown, compute_breakdown
from booking.redemption.coordinator import RedemptionCoordinator
from booking.shared.locks import aggregate_lock
from booking.stores import get_stores

logger = structlog.get_logger(__name__)


def quote_cart(cart_id, selected_instrument=None) -> PriceBreakdown:
    cart = current_domain.repository_for(Cart).get(cart_id)
    tier = DiscountCatalog.from_stores(get_stores()).get_membership_tier(str(cart.customer_id))
    return compute_breakdown(cart.line_items(), selected_instrument, tier)


def submit_cart(cart_id, selected_instrument=None, quoted=None):
    """Submit an active cart. Returns the new PENDING order."""
    with aggregate_lock("cart", cart_id):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(cart_id)
        if CartStatus(cart.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": ["Only active carts can be submitted"]})

        order = RedemptionCoordinator().submit(
            items=cart.line_items(),
            selected_instrument=selected_instrument,
            user_id=str(cart.customer_id),
            quoted=quoted,
        )

        try:
            cart.mark_submitted(order.id)
            repo.add(cart)
        except Exception as exc:
            logger.warning("cart.claim_failed", cart_id=str(cart_id), order_id=str(order.id), error=str(exc))
            _release_orphan(order.id, reason=f"cart {cart_id} could not be marked submitted")
            raise

    logger.info("cart.submitted", cart_id=str(cart.id), order_id=str(order.id))
    return order


def _release_orphan(order_id, reason):
    with aggregate_lock("order", order_id):
        orders = current_domain.repository_for(Order)
        order = orders.get(order_id)
        RedemptionCoordinator().compensate(order.redemption_record, reason=reason)
        order.cancel(reason=reason, cancelled_by=CancellationActor.SYSTEM.value)
        orders.add(order)
