"""Cart aggregate — the customer's draft of a stringing order.

A standard (not event sourced) aggregate. Every racket added or re-tensioned
goes through the tension policy, so an active cart only ever holds valid
rackets. Prices on the cart are what the customer was shown; the redemption
coordinator re-reads them from inventory at submission.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from booking.cart.events import (
    CartAbandoned,
    CartSubmitted,
    RacketAdded,
    RacketRemoved,
    RacketTensionUpdated,
)
from booking.domain import booking
from booking.shared.line_item import RacketLineItem
from booking.shared.money import ZERO, format_money
from booking.tension.policy import default_policy


class CartStatus(Enum):
    ACTIVE = "active"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"


@booking.entity(part_of="Cart")
class RacketItem:
    product_id = Identifier(required=True)
    unit_price = String(required=True, max_length=20)
    tension_main = Integer(required=True)
    tension_cross = Integer(required=True)
    racket_photo_ref = String(max_length=500)
    notes = String(max_length=1000)
    added_at = DateTime()

    def as_line_item(self) -> RacketLineItem:
        return RacketLineItem(
            product_id=str(self.product_id),
            unit_price=self.unit_price,
            tension_main=self.tension_main,
            tension_cross=self.tension_cross,
            racket_photo_ref=self.racket_photo_ref,
            notes=self.notes,
        )


@booking.aggregate
class Cart:
    customer_id = Identifier(required=True)
    rackets = HasMany(RacketItem)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    order_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def submitted_cart_must_have_rackets(self):
        if self.status == CartStatus.SUBMITTED.value and not self.rackets:
            raise ValidationError({"cart": ["Cannot submit an empty cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def base_total(self) -> Decimal:
        return sum((Decimal(item.unit_price) for item in self.rackets), ZERO)

    def line_items(self) -> list[RacketLineItem]:
        return [item.as_line_item() for item in self.rackets]

    def _assert_active(self, action):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Rackets can only be {action} an active cart"]})

    def _find_racket(self, item_id):
        item = next((i for i in self.rackets if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Racket not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Racket management
    # -------------------------------------------------------------------
    def add_racket(
        self,
        product_id,
        unit_price,
        tension_main,
        tension_cross,
        racket_photo_ref=None,
        notes=None,
        policy=default_policy,
    ):
        """Add a racket to string. Returns the new item's id."""
        self._assert_active("added to")

        try:
            line_item = RacketLineItem(
                product_id=str(product_id),
                unit_price=unit_price,
                tension_main=tension_main,
                tension_cross=tension_cross,
                racket_photo_ref=racket_photo_ref,
                notes=notes,
            )
        except ValueError as exc:
            raise ValidationError({"unit_price": [str(exc)]}) from exc
        policy.validate(line_item)

        now = datetime.now(UTC)
        item = RacketItem(
            product_id=line_item.product_id,
            unit_price=format_money(line_item.unit_price),
            tension_main=tension_main,
            tension_cross=tension_cross,
            racket_photo_ref=racket_photo_ref,
            notes=notes,
            added_at=now,
        )
        self.add_rackets(item)
        self.updated_at = now

        self.raise_(
            RacketAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=line_item.product_id,
                unit_price=item.unit_price,
                tension_main=tension_main,
                tension_cross=tension_cross,
            )
        )
        return str(item.id)

    def update_tension(self, item_id, tension_main, tension_cross, policy=default_policy):
        self._assert_active("re-tensioned in")
        item = self._find_racket(item_id)

        errors = policy.errors_for(tension_main, tension_cross)
        if errors:
            raise ValidationError(errors)

        item.tension_main = tension_main
        item.tension_cross = tension_cross
        self.updated_at = datetime.now(UTC)

        self.raise_(
            RacketTensionUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                tension_main=tension_main,
                tension_cross=tension_cross,
            )
        )

    def remove_racket(self, item_id):
        self._assert_active("removed from")
        item = self._find_racket(item_id)

        self.remove_rackets(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            RacketRemoved(
                cart_id=str(self.id),
                item_id=str(item_id),
            )
        )

    # -------------------------------------------------------------------
    # Cart lifecycle
    # -------------------------------------------------------------------
    def mark_submitted(self, order_id):
        """Record that the cart became ``order_id``. No changes after this."""
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": ["Only active carts can be submitted"]})
        if not self.rackets:
            raise ValidationError({"cart": ["Cannot submit an empty cart"]})

        now = datetime.now(UTC)
        self.status = CartStatus.SUBMITTED.value
        self.order_id = order_id
        self.updated_at = now

        self.raise_(
            CartSubmitted(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                order_id=str(order_id),
                submitted_at=now,
            )
        )

    def abandon(self):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": ["Only active carts can be abandoned"]})

        now = datetime.now(UTC)
        self.status = CartStatus.ABANDONED.value
        self.updated_at = now

        self.raise_(
            CartAbandoned(
                cart_id=str(self.id),
                abandoned_at=now,
            )
        )
