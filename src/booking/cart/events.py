"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from booking.domain import booking


@booking.event(part_of="Cart")
class RacketAdded:
    """A racket was added to the cart with a string product and tensions."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    unit_price = String(required=True)
    tension_main = Integer(required=True)
    tension_cross = Integer(required=True)


@booking.event(part_of="Cart")
class RacketTensionUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    tension_main = Integer(required=True)
    tension_cross = Integer(required=True)


@booking.event(part_of="Cart")
class RacketRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@booking.event(part_of="Cart")
class CartSubmitted:
    """The cart became an order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    submitted_at = DateTime(required=True)


@booking.event(part_of="Cart")
class CartAbandoned:
    __version__ = 1

    cart_id = Identifier(required=True)
    abandoned_at = DateTime(required=True)
