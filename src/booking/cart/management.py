"""Cart management — commands and handler.

Handles cart creation, racket changes and abandonment. Rackets are priced
from the inventory store when added.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from booking.cart.cart import Cart
from booking.domain import booking
from booking.stores import get_stores


@booking.command(part_of="Cart")
class CreateCart:
    customer_id = Identifier(required=True)


@booking.command(part_of="Cart")
class AddRacket:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    tension_main = Integer(required=True)
    tension_cross = Integer(required=True)
    racket_photo_ref = String(max_length=500)
    notes = String(max_length=1000)


@booking.command(part_of="Cart")
class UpdateRacketTension:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    tension_main = Integer(required=True)
    tension_cross = Integer(required=True)


@booking.command(part_of="Cart")
class RemoveRacket:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@booking.command(part_of="Cart")
class AbandonCart:
    cart_id = Identifier(required=True)


@booking.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = Cart.create(customer_id=command.customer_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(AddRacket)
    def add_racket(self, command):
        product = get_stores().inventory.get(str(command.product_id))
        if product is None:
            raise ValidationError({"product_id": [f"Unknown product {command.product_id}"]})

        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        item_id = cart.add_racket(
            product_id=product.product_id,
            unit_price=product.unit_price,
            tension_main=command.tension_main,
            tension_cross=command.tension_cross,
            racket_photo_ref=command.racket_photo_ref,
            notes=command.notes,
        )
        repo.add(cart)
        return item_id

    @handle(UpdateRacketTension)
    def update_racket_tension(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.update_tension(
            item_id=command.item_id,
            tension_main=command.tension_main,
            tension_cross=command.tension_cross,
        )
        repo.add(cart)

    @handle(RemoveRacket)
    def remove_racket(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.remove_racket(item_id=command.item_id)
        repo.add(cart)

    @handle(AbandonCart)
    def abandon_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.abandon()
        repo.add(cart)
