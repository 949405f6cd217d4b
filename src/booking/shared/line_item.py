"""Racket line item — one racket, one string product, one tension pair."""

from dataclasses import asdict, dataclass
from decimal import Decimal

from booking.shared.money import ZERO, format_money, to_decimal


@dataclass(frozen=True)
class RacketLineItem:
    """Snapshot of a racket in a cart or order.

    Carts hand these to the pricing engine and the redemption coordinator;
    orders keep them as their immutable line items.
    """

    product_id: str
    unit_price: Decimal
    tension_main: int
    tension_cross: int
    racket_photo_ref: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        price = to_decimal(self.unit_price)
        if price < ZERO:
            raise ValueError("Unit price cannot be negative")
        object.__setattr__(self, "unit_price", price)

    def with_unit_price(self, unit_price) -> "RacketLineItem":
        return RacketLineItem(
            product_id=self.product_id,
            unit_price=unit_price,
            tension_main=self.tension_main,
            tension_cross=self.tension_cross,
            racket_photo_ref=self.racket_photo_ref,
            notes=self.notes,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["unit_price"] = format_money(self.unit_price)
        return data

