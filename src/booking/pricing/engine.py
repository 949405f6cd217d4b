"""Pricing engine — turns line items and discount instruments into a breakdown.

The order of operations is fixed and customer-facing:

    1. base_total = sum of unit prices
    2. package credit selected -> everything covered, stop
    3. voucher selected -> voucher_discount, clamped to base_total
    4. after_voucher = base_total - voucher_discount
    5. membership_discount = after_voucher * tier rate / 100
    6. final_total = max(0, after_voucher - membership_discount)

All arithmetic stays in full Decimal precision; rounding to cents happens
once, in ``PriceBreakdown.rounded()``, when a total is shown or stored.
The engine performs no I/O and keeps no state between calls.
"""

from dataclasses import dataclass
from decimal import Decimal

from protean.exceptions import ValidationError

from booking.discounts.instruments import MembershipTier, PackageCredit, Voucher, VoucherKind
from booking.shared.money import HUNDRED, ZERO, format_money, round_money


@dataclass(frozen=True)
class PriceBreakdown:
    base_total: Decimal
    voucher_discount: Decimal
    membership_discount: Decimal
    package_covered: bool
    final_total: Decimal

    def rounded(self) -> "PriceBreakdown":
        """Round to cents so that base - voucher - membership == final exactly.

        Only the running totals are rounded; each discount is the difference
        between two of them.
        """
        base_total = round_money(self.base_total)
        if self.package_covered:
            return PriceBreakdown(
                base_total=base_total,
                voucher_discount=ZERO,
                membership_discount=ZERO,
                package_covered=True,
                final_total=ZERO,
            )

        after_voucher = round_money(self.base_total - self.voucher_discount)
        final_total = round_money(self.final_total)
        return PriceBreakdown(
            base_total=base_total,
            voucher_discount=base_total - after_voucher,
            membership_discount=after_voucher - final_total,
            package_covered=False,
            final_total=final_total,
        )

    def to_dict(self) -> dict:
        rounded = self.rounded()
        return {
            "base_total": format_money(rounded.base_total),
            "voucher_discount": format_money(rounded.voucher_discount),
            "membership_discount": format_money(rounded.membership_discount),
            "package_covered": rounded.package_covered,
            "final_total": format_money(rounded.final_total),
        }


def compute_breakdown(items, selected_instrument=None, membership_tier=None) -> PriceBreakdown:
    """Price ``items`` with at most one redeemable instrument plus a tier.

    Args:
        items: Line items (anything with a Decimal ``unit_price``).
        selected_instrument: A ``PackageCredit``, a ``Voucher``, a
            ``MembershipTier`` (treated as the tier) or None.
        membership_tier: The customer's tier, or None.

    Raises:
        ValidationError: If the instrument is not a known variant or a
            voucher carries a non-positive value.
    """
    base_total = sum((item.unit_price for item in items), ZERO)

    voucher = None
    if selected_instrument is None:
        pass
    elif isinstance(selected_instrument, PackageCredit):
        return PriceBreakdown(
            base_total=base_total,
            voucher_discount=ZERO,
            membership_discount=ZERO,
            package_covered=True,
            final_total=ZERO,
        )
    elif isinstance(selected_instrument, Voucher):
        voucher = selected_instrument
    elif isinstance(selected_instrument, MembershipTier):
        membership_tier = membership_tier or selected_instrument
    else:
        raise ValidationError(
            {"instrument": [f"Unsupported discount instrument: {type(selected_instrument).__name__}"]}
        )

    voucher_discount = _voucher_discount(voucher, base_total) if voucher else ZERO
    after_voucher = base_total - voucher_discount

    membership_discount = ZERO
    if membership_tier is not None and membership_tier.discount_rate_percent > ZERO:
        membership_discount = after_voucher * membership_tier.discount_rate_percent / HUNDRED

    return PriceBreakdown(
        base_total=base_total,
        voucher_discount=voucher_discount,
        membership_discount=membership_discount,
        package_covered=False,
        final_total=max(ZERO, after_voucher - membership_discount),
    )


def _voucher_discount(voucher: Voucher, base_total: Decimal) -> Decimal:
    if voucher.value <= ZERO:
        raise ValidationError({"instrument": ["Voucher value must be positive"]})
    if base_total < voucher.min_purchase:
        return ZERO

    if voucher.kind == VoucherKind.FIXED_AMOUNT:
        discount = voucher.value
    elif voucher.kind == VoucherKind.PERCENTAGE:
        discount = base_total * voucher.value / HUNDRED
    else:
        raise ValidationError({"instrument": [f"Unsupported voucher kind: {voucher.kind}"]})
    return min(base_total, discount)


def quote_matches(quoted: PriceBreakdown | None, authoritative: PriceBreakdown) -> bool:
    """True when a client-side quote agrees with the server price to the cent."""
    if quoted is None:
        return True
    return quoted.rounded() == authoritative.rounded()
