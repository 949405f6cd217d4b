"""Membership tier ladder.

Tiers are earned by cumulative spend. Only VIP carries a discount today;
Silver and Gold are shown on the order but discount nothing.
"""

from dataclasses import dataclass
from decimal import Decimal

from booking.discounts.instruments import MembershipTier
from booking.shared.money import ZERO, to_decimal


@dataclass(frozen=True)
class TierDefinition:
    id: str
    label: str
    min_spend: Decimal
    discount_rate_percent: Decimal

    def as_tier(self) -> MembershipTier:
        return MembershipTier(label=self.label, discount_rate_percent=self.discount_rate_percent)


# Sorted by ascending spend requirement
MEMBERSHIP_TIERS = (
    TierDefinition(id="SILVER", label="Silver", min_spend=Decimal("0"), discount_rate_percent=Decimal("0")),
    TierDefinition(id="GOLD", label="Gold", min_spend=Decimal("200"), discount_rate_percent=Decimal("0")),
    TierDefinition(id="VIP", label="VIP", min_spend=Decimal("500"), discount_rate_percent=Decimal("5")),
)


def tier_for_spend(total_spent) -> TierDefinition:
    """Highest tier whose spend threshold ``total_spent`` reaches."""
    spend = max(ZERO, to_decimal(total_spent))
    matched = MEMBERSHIP_TIERS[0]
    for tier in MEMBERSHIP_TIERS:
        if spend >= tier.min_spend:
            matched = tier
        else:
            break
    return matched
