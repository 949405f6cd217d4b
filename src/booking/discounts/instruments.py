"""Discount instruments — the closed set of ways an order can be discounted.

``DiscountInstrument`` is a tagged union of three frozen records:

    PackageCredit   prepaid credits, one per racket; covers the whole order
    Voucher         fixed amount or percentage off, limited uses per customer
    MembershipTier  always-on percentage from the customer's tier

The pricing engine dispatches over exactly these three types and rejects
anything else, so a new instrument has to be taught to the engine before it
can be priced.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from booking.shared.money import ZERO, to_decimal


class VoucherKind(Enum):
    FIXED_AMOUNT = "fixed_amount"
    PERCENTAGE = "percentage"


class PackageStatus(Enum):
    ACTIVE = "active"
    DEPLETED = "depleted"
    EXPIRED = "expired"


@dataclass(frozen=True)
class PackageCredit:
    package_instance_id: str
    owner_id: str
    remaining_credits: int
    expires_at: datetime | None = None
    status: PackageStatus = PackageStatus.ACTIVE

    def effective_status(self, now: datetime | None = None) -> PackageStatus:
        """Stored status, or EXPIRED once ``expires_at`` has passed."""
        now = now or datetime.now(UTC)
        if self.status == PackageStatus.ACTIVE and self.expires_at is not None and self.expires_at <= now:
            return PackageStatus.EXPIRED
        return self.status

    def is_usable(self, item_count: int, now: datetime | None = None) -> bool:
        return self.effective_status(now) == PackageStatus.ACTIVE and self.remaining_credits >= item_count


@dataclass(frozen=True)
class Voucher:
    id: str
    kind: VoucherKind
    value: Decimal
    min_purchase: Decimal = ZERO
    remaining_uses: int = 1
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", VoucherKind(self.kind))
        object.__setattr__(self, "value", to_decimal(self.value))
        object.__setattr__(self, "min_purchase", to_decimal(self.min_purchase))

    def ineligibility_reason(self, base_total, now: datetime | None = None) -> str | None:
        """Why this voucher can't be used on an order of ``base_total``, or None."""
        now = now or datetime.now(UTC)
        if self.remaining_uses < 1:
            return "no uses left"
        if self.valid_from is not None and now < self.valid_from:
            return "not valid yet"
        if self.valid_until is not None and now > self.valid_until:
            return "expired"
        if to_decimal(base_total) < self.min_purchase:
            return f"minimum purchase of {self.min_purchase} not met"
        return None

    def is_eligible(self, base_total, now: datetime | None = None) -> bool:
        return self.ineligibility_reason(base_total, now) is None


@dataclass(frozen=True)
class MembershipTier:
    label: str
    discount_rate_percent: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "discount_rate_percent", to_decimal(self.discount_rate_percent))


DiscountInstrument = PackageCredit | Voucher | MembershipTier
