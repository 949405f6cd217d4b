"""Discount catalog — what a customer *could* use on the order being built.

Read-only. Answers come from the stores at query time and can be stale by
the time the order is submitted; the redemption coordinator re-reads and
re-checks everything before consuming anything.
"""

from datetime import UTC, datetime

from booking.discounts.instruments import MembershipTier, PackageCredit, Voucher
from booking.shared.money import to_decimal
from booking.stores.port import MembershipService, PackageStore, VoucherStore


class DiscountCatalog:
    def __init__(self, membership: MembershipService, vouchers: VoucherStore, packages: PackageStore) -> None:
        self._membership = membership
        self._vouchers = vouchers
        self._packages = packages

    @classmethod
    def from_stores(cls, stores):
        return cls(membership=stores.membership, vouchers=stores.vouchers, packages=stores.packages)

    def get_membership_tier(self, user_id: str) -> MembershipTier:
        return self._membership.get_tier(user_id)

    def list_eligible_vouchers(self, user_id: str, base_total) -> list[Voucher]:
        """Vouchers meeting minimum purchase, use count and validity window."""
        base_total = to_decimal(base_total)
        now = datetime.now(UTC)
        candidates = self._vouchers.list_eligible(user_id, base_total)
        return [v for v in candidates if v.is_eligible(base_total, now)]

    def list_usable_packages(self, user_id: str, item_count: int) -> list[PackageCredit]:
        """Active, unexpired packages that can cover ``item_count`` rackets."""
        now = datetime.now(UTC)
        candidates = self._packages.list_usable(user_id, item_count)
        return [p for p in candidates if p.owner_id == user_id and p.is_usable(item_count, now)]
