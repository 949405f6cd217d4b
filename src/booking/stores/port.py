"""Store ports (abstract interfaces) for the booking context's collaborators.

Membership, vouchers, packages and inventory live in external stores. The
engine reads them through these ports and consumes finite resources only
through their conditional writes: every ``try_*`` method is a
compare-and-swap that applies only if the caller's observed value is still
current, and returns False otherwise. Every ``restore`` is idempotent on
its ``idempotency_key``, so compensations are safe to replay.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from booking.discounts.instruments import MembershipTier, PackageCredit, Voucher


@dataclass(frozen=True)
class StockItem:
    """A string product as the inventory store sees it."""

    product_id: str
    name: str
    unit_price: Decimal
    stock: int


@dataclass(frozen=True)
class StockMovement:
    product_id: str
    delta: int
    reason: str
    reference: str | None
    recorded_at: datetime


class MembershipService(ABC):
    @abstractmethod
    def get_tier(self, user_id: str) -> MembershipTier:
        """Return the customer's current tier (lowest tier when unknown)."""
        ...


class VoucherStore(ABC):
    @abstractmethod
    def list_eligible(self, user_id: str, base_total: Decimal) -> list[Voucher]:
        """Return the customer's vouchers usable on an order of ``base_total``."""
        ...

    @abstractmethod
    def get(self, user_id: str, voucher_id: str) -> Voucher | None:
        """Return the customer's current view of a voucher, or None."""
        ...

    @abstractmethod
    def try_consume(self, user_id: str, voucher_id: str, expected_remaining_uses: int) -> bool:
        """Use one voucher use if remaining uses still equal the expected value."""
        ...

    @abstractmethod
    def restore(self, user_id: str, voucher_id: str, idempotency_key: str) -> bool:
        """Give one use back. Returns False if ``idempotency_key`` was already applied."""
        ...


class PackageStore(ABC):
    @abstractmethod
    def list_usable(self, user_id: str, min_credits: int) -> list[PackageCredit]:
        """Return active, unexpired packages holding at least ``min_credits``."""
        ...

    @abstractmethod
    def get(self, package_instance_id: str) -> PackageCredit | None:
        ...

    @abstractmethod
    def try_consume(self, package_instance_id: str, credits_needed: int, expected_remaining: int) -> bool:
        """Deduct credits if the remaining count still equals the expected value."""
        ...

    @abstractmethod
    def restore(self, package_instance_id: str, credits: int, idempotency_key: str) -> bool:
        """Return credits. Returns False if ``idempotency_key`` was already applied."""
        ...


class InventoryStore(ABC):
    @abstractmethod
    def get(self, product_id: str) -> StockItem | None:
        """Return the product with its authoritative price and stock, or None."""
        ...

    @abstractmethod
    def try_decrement(self, product_id: str, expected_stock: int, reference: str | None = None) -> bool:
        """Take one unit if stock still equals the expected value and is at least 1."""
        ...

    @abstractmethod
    def restore(self, product_id: str, units: int, idempotency_key: str) -> bool:
        """Put units back. Returns False if ``idempotency_key`` was already applied."""
        ...

    @abstractmethod
    def movements(self, product_id: str) -> list[StockMovement]:
        """Return the product's stock movement log, oldest first."""
        ...
