"""In-memory store adapters for development and testing.

Each adapter guards its data with a lock so the compare-and-swap methods
behave like a database's conditional ``UPDATE ... WHERE value = expected``
under concurrent callers. Seeding helpers (``add_product``, ``issue``,
``add``, ``set_spend``) stand in for the admin tooling that fills the real
stores.
"""

import threading
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal

from booking.discounts.instruments import MembershipTier, PackageCredit, PackageStatus, Voucher
from booking.discounts.membership import tier_for_spend
from booking.shared.money import ZERO, to_decimal
from booking.stores.port import (
    InventoryStore,
    MembershipService,
    PackageStore,
    StockItem,
    StockMovement,
    VoucherStore,
)


class MemoryMembershipService(MembershipService):
    def __init__(self) -> None:
        self._spend: dict[str, Decimal] = {}
        self._overrides: dict[str, MembershipTier] = {}

    def set_spend(self, user_id: str, total_spent) -> None:
        self._spend[user_id] = to_decimal(total_spent)

    def set_tier(self, user_id: str, tier: MembershipTier) -> None:
        """Pin a tier regardless of spend (staff accounts, promotions)."""
        self._overrides[user_id] = tier

    def get_tier(self, user_id: str) -> MembershipTier:
        if user_id in self._overrides:
            return self._overrides[user_id]
        return tier_for_spend(self._spend.get(user_id, ZERO)).as_tier()


class MemoryVoucherStore(VoucherStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._vouchers: dict[tuple[str, str], Voucher] = {}
        self._applied_keys: set[str] = set()

    def issue(self, user_id: str, voucher: Voucher) -> None:
        with self._lock:
            self._vouchers[(user_id, voucher.id)] = voucher

    def list_eligible(self, user_id: str, base_total: Decimal) -> list[Voucher]:
        now = datetime.now(UTC)
        with self._lock:
            owned = [v for (owner, _), v in self._vouchers.items() if owner == user_id]
        return [v for v in owned if v.is_eligible(base_total, now)]

    def get(self, user_id: str, voucher_id: str) -> Voucher | None:
        with self._lock:
            return self._vouchers.get((user_id, voucher_id))

    def try_consume(self, user_id: str, voucher_id: str, expected_remaining_uses: int) -> bool:
        with self._lock:
            voucher = self._vouchers.get((user_id, voucher_id))
            if voucher is None or voucher.remaining_uses != expected_remaining_uses:
                return False
            if voucher.remaining_uses < 1:
                return False
            self._vouchers[(user_id, voucher_id)] = replace(voucher, remaining_uses=voucher.remaining_uses - 1)
            return True

    def restore(self, user_id: str, voucher_id: str, idempotency_key: str) -> bool:
        with self._lock:
            if idempotency_key in self._applied_keys:
                return False
            voucher = self._vouchers.get((user_id, voucher_id))
            if voucher is None:
                raise KeyError(f"Unknown voucher {voucher_id} for user {user_id}")
            self._vouchers[(user_id, voucher_id)] = replace(voucher, remaining_uses=voucher.remaining_uses + 1)
            self._applied_keys.add(idempotency_key)
            return True


class MemoryPackageStore(PackageStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._packages: dict[str, PackageCredit] = {}
        self._applied_keys: set[str] = set()

    def add(self, package: PackageCredit) -> None:
        with self._lock:
            self._packages[package.package_instance_id] = package

    def list_usable(self, user_id: str, min_credits: int) -> list[PackageCredit]:
        now = datetime.now(UTC)
        with self._lock:
            owned = [p for p in self._packages.values() if p.owner_id == user_id]
        return [p for p in owned if p.is_usable(min_credits, now)]

    def get(self, package_instance_id: str) -> PackageCredit | None:
        with self._lock:
            return self._packages.get(package_instance_id)

    def try_consume(self, package_instance_id: str, credits_needed: int, expected_remaining: int) -> bool:
        with self._lock:
            package = self._packages.get(package_instance_id)
            if package is None or package.remaining_credits != expected_remaining:
                return False
            if not package.is_usable(credits_needed):
                return False
            remaining = package.remaining_credits - credits_needed
            self._packages[package_instance_id] = replace(
                package,
                remaining_credits=remaining,
                status=PackageStatus.DEPLETED if remaining == 0 else package.status,
            )
            return True

    def restore(self, package_instance_id: str, credits: int, idempotency_key: str) -> bool:
        with self._lock:
            if idempotency_key in self._applied_keys:
                return False
            package = self._packages.get(package_instance_id)
            if package is None:
                raise KeyError(f"Unknown package {package_instance_id}")
            status = PackageStatus.ACTIVE if package.status == PackageStatus.DEPLETED else package.status
            self._packages[package_instance_id] = replace(
                package,
                remaining_credits=package.remaining_credits + credits,
                status=status,
            )
            self._applied_keys.add(idempotency_key)
            return True


class MemoryInventoryStore(InventoryStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, StockItem] = {}
        self._movements: list[StockMovement] = []
        self._applied_keys: set[str] = set()

    def add_product(self, product_id: str, name: str, unit_price, stock: int) -> StockItem:
        item = StockItem(product_id=product_id, name=name, unit_price=to_decimal(unit_price), stock=stock)
        with self._lock:
            self._items[product_id] = item
            self._record(product_id, stock, "initial", None)
        return item

    def get(self, product_id: str) -> StockItem | None:
        with self._lock:
            return self._items.get(product_id)

    def try_decrement(self, product_id: str, expected_stock: int, reference: str | None = None) -> bool:
        with self._lock:
            item = self._items.get(product_id)
            if item is None or item.stock != expected_stock or item.stock < 1:
                return False
            self._items[product_id] = replace(item, stock=item.stock - 1)
            self._record(product_id, -1, "order_reserved", reference)
            return True

    def restore(self, product_id: str, units: int, idempotency_key: str) -> bool:
        with self._lock:
            if idempotency_key in self._applied_keys:
                return False
            item = self._items.get(product_id)
            if item is None:
                raise KeyError(f"Unknown product {product_id}")
            self._items[product_id] = replace(item, stock=item.stock + units)
            self._record(product_id, units, "order_released", idempotency_key)
            self._applied_keys.add(idempotency_key)
            return True

    def movements(self, product_id: str) -> list[StockMovement]:
        with self._lock:
            return [m for m in self._movements if m.product_id == product_id]

    def _record(self, product_id, delta, reason, reference):
        self._movements.append(
            StockMovement(
                product_id=product_id,
                delta=delta,
                reason=reason,
                reference=reference,
                recorded_at=datetime.now(UTC),
            )
        )
