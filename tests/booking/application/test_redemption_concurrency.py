"""Concurrent submissions racing for the same finite resources.

Each racer runs ``submit`` on its own thread with its own domain context.
Stores that hold every racer at a barrier after their first read make sure
all of them observe the same pre-race value before anyone writes.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from booking.discounts.instruments import PackageCredit, Voucher, VoucherKind
from booking.domain import booking
from booking.errors import (
    ConcurrencyConflict,
    DomainError,
    InsufficientPackageCredits,
    OutOfStock,
    VoucherAlreadyConsumed,
)
from booking.redemption.coordinator import RedemptionCoordinator
from booking.shared.line_item import RacketLineItem
from booking.stores import Stores
from booking.stores.memory_adapter import (
    MemoryInventoryStore,
    MemoryMembershipService,
    MemoryPackageStore,
    MemoryVoucherStore,
)


class _FirstReadsMeet:
    """Blocks the first ``racers`` reads until all of them have happened."""

    def __init__(self, racers):
        self._barrier = threading.Barrier(racers, timeout=5)
        self._remaining = racers
        self._lock = threading.Lock()

    def wait(self):
        with self._lock:
            should_wait = self._remaining > 0
            self._remaining -= 1
        if should_wait:
            self._barrier.wait()


class RacingVoucherStore(MemoryVoucherStore):
    def __init__(self, racers):
        super().__init__()
        self.meet = _FirstReadsMeet(racers)

    def get(self, user_id, voucher_id):
        voucher = super().get(user_id, voucher_id)
        self.meet.wait()
        return voucher


class RacingInventoryStore(MemoryInventoryStore):
    def __init__(self, racers):
        super().__init__()
        self.meet = _FirstReadsMeet(racers)

    def get(self, product_id):
        item = super().get(product_id)
        self.meet.wait()
        return item


class RacingPackageStore(MemoryPackageStore):
    def __init__(self, racers):
        super().__init__()
        self.meet = _FirstReadsMeet(racers)

    def get(self, package_instance_id):
        package = super().get(package_instance_id)
        self.meet.wait()
        return package


class AlwaysBusyVoucherStore(MemoryVoucherStore):
    """Every conditional write loses, as if another writer always got there first."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    def try_consume(self, user_id, voucher_id, expected_remaining_uses):
        self.attempts += 1
        return False


class BusyOnceVoucherStore(MemoryVoucherStore):
    def __init__(self):
        super().__init__()
        self.attempts = 0

    def try_consume(self, user_id, voucher_id, expected_remaining_uses):
        self.attempts += 1
        if self.attempts == 1:
            return False
        return super().try_consume(user_id, voucher_id, expected_remaining_uses)


def _stores(vouchers=None, packages=None, inventory=None):
    return Stores(
        membership=MemoryMembershipService(),
        vouchers=vouchers or MemoryVoucherStore(),
        packages=packages or MemoryPackageStore(),
        inventory=inventory or MemoryInventoryStore(),
    )


def _racket(product_id="bg65"):
    return RacketLineItem(product_id=product_id, unit_price="50.00", tension_main=26, tension_cross=27)


def _race(stores, submissions):
    """Run every (items, instrument, user_id) submission on its own thread."""
    coordinator = RedemptionCoordinator(stores=stores)

    def submit(args):
        with booking.domain_context():
            try:
                return coordinator.submit(*args)
            except DomainError as exc:
                return exc

    with ThreadPoolExecutor(max_workers=len(submissions)) as pool:
        return list(pool.map(submit, submissions))


def _split(results):
    orders = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    return orders, errors


class TestVoucherRace:
    def test_single_use_voucher_redeemed_once(self):
        stores = _stores(vouchers=RacingVoucherStore(racers=2))
        stores.inventory.add_product("bg65", "Yonex BG65", "50.00", stock=10)
        voucher = Voucher(id="ONCE", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stores.vouchers.issue("cust-001", voucher)

        results = _race(stores, [([_racket()], voucher, "cust-001")] * 2)
        orders, errors = _split(results)

        assert len(orders) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], VoucherAlreadyConsumed)
        assert orders[0].pricing.voucher_discount == "10.00"
        assert stores.vouchers.get("cust-001", "ONCE").remaining_uses == 0
        # The loser's stock unit went back
        assert stores.inventory.get("bg65").stock == 9


class TestStockRace:
    def test_last_unit_sold_once(self):
        stores = _stores(inventory=RacingInventoryStore(racers=2))
        stores.inventory.add_product("rare", "Rare string", "50.00", stock=1)

        results = _race(stores, [([_racket("rare")], None, "cust-001"), ([_racket("rare")], None, "cust-002")])
        orders, errors = _split(results)

        assert len(orders) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], OutOfStock)
        assert stores.inventory.get("rare").stock == 0


class TestPackageRace:
    def test_credits_never_go_negative(self):
        stores = _stores(packages=RacingPackageStore(racers=2))
        stores.inventory.add_product("bg65", "Yonex BG65", "50.00", stock=10)
        package = PackageCredit(package_instance_id="pkg-1", owner_id="cust-001", remaining_credits=3)
        stores.packages.add(package)

        results = _race(stores, [([_racket(), _racket()], package, "cust-001")] * 2)
        orders, errors = _split(results)

        assert len(orders) == 1
        assert isinstance(errors[0], InsufficientPackageCredits)
        assert stores.packages.get("pkg-1").remaining_credits == 1
        assert stores.inventory.get("bg65").stock == 8


class TestRetryBudget:
    def test_gives_up_after_max_attempts(self):
        stores = _stores(vouchers=AlwaysBusyVoucherStore())
        stores.inventory.add_product("bg65", "Yonex BG65", "50.00", stock=10)
        voucher = Voucher(id="V", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stores.vouchers.issue("cust-001", voucher)

        with pytest.raises(ConcurrencyConflict) as exc:
            RedemptionCoordinator(stores=stores, max_attempts=3).submit([_racket()], voucher, "cust-001")

        assert exc.value.retryable is True
        assert exc.value.attempts == 3
        assert exc.value.resource == "voucher:V"
        assert stores.vouchers.attempts == 3
        assert stores.inventory.get("bg65").stock == 10

    def test_lost_race_is_retried_with_fresh_read(self):
        stores = _stores(vouchers=BusyOnceVoucherStore())
        stores.inventory.add_product("bg65", "Yonex BG65", "50.00", stock=10)
        voucher = Voucher(id="V", kind=VoucherKind.FIXED_AMOUNT, value="10", remaining_uses=2)
        stores.vouchers.issue("cust-001", voucher)

        order = RedemptionCoordinator(stores=stores).submit([_racket()], voucher, "cust-001")

        assert order.pricing.final_total == "40.00"
        assert stores.vouchers.attempts == 2
        assert stores.vouchers.get("cust-001", "V").remaining_uses == 1
