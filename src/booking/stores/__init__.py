"""Store factory.

Provides get_stores() / set_stores() to swap the collaborator bundle:
- in-memory adapters for development and testing (default)
- database or service-backed adapters in production
"""

from dataclasses import dataclass

from booking.stores.memory_adapter import (
    MemoryInventoryStore,
    MemoryMembershipService,
    MemoryPackageStore,
    MemoryVoucherStore,
)
from booking.stores.port import InventoryStore, MembershipService, PackageStore, VoucherStore


@dataclass(frozen=True)
class Stores:
    membership: MembershipService
    vouchers: VoucherStore
    packages: PackageStore
    inventory: InventoryStore


def memory_stores() -> Stores:
    return Stores(
        membership=MemoryMembershipService(),
        vouchers=MemoryVoucherStore(),
        packages=MemoryPackageStore(),
        inventory=MemoryInventoryStore(),
    )


_current_stores: Stores | None = None


def get_stores() -> Stores:
    """Return the active store bundle. Defaults to fresh in-memory stores."""
    global _current_stores
    if _current_stores is None:
        _current_stores = memory_stores()
    return _current_stores


def set_stores(stores: Stores) -> None:
    """Override the active store bundle (useful for tests)."""
    global _current_stores
    _current_stores = stores


def reset_stores() -> None:
    """Reset to default stores."""
    global _current_stores
    _current_stores = None
