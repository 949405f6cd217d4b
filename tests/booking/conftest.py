import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def booking_bed():
    from booking.domain import booking

    bed = DomainFixture(booking)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(booking_bed):
    with booking_bed.domain_context():
        yield


@pytest.fixture()
def stores():
    from booking.stores import get_stores

    return get_stores()


@pytest.fixture()
def gateway():
    from booking.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def stocked(stores):
    """Two string products with plenty of stock."""
    stores.inventory.add_product("bg65", "Yonex BG65", "50.00", stock=10)
    stores.inventory.add_product("bg80", "Yonex BG80", "30.00", stock=10)
    return stores
