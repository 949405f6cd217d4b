"""Where ChargeOrder finds its payment gateway.

Bookings are charged through whichever ``PaymentGateway`` is installed here.
Nothing is installed until the first charge, which then gets a
``FakeGateway`` that approves every booking. Tests and local runs install a
configured fake with ``set_gateway``; a deployment installs its provider
adapter the same way at start-up.
"""

from booking.gateway.fake_adapter import FakeGateway
from booking.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """The gateway bookings are charged through, creating the fake on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Drop the installed gateway so the next charge starts from a fresh fake."""
    global _current_gateway
    _current_gateway = None
