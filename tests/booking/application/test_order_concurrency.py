"""Concurrent commands against the same cart or order.

Each caller runs on its own thread with its own domain context. Commands
for one aggregate must behave as if they ran one after the other.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from booking.cart.cart import Cart, CartStatus
from booking.cart.checkout import submit_cart
from booking.cart.management import AddRacket, CreateCart
from booking.dispatch import process
from booking.domain import booking
from booking.gateway import set_gateway
from booking.gateway.fake_adapter import FakeGateway
from booking.order.cancellation import CancelOrder
from booking.order.order import Order, OrderStatus
from booking.order.payment import ChargeOrder, RequestPayment
from booking.redemption.coordinator import RedemptionCoordinator
from booking.shared.line_item import RacketLineItem
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ValidationError


class SlowGateway(FakeGateway):
    """Signals when a charge starts, then takes a while to answer."""

    def __init__(self, delay=0.2):
        super().__init__()
        self.charging = threading.Event()
        self.delay = delay

    def charge(self, order_id, amount, currency, timeout):
        self.charging.set()
        time.sleep(self.delay)
        return super().charge(order_id, amount, currency, timeout)


def _racket():
    return RacketLineItem(product_id="bg65", unit_price="50.00", tension_main=26, tension_cross=27)


def _awaiting_payment_order():
    order = RedemptionCoordinator().submit([_racket()], None, "cust-001")
    process(RequestPayment(order_id=order.id))
    return order.id


def _run_together(*calls):
    """Run each call on its own thread; exceptions come back as results."""

    def run(call):
        with booking.domain_context():
            try:
                return call()
            except Exception as exc:
                return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def _get(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestConcurrentCartSubmit:
    def test_cart_yields_one_order(self, stocked):
        cart_id = process(CreateCart(customer_id="cust-001"))
        process(AddRacket(cart_id=cart_id, product_id="bg65", tension_main=26, tension_cross=27))
        start = threading.Barrier(2, timeout=5)

        def submit():
            start.wait()
            return submit_cart(cart_id)

        results = _run_together(submit, submit)
        orders = [r for r in results if isinstance(r, Order)]
        errors = [r for r in results if isinstance(r, Exception)]

        assert len(orders) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)
        assert stocked.inventory.get("bg65").stock == 9
        cart = current_domain.repository_for(Cart).get(cart_id)
        assert str(cart.order_id) == str(orders[0].id)

    def test_unclaimed_cart_releases_its_order(self, stocked, monkeypatch):
        cart_id = process(CreateCart(customer_id="cust-001"))
        process(AddRacket(cart_id=cart_id, product_id="bg65", tension_main=26, tension_cross=27))

        submitted = []
        original_submit = RedemptionCoordinator.submit

        def recording_submit(self, *args, **kwargs):
            order = original_submit(self, *args, **kwargs)
            submitted.append(order.id)
            return order

        def conflicting_claim(self, order_id):
            raise ExpectedVersionError("Cart was modified by another request")

        monkeypatch.setattr(RedemptionCoordinator, "submit", recording_submit)
        monkeypatch.setattr(Cart, "mark_submitted", conflicting_claim)

        with pytest.raises(ExpectedVersionError):
            submit_cart(cart_id)

        assert len(submitted) == 1
        orphan = _get(submitted[0])
        assert orphan.status == OrderStatus.CANCELLED.value
        assert orphan.cancelled_by == "System"
        assert orphan.resources_released is True
        assert stocked.inventory.get("bg65").stock == 10
        assert current_domain.repository_for(Cart).get(cart_id).status == CartStatus.ACTIVE.value


class TestCancelDuringCharge:
    def test_cancel_waits_for_capture_and_records_refund(self, stocked):
        gateway = SlowGateway()
        set_gateway(gateway)
        order_id = _awaiting_payment_order()

        def charge():
            return process(ChargeOrder(order_id=order_id))

        def cancel():
            gateway.charging.wait(5)
            return process(CancelOrder(order_id=order_id, reason="Changed mind"))

        results = _run_together(charge, cancel)

        assert results == [OrderStatus.CONFIRMED.value, OrderStatus.CANCELLED.value]
        order = _get(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_captured is True
        assert order.refund_due == "50.00"
        assert [entry.status for entry in order.status_log] == [
            "pending",
            "awaiting_payment",
            "confirmed",
            "cancelled",
        ]
        assert stocked.inventory.get("bg65").stock == 10

    def test_charge_after_cancel_is_refused(self, stocked, gateway, monkeypatch):
        order_id = _awaiting_payment_order()
        compensating = threading.Event()
        original_compensate = RedemptionCoordinator.compensate

        def slow_compensate(self, record, reason):
            compensating.set()
            time.sleep(0.2)
            return original_compensate(self, record, reason)

        monkeypatch.setattr(RedemptionCoordinator, "compensate", slow_compensate)

        def cancel():
            return process(CancelOrder(order_id=order_id, reason="Changed mind"))

        def charge():
            compensating.wait(5)
            return process(ChargeOrder(order_id=order_id))

        cancelled, charged = _run_together(cancel, charge)

        assert cancelled == OrderStatus.CANCELLED.value
        assert isinstance(charged, ValidationError)
        assert gateway.calls == []
        order = _get(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.refund_due == "0.00"
        assert stocked.inventory.get("bg65").stock == 10
