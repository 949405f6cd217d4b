"""Application tests for CancelOrder — compensation runs exactly once."""

import pytest
from booking.discounts.instruments import PackageCredit, PackageStatus, Voucher, VoucherKind
from booking.dispatch import process
from booking.errors import ReconciliationRequired
from booking.order.cancellation import CancelOrder
from booking.order.fulfillment import StartStringing
from booking.order.order import Order, OrderStatus
from booking.order.payment import ChargeOrder, RequestPayment
from booking.redemption.coordinator import RedemptionCoordinator
from booking.shared.line_item import RacketLineItem
from protean import current_domain
from protean.exceptions import ValidationError


def _racket():
    return RacketLineItem(product_id="bg65", unit_price="50.00", tension_main=26, tension_cross=27)


def _cancel(order_id, reason="Changed mind", cancelled_by="Customer"):
    return process(CancelOrder(order_id=order_id, reason=reason, cancelled_by=cancelled_by))


class TestCancelWithVoucher:
    def test_restores_voucher_and_stock(self, stocked):
        voucher = Voucher(id="ONCE", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stocked.vouchers.issue("cust-001", voucher)
        order = RedemptionCoordinator().submit([_racket()], voucher, "cust-001")
        assert stocked.vouchers.get("cust-001", "ONCE").remaining_uses == 0

        _cancel(order.id)

        cancelled = current_domain.repository_for(Order).get(order.id)
        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Changed mind"
        assert cancelled.resources_released is True
        assert stocked.vouchers.get("cust-001", "ONCE").remaining_uses == 1
        assert stocked.inventory.get("bg65").stock == 10

    def test_double_cancel_restores_once(self, stocked):
        voucher = Voucher(id="ONCE", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stocked.vouchers.issue("cust-001", voucher)
        order = RedemptionCoordinator().submit([_racket()], voucher, "cust-001")

        _cancel(order.id)
        _cancel(order.id)

        assert stocked.vouchers.get("cust-001", "ONCE").remaining_uses == 1
        assert stocked.inventory.get("bg65").stock == 10
        cancelled = current_domain.repository_for(Order).get(order.id)
        assert [entry.status for entry in cancelled.status_log].count("cancelled") == 1

    def test_replayed_compensation_restores_nothing(self, stocked):
        voucher = Voucher(id="ONCE", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stocked.vouchers.issue("cust-001", voucher)
        order = RedemptionCoordinator().submit([_racket()], voucher, "cust-001")
        coordinator = RedemptionCoordinator()

        first = coordinator.compensate(order.redemption_record, reason="test")
        second = coordinator.compensate(order.redemption_record, reason="test")

        assert first == ["voucher:ONCE", "stock:bg65"]
        assert second == []
        assert stocked.vouchers.get("cust-001", "ONCE").remaining_uses == 1


class TestCancelWithPackage:
    def test_restores_credits_and_reactivates(self, stocked):
        package = PackageCredit(package_instance_id="pkg-1", owner_id="cust-001", remaining_credits=2)
        stocked.packages.add(package)
        order = RedemptionCoordinator().submit([_racket(), _racket()], package, "cust-001")
        assert stocked.packages.get("pkg-1").status == PackageStatus.DEPLETED

        _cancel(order.id)

        restored = stocked.packages.get("pkg-1")
        assert restored.remaining_credits == 2
        assert restored.status == PackageStatus.ACTIVE
        assert stocked.inventory.get("bg65").stock == 10


class TestRefund:
    def test_captured_payment_marks_refund_due(self, stocked):
        order = RedemptionCoordinator().submit([_racket()], None, "cust-001")
        process(RequestPayment(order_id=order.id))
        process(ChargeOrder(order_id=order.id))

        _cancel(order.id, reason="Shop closed", cancelled_by="Admin")

        cancelled = current_domain.repository_for(Order).get(order.id)
        assert cancelled.refund_due == "50.00"
        assert cancelled.cancelled_by == "Admin"


class TestIllegalCancel:
    def test_in_progress_order_keeps_resources(self, stocked):
        voucher = Voucher(id="ONCE", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stocked.vouchers.issue("cust-001", voucher)
        order = RedemptionCoordinator().submit([_racket()], voucher, "cust-001")
        process(RequestPayment(order_id=order.id))
        process(ChargeOrder(order_id=order.id))
        process(StartStringing(order_id=order.id))

        with pytest.raises(ValidationError):
            _cancel(order.id)

        assert stocked.vouchers.get("cust-001", "ONCE").remaining_uses == 0
        assert stocked.inventory.get("bg65").stock == 9


class TestReconciliation:
    def test_failed_restore_escalates(self, stocked, monkeypatch):
        voucher = Voucher(id="ONCE", kind=VoucherKind.FIXED_AMOUNT, value="10")
        stocked.vouchers.issue("cust-001", voucher)
        order = RedemptionCoordinator().submit([_racket()], voucher, "cust-001")

        def broken_restore(*args, **kwargs):
            raise ConnectionError("voucher service down")

        monkeypatch.setattr(stocked.vouchers, "restore", broken_restore)

        with pytest.raises(ReconciliationRequired) as exc:
            _cancel(order.id)

        assert exc.value.failed_steps == ["voucher:ONCE"]
        # Remaining steps still ran
        assert stocked.inventory.get("bg65").stock == 10
        assert current_domain.repository_for(Order).get(order.id).status == OrderStatus.PENDING.value
