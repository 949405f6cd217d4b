"""Redemption coordinator — turns a priced cart into an Order, atomically.

Submission consumes three kinds of finite resource: one stock unit per
racket, the credits of a prepaid package or one use of a voucher. Each is
taken with a compare-and-swap against the value just read from its store,
so two submissions racing for the last unit can never both win. A lost
swap re-reads and re-validates, up to ``max_redemption_attempts`` times.

Either everything succeeds and a PENDING order exists, or every resource
already taken is handed back (newest first) and the original error is
raised. A hand-back that fails leaves the stores out of step with the order
history; that is raised as ``ReconciliationRequired``.
"""

from functools import partial
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from booking.config import settings
from booking.discounts.instruments import MembershipTier, PackageCredit, PackageStatus, Voucher
from booking.errors import (
    ConcurrencyConflict,
    InsufficientPackageCredits,
    OutOfStock,
    PackageNotUsable,
    ReconciliationRequired,
    VoucherAlreadyConsumed,
    VoucherNotEligible,
)
from booking.order.order import Order
from booking.pricing.engine import compute_breakdown, quote_matches
from booking.redemption.record import InstrumentKind, RedemptionRecord
from booking.shared.money import ZERO
from booking.stores import get_stores
from booking.tension.policy import TensionPolicy

logger = structlog.get_logger(__name__)


class RedemptionCoordinator:
    def __init__(self, stores=None, policy=None, max_attempts=None, currency=None):
        self.stores = stores or get_stores()
        self.policy = policy or TensionPolicy.from_settings()
        self.max_attempts = max_attempts or settings.max_redemption_attempts
        self.currency = currency or settings.currency

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def submit(self, items, selected_instrument, user_id, quoted=None) -> Order:
        """Redeem resources for ``items`` and persist a PENDING order.

        Args:
            items: RacketLineItems from the cart. Prices are re-read from
                inventory; the cart's copies are ignored.
            selected_instrument: A PackageCredit or Voucher chosen by the
                customer, a MembershipTier (ignored, the server tier always
                applies) or None.
            user_id: The customer submitting.
            quoted: The PriceBreakdown the customer was shown, if any.

        Raises:
            ValidationError: Empty cart, bad tension, unknown product or
                unknown instrument.
            EligibilityError: The instrument no longer qualifies.
            OutOfStock: A string product ran out.
            ConcurrencyConflict: Lost every attempt on a contended resource.
            ReconciliationRequired: Rollback after a failure did not finish.
        """
        items = list(items)
        if not items:
            raise ValidationError({"items": ["Cart is empty"]})
        for item in items:
            self.policy.validate(item)

        redemption_key = str(uuid4())
        log = logger.bind(redemption_key=redemption_key, user_id=user_id)

        priced = [self._authoritative_item(item, log) for item in items]
        base_total = sum((item.unit_price for item in priced), ZERO)
        tier = self.stores.membership.get_tier(user_id)
        instrument = self._fresh_instrument(selected_instrument, user_id, len(priced), base_total)

        breakdown = compute_breakdown(priced, instrument, tier)
        if not quote_matches(quoted, breakdown):
            log.warning(
                "redemption.quote_mismatch",
                quoted=quoted.to_dict(),
                authoritative=breakdown.to_dict(),
            )

        stock_deltas: dict[str, int] = {}
        instrument_kind = InstrumentKind.NONE
        instrument_id = None
        credits_consumed = 0
        voucher_token = None

        def taken_so_far():
            return RedemptionRecord(
                redemption_key=redemption_key,
                user_id=user_id,
                instrument_kind=instrument_kind,
                instrument_id=instrument_id,
                credits_consumed=credits_consumed,
                voucher_token=voucher_token,
                stock_deltas=dict(stock_deltas),
            )

        try:
            for item in priced:
                self._take_stock(item.product_id, redemption_key, log)
                stock_deltas[item.product_id] = stock_deltas.get(item.product_id, 0) + 1

            if isinstance(instrument, PackageCredit):
                self._consume_package(instrument.package_instance_id, user_id, len(priced), log)
                instrument_kind = InstrumentKind.PACKAGE
                instrument_id = instrument.package_instance_id
                credits_consumed = len(priced)
            elif isinstance(instrument, Voucher):
                self._consume_voucher(instrument.id, user_id, base_total, log)
                instrument_kind = InstrumentKind.VOUCHER
                instrument_id = instrument.id
                voucher_token = f"{redemption_key}:voucher:{instrument.id}"

            record = taken_so_far()
            order = Order.submit(
                customer_id=user_id,
                line_items=priced,
                breakdown=breakdown,
                redemption=record,
                membership_label=None if breakdown.package_covered else tier.label,
                currency=self.currency,
            )
            current_domain.repository_for(Order).add(order)
        except Exception as exc:
            partial_record = taken_so_far()
            log.info("redemption.rolling_back", error=str(exc), consumed=partial_record.consumed_anything)
            if partial_record.consumed_anything:
                self.compensate(partial_record, reason=f"rollback: {type(exc).__name__}")
            raise

        log.info(
            "redemption.order_submitted",
            order_id=str(order.id),
            instrument=instrument_kind.value,
            final_total=str(breakdown.rounded().final_total),
        )
        return order

    # -------------------------------------------------------------------
    # Compensation
    # -------------------------------------------------------------------
    def compensate(self, record: RedemptionRecord, reason: str) -> list[str]:
        """Hand back everything ``record`` consumed, instrument first.

        Every step is keyed on the record's redemption key, so running this
        twice for the same record restores nothing the second time.

        Returns:
            The resources actually restored by this call.

        Raises:
            ReconciliationRequired: A store refused or failed a restore.
        """
        log = logger.bind(redemption_key=record.redemption_key, user_id=record.user_id, reason=reason)
        steps = []

        if record.instrument_kind == InstrumentKind.PACKAGE:
            steps.append(
                (
                    f"package:{record.instrument_id}",
                    partial(self.stores.packages.restore, record.instrument_id, record.credits_consumed),
                )
            )
        elif record.instrument_kind == InstrumentKind.VOUCHER:
            steps.append(
                (
                    f"voucher:{record.instrument_id}",
                    partial(self.stores.vouchers.restore, record.user_id, record.instrument_id),
                )
            )

        for product_id, units in reversed(list(record.stock_deltas.items())):
            steps.append((f"stock:{product_id}", partial(self.stores.inventory.restore, product_id, units)))

        restored = []
        failed = []
        for resource, restore in steps:
            try:
                applied = restore(idempotency_key=record.compensation_key(resource))
            except Exception as exc:
                log.error("redemption.compensation_step_failed", resource=resource, error=str(exc))
                failed.append(resource)
                continue

            if applied:
                restored.append(resource)
            else:
                log.info("redemption.compensation_already_applied", resource=resource)

        if failed:
            log.critical(
                "redemption.reconciliation_required",
                failed_steps=failed,
                restored=restored,
            )
            raise ReconciliationRequired(record.redemption_key, failed)

        log.info("redemption.compensated", restored=restored)
        return restored

    # -------------------------------------------------------------------
    # Fresh reads
    # -------------------------------------------------------------------
    def _authoritative_item(self, item, log):
        stock_item = self.stores.inventory.get(item.product_id)
        if stock_item is None:
            raise ValidationError({"product_id": [f"Unknown product {item.product_id}"]})
        if stock_item.unit_price != item.unit_price:
            log.info(
                "redemption.price_refreshed",
                product_id=item.product_id,
                cart_price=str(item.unit_price),
                current_price=str(stock_item.unit_price),
            )
        return item.with_unit_price(stock_item.unit_price)

    def _fresh_instrument(self, selected, user_id, item_count, base_total):
        if selected is None or isinstance(selected, MembershipTier):
            return None
        if isinstance(selected, PackageCredit):
            package = self.stores.packages.get(selected.package_instance_id)
            self._check_package(package, selected.package_instance_id, user_id, item_count)
            return package
        if isinstance(selected, Voucher):
            voucher = self.stores.vouchers.get(user_id, selected.id)
            self._check_voucher(voucher, selected.id, base_total)
            return voucher
        # Anything else is rejected by the pricing engine
        return selected

    @staticmethod
    def _check_package(package, package_id, user_id, item_count):
        if package is None or package.owner_id != user_id:
            raise ValidationError({"instrument": [f"Unknown package {package_id}"]})
        status = package.effective_status()
        if status != PackageStatus.ACTIVE:
            raise PackageNotUsable(package_id, status.value)
        if package.remaining_credits < item_count:
            raise InsufficientPackageCredits(package_id, item_count, package.remaining_credits)

    @staticmethod
    def _check_voucher(voucher, voucher_id, base_total):
        if voucher is None:
            raise ValidationError({"instrument": [f"Unknown voucher {voucher_id}"]})
        if voucher.remaining_uses < 1:
            raise VoucherAlreadyConsumed(voucher_id)
        reason = voucher.ineligibility_reason(base_total)
        if reason is not None:
            raise VoucherNotEligible(voucher_id, reason)

    # -------------------------------------------------------------------
    # Compare-and-swap consumption
    # -------------------------------------------------------------------
    def _retry_cas(self, resource, attempt, log):
        """Run ``attempt`` until it wins its swap or the budget runs out.

        ``attempt`` re-reads the resource, raises if it no longer qualifies,
        and returns whether its conditional write applied.
        """
        for attempt_no in range(1, self.max_attempts + 1):
            if attempt():
                return
            log.info("redemption.cas_conflict", resource=resource, attempt=attempt_no)

        log.warning("redemption.cas_exhausted", resource=resource, attempts=self.max_attempts)
        raise ConcurrencyConflict(resource, self.max_attempts)

    def _take_stock(self, product_id, redemption_key, log):
        def attempt():
            stock_item = self.stores.inventory.get(product_id)
            if stock_item is None:
                raise ValidationError({"product_id": [f"Unknown product {product_id}"]})
            if stock_item.stock < 1:
                raise OutOfStock(product_id)
            return self.stores.inventory.try_decrement(product_id, stock_item.stock, reference=redemption_key)

        self._retry_cas(f"stock:{product_id}", attempt, log)

    def _consume_package(self, package_id, user_id, credits_needed, log):
        def attempt():
            package = self.stores.packages.get(package_id)
            self._check_package(package, package_id, user_id, credits_needed)
            return self.stores.packages.try_consume(package_id, credits_needed, package.remaining_credits)

        self._retry_cas(f"package:{package_id}", attempt, log)

    def _consume_voucher(self, voucher_id, user_id, base_total, log):
        def attempt():
            voucher = self.stores.vouchers.get(user_id, voucher_id)
            self._check_voucher(voucher, voucher_id, base_total)
            return self.stores.vouchers.try_consume(user_id, voucher_id, voucher.remaining_uses)

        self._retry_cas(f"voucher:{voucher_id}", attempt, log)
