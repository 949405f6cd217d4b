"""BDD tests for pricing scenarios."""

from decimal import Decimal

import pytest
from booking.discounts.instruments import PackageCredit, Voucher, VoucherKind
from booking.discounts.membership import MEMBERSHIP_TIERS
from booking.pricing.engine import compute_breakdown
from booking.shared.line_item import RacketLineItem
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/pricing.feature")

_TIERS = {tier.label: tier.as_tier() for tier in MEMBERSHIP_TIERS}


@pytest.fixture()
def pricing():
    return {"items": [], "instrument": None, "tier": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a racket strung for RM{price}"))
def _(pricing, price):
    pricing["items"].append(
        RacketLineItem(
            product_id=f"string-{len(pricing['items'])}",
            unit_price=price,
            tension_main=26,
            tension_cross=27,
        )
    )


@given(parsers.cfparse("a {percent:d}% voucher with a minimum purchase of RM{minimum}"))
def _(pricing, percent, minimum):
    pricing["instrument"] = Voucher(id="PCT", kind=VoucherKind.PERCENTAGE, value=percent, min_purchase=minimum)


@given(parsers.cfparse("a RM{amount:d} voucher with a minimum purchase of RM{minimum}"))
def _(pricing, amount, minimum):
    pricing["instrument"] = Voucher(id="FIXED", kind=VoucherKind.FIXED_AMOUNT, value=amount, min_purchase=minimum)


@given(parsers.cfparse("a package with {credits:d} credits"))
def _(pricing, credits):
    pricing["instrument"] = PackageCredit(package_instance_id="pkg-1", owner_id="cust-001", remaining_credits=credits)


@given(parsers.cfparse("the customer is a {label} member"))
def _(pricing, label):
    pricing["tier"] = _TIERS[label]


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the order is priced", target_fixture="breakdown")
def _(pricing):
    return compute_breakdown(pricing["items"], pricing["instrument"], pricing["tier"]).rounded()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the voucher discount is RM{amount}"))
def _(breakdown, amount):
    assert breakdown.voucher_discount == Decimal(amount)


@then(parsers.cfparse("the membership discount is RM{amount}"))
def _(breakdown, amount):
    assert breakdown.membership_discount == Decimal(amount)


@then(parsers.cfparse("the final total is RM{amount}"))
def _(breakdown, amount):
    assert breakdown.final_total == Decimal(amount)


@then("the order is covered by the package")
def _(breakdown):
    assert breakdown.package_covered is True
    assert breakdown.voucher_discount == Decimal("0")
    assert breakdown.membership_discount == Decimal("0")
