"""Domain error codes for the booking context.

Input and state errors (bad tension, empty cart, unknown product, illegal
status transition) are raised as ``protean.exceptions.ValidationError``.
The errors below cover everything a caller must react to differently:
eligibility problems the customer can fix, races, exhausted stock, upstream
outages, and failures that need manual reconciliation.
"""

from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    VOUCHER_NOT_ELIGIBLE = "VOUCHER_NOT_ELIGIBLE"
    VOUCHER_ALREADY_CONSUMED = "VOUCHER_ALREADY_CONSUMED"
    INSUFFICIENT_PACKAGE_CREDITS = "INSUFFICIENT_PACKAGE_CREDITS"
    PACKAGE_NOT_USABLE = "PACKAGE_NOT_USABLE"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    RECONCILIATION_REQUIRED = "RECONCILIATION_REQUIRED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    retryable = False

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


# ---------------------------------------------------------------------------
# Eligibility: the caller should re-query the catalog and re-offer
# ---------------------------------------------------------------------------
class EligibilityError(DomainError):
    """The chosen discount instrument cannot be used for this order."""


class VoucherNotEligible(EligibilityError):
    def __init__(self, voucher_id: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.VOUCHER_NOT_ELIGIBLE,
            message=f"Voucher cannot be used: {reason}",
        )
        self.voucher_id = voucher_id
        self.reason = reason


class VoucherAlreadyConsumed(EligibilityError):
    def __init__(self, voucher_id: str) -> None:
        super().__init__(
            code=ErrorCode.VOUCHER_ALREADY_CONSUMED,
            message="Voucher has already been used",
        )
        self.voucher_id = voucher_id


class InsufficientPackageCredits(EligibilityError):
    def __init__(self, package_id: str, needed: int, remaining: int) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_PACKAGE_CREDITS,
            message=f"Package has {remaining} credits, {needed} needed",
        )
        self.package_id = package_id
        self.needed = needed
        self.remaining = remaining


class PackageNotUsable(EligibilityError):
    def __init__(self, package_id: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.PACKAGE_NOT_USABLE,
            message=f"Package cannot be used: {reason}",
        )
        self.package_id = package_id
        self.reason = reason


# ---------------------------------------------------------------------------
# Races and resources
# ---------------------------------------------------------------------------
class ConcurrencyConflict(DomainError):
    """Lost every compare-and-swap attempt on a contended resource."""

    retryable = True

    def __init__(self, resource: str, attempts: int) -> None:
        super().__init__(
            code=ErrorCode.CONCURRENCY_CONFLICT,
            message="Resource is busy, please try again",
        )
        self.resource = resource
        self.attempts = attempts


class ResourceExhausted(DomainError):
    """A finite resource ran out."""


class OutOfStock(ResourceExhausted):
    def __init__(self, product_id: str) -> None:
        super().__init__(
            code=ErrorCode.OUT_OF_STOCK,
            message="String is out of stock",
        )
        self.product_id = product_id


# ---------------------------------------------------------------------------
# Collaborators and bookkeeping
# ---------------------------------------------------------------------------
class UpstreamFailure(DomainError):
    """The payment gateway could not be reached or timed out."""

    retryable = True

    def __init__(self, order_id: str, detail: str) -> None:
        super().__init__(
            code=ErrorCode.UPSTREAM_FAILURE,
            message="Payment provider unavailable, the charge can be retried",
        )
        self.order_id = order_id
        self.detail = detail


class ReconciliationRequired(DomainError):
    """A rollback or compensation could not be completed.

    Stores may now disagree with the order history. Needs an operator.
    """

    def __init__(self, redemption_key: str, failed_steps: list[str]) -> None:
        super().__init__(
            code=ErrorCode.RECONCILIATION_REQUIRED,
            message="Order could not be settled, support has been notified",
        )
        self.redemption_key = redemption_key
        self.failed_steps = failed_steps


class OrderNotFound(DomainError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            code=ErrorCode.ORDER_NOT_FOUND,
            message="Order not found",
        )
        self.order_id = order_id
