"""Payment gateway port (abstract interface).

The booking engine hands the gateway an order id and a fixed amount and gets
one of three answers back. Everything else about the provider (cards,
e-wallets, bank transfers awaiting a human check) stays behind the adapter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class ChargeOutcome(Enum):
    SUCCESS = "success"
    PENDING_VERIFICATION = "pending_verification"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment charge attempt."""

    outcome: ChargeOutcome
    gateway_reference: str | None = None
    failure_reason: str | None = None


class GatewayUnavailable(Exception):
    """The gateway could not be reached or did not answer within the timeout."""


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def charge(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        timeout: float,
    ) -> ChargeResult:
        """Charge ``amount`` for ``order_id``.

        The order id is the idempotency key: charging the same order again
        returns the first attempt's result instead of charging twice.

        Raises:
            GatewayUnavailable: On timeout or outage. Safe to retry.
        """
        ...
