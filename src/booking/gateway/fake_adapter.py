"""Configurable fake payment gateway for development and testing.

Simulates a provider without external calls. It can be told to approve,
park for manual verification, reject, or be unreachable, and it honours the
order-id idempotency key like a real provider would.
"""

from decimal import Decimal
from uuid import uuid4

from booking.gateway.port import ChargeOutcome, ChargeResult, GatewayUnavailable, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.outcome: ChargeOutcome = ChargeOutcome.SUCCESS
        self.failure_reason: str = "Card declined"
        self.unavailable: bool = False
        self.calls: list[dict] = []
        self._results: dict[str, ChargeResult] = {}

    def configure(
        self,
        outcome: ChargeOutcome = ChargeOutcome.SUCCESS,
        failure_reason: str = "Card declined",
        unavailable: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.outcome = outcome
        self.failure_reason = failure_reason
        self.unavailable = unavailable

    def charge(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        timeout: float,
    ) -> ChargeResult:
        self.calls.append(
            {
                "method": "charge",
                "order_id": order_id,
                "amount": amount,
                "currency": currency,
                "timeout": timeout,
            }
        )

        if self.unavailable:
            raise GatewayUnavailable(f"Gateway did not answer within {timeout}s")

        if order_id in self._results:
            return self._results[order_id]

        if self.outcome == ChargeOutcome.REJECTED:
            result = ChargeResult(outcome=ChargeOutcome.REJECTED, failure_reason=self.failure_reason)
        else:
            result = ChargeResult(outcome=self.outcome, gateway_reference=f"fake_txn_{uuid4().hex[:12]}")

        self._results[order_id] = result
        return result
