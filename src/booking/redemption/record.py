"""Redemption record — what a submission consumed, so it can be given back.

One record per submitted order. It names the consumed instrument, the
exact units taken, and the stock removed per product. Every compensation
derives its idempotency key from the record's ``redemption_key`` plus the
resource, so replaying a cancellation never credits anything twice.
"""

import json
from dataclasses import dataclass, field
from enum import Enum


class InstrumentKind(Enum):
    NONE = "none"
    PACKAGE = "package"
    VOUCHER = "voucher"


@dataclass(frozen=True)
class RedemptionRecord:
    redemption_key: str
    user_id: str
    instrument_kind: InstrumentKind = InstrumentKind.NONE
    instrument_id: str | None = None
    credits_consumed: int = 0
    voucher_token: str | None = None
    stock_deltas: dict[str, int] = field(default_factory=dict)

    def compensation_key(self, resource: str) -> str:
        return f"{self.redemption_key}:restore:{resource}"

    @property
    def consumed_anything(self) -> bool:
        return self.instrument_kind != InstrumentKind.NONE or bool(self.stock_deltas)

    def to_json(self) -> str:
        return json.dumps(
            {
                "redemption_key": self.redemption_key,
                "user_id": self.user_id,
                "instrument_kind": self.instrument_kind.value,
                "instrument_id": self.instrument_id,
                "credits_consumed": self.credits_consumed,
                "voucher_token": self.voucher_token,
                "stock_deltas": self.stock_deltas,
            }
        )

    @classmethod
    def from_json(cls, payload: str) -> "RedemptionRecord":
        data = json.loads(payload)
        return cls(
            redemption_key=data["redemption_key"],
            user_id=data["user_id"],
            instrument_kind=InstrumentKind(data.get("instrument_kind", InstrumentKind.NONE.value)),
            instrument_id=data.get("instrument_id"),
            credits_consumed=data.get("credits_consumed", 0),
            voucher_token=data.get("voucher_token"),
            stock_deltas={str(k): int(v) for k, v in (data.get("stock_deltas") or {}).items()},
        )
