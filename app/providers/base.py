# app/providers/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Literal

ProviderStatus = Literal["SENT", "FAILED"]

@dataclass(frozen=True)
class ProviderResult:
    status: ProviderStatus
    external_ref: Optional[str] = None
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "SENT" and bool(self.external_ref)

    @classmethod
    def sent(cls, external_ref: str, response: Optional[dict[str, Any]] = None) -> "ProviderResult":
        return cls(status="SENT", external_ref=external_ref, response=response)

    @classmethod
    def failed(cls, error: str, response: Optional[dict[str, Any]] = None) -> "ProviderResult":
        return cls(status="FAILED", error=error, response=response)


class SettlementProvider(Protocol):
    """
    Moves funds for one payout. Must treat idempotency_key as a dedup token:
    two calls with the same key are the same transfer.
    """

    def send(
        self,
        payout_id: str,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
    ) -> ProviderResult: ...
