from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional, Any, Literal
from datetime import datetime

from app.payouts.state_machine import REF_STATUSES


PayoutStatus = Literal["pending", "sent", "paid", "failed"]


@dataclass(frozen=True)
class Payout:
    id: str
    creator_id: str
    company_id: str
    amount_cents: int
    currency: str
    status: PayoutStatus
    external_ref: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int
    last_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "company_id": self.company_id,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "status": self.status,
            "external_ref": self.external_ref,
            "last_error": self.last_error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }


@dataclass(frozen=True)
class PayoutMutation:
    """
    The only shape a payout write can take. Applied by the store's CAS.

    sent/paid keep the existing external_ref unless a new one is given; any
    other status clears it, recording the cleared ref in last_error when no
    error is given.
    """
    status: PayoutStatus
    external_ref: Optional[str] = None
    last_error: Optional[str] = None

    def resolved_ref(self, current: Payout) -> Optional[str]:
        if self.status not in REF_STATUSES:
            return None
        return self.external_ref if self.external_ref is not None else current.external_ref

    def resolved_error(self, current: Payout) -> Optional[str]:
        if self.last_error is None and current.external_ref and self.status not in REF_STATUSES:
            return f"reversed external_ref={current.external_ref}"
        return self.last_error

    def apply(self, payout: Payout, *, now: datetime) -> Payout:
        return replace(
            payout,
            status=self.status,
            external_ref=self.resolved_ref(payout),
            last_error=self.resolved_error(payout),
            updated_at=now,
            version=payout.version + 1,
        )


StoreStatus = Literal["OK", "NOT_FOUND", "CONFLICT"]


@dataclass(frozen=True)
class StoreResult:
    status: StoreStatus
    payout: Optional[Payout] = None

    @property
    def ok(self) -> bool:
        return self.status == "OK"

    @classmethod
    def found(cls, payout: Payout) -> "StoreResult":
        return cls(status="OK", payout=payout)

    @classmethod
    def not_found(cls) -> "StoreResult":
        return cls(status="NOT_FOUND")

    @classmethod
    def conflict(cls) -> "StoreResult":
        return cls(status="CONFLICT")


@dataclass(frozen=True)
class AuditEvent:
    action: str
    payout_id: Optional[str]
    actor_user_id: Optional[str]
    company_id: Optional[str]
    metadata: Optional[dict[str, Any]] = None
    request_id: Optional[str] = None
