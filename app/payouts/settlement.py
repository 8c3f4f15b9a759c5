# app/payouts/settlement.py
"""
Settlement engine: authorizes and advances payouts through the state machine.

    pending -> sent -> paid
    pending -> failed, sent -> failed

The provider call is the single irreversible step. Everything before it is
re-checkable (load, authorize, pending guard, claim); everything after it is a
conflict-tolerant CAS that never calls the provider again.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from app.payouts.model import AuditEvent, Payout, PayoutMutation, StoreResult
from app.payouts.repository import DEFAULT_LIST_LIMIT, PayoutStore
from app.payouts.state_machine import InvalidTransition
from app.providers.base import ProviderResult, SettlementProvider
from services.identity import Principal
from services.idempotency import settlement_key
from services.observability import get_request_id
from services.roles import (
    CONFIRM_PAYOUT,
    LIST_PAYOUTS,
    READ_PAYOUT,
    SEND_PAYOUT,
    ResourceScope,
    admin_only,
    is_authorized,
)
from settings import settings

logger = logging.getLogger("creatorpay.settlement")
audit_logger = logging.getLogger("creatorpay.audit")

OutcomeStatus = Literal[
    "OK",
    "SENT",
    "PAID",
    "ALREADY_ADVANCED",
    "IN_PROGRESS",
    "FORBIDDEN",
    "NOT_FOUND",
    "INVALID_STATE",
    "PROVIDER_FAILED",
]

SUCCESS_STATUSES = frozenset({"OK", "SENT", "PAID", "ALREADY_ADVANCED"})


@dataclass(frozen=True)
class SettlementOutcome:
    status: OutcomeStatus
    payout: Optional[Payout] = None
    error: Optional[str] = None
    payouts: tuple[Payout, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def external_ref(self) -> Optional[str]:
        return self.payout.external_ref if self.payout else None


class SettlementEngine:
    def __init__(
        self,
        store: PayoutStore,
        provider: SettlementProvider,
        *,
        claim_wait_s: Optional[float] = None,
        claim_poll_s: Optional[float] = None,
        persist_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.provider = provider
        self.claim_wait_s = settings.SETTLEMENT_CLAIM_WAIT_S if claim_wait_s is None else claim_wait_s
        self.claim_poll_s = settings.SETTLEMENT_CLAIM_POLL_S if claim_poll_s is None else claim_poll_s
        self.persist_attempts = (
            settings.SETTLEMENT_PERSIST_ATTEMPTS if persist_attempts is None else persist_attempts
        )
        self._sleep = sleep
        self._monotonic = monotonic

    # ==========================================================
    # send: pending -> sent | failed
    # ==========================================================

    def send_payout(self, principal: Principal, payout_id: str) -> SettlementOutcome:
        loaded = self.store.get(payout_id)
        if not loaded.ok:
            return SettlementOutcome("NOT_FOUND")
        payout = loaded.payout

        if not admin_only(principal, ResourceScope(payout.company_id)):
            self._forbidden(principal, payout, SEND_PAYOUT)
            return SettlementOutcome("FORBIDDEN")

        if payout.status != "pending":
            return SettlementOutcome(
                "INVALID_STATE",
                payout=payout,
                error=f"Payout is {payout.status}, expected pending",
            )

        key = settlement_key(payout.id, payout.version)
        if not self.store.claim_settlement(payout.id, key):
            logger.info("settlement claim lost payout=%s version=%s", payout.id, payout.version)
            return self._await_winner(payout)

        result = self._call_provider(payout, key)
        logger.info(
            "settlement provider answered payout=%s key=%s status=%s ref=%s error=%s",
            payout.id, key, result.status, result.external_ref, result.error,
        )

        if result.ok:
            mutation = PayoutMutation(status="sent", external_ref=result.external_ref)
        else:
            mutation = PayoutMutation(status="failed", last_error=result.error or "Settlement failed")

        # from here on the provider has committed; persist regardless of caller state
        written = self._persist(payout, mutation)
        if written is None:
            logger.error(
                "settlement outcome not persisted payout=%s key=%s status=%s ref=%s",
                payout.id, key, result.status, result.external_ref,
            )
            self._audit(
                "settlement_unpersisted",
                principal,
                payout,
                {"idempotency_key": key, "external_ref": result.external_ref, "error": result.error},
            )
            return SettlementOutcome(
                "IN_PROGRESS",
                payout=payout,
                error="Settlement outcome could not be recorded",
            )
        if written.status == "CONFLICT":
            logger.warning(
                "settlement CAS conflict payout=%s version=%s provider_status=%s",
                payout.id, payout.version, result.status,
            )
            return self._current(payout.id, "ALREADY_ADVANCED")
        if written.status == "NOT_FOUND":
            logger.error("payout vanished after settlement payout=%s ref=%s", payout.id, result.external_ref)
            return SettlementOutcome("NOT_FOUND")

        self._audit(
            "payout_sent" if result.ok else "payout_failed",
            principal,
            written.payout,
            {"idempotency_key": key, "external_ref": result.external_ref, "error": result.error},
        )

        if result.ok:
            logger.info("payout sent payout=%s ref=%s", payout.id, result.external_ref)
            return SettlementOutcome("SENT", payout=written.payout)

        logger.warning("payout failed payout=%s error=%s", payout.id, result.error)
        return SettlementOutcome("PROVIDER_FAILED", payout=written.payout, error=result.error)

    def _call_provider(self, payout: Payout, key: str) -> ProviderResult:
        try:
            result = self.provider.send(payout.id, payout.amount_cents, payout.currency, key)
        except Exception as exc:
            logger.exception("settlement provider raised payout=%s key=%s", payout.id, key)
            return ProviderResult.failed(f"{type(exc).__name__}: {exc}")

        if result is None or (result.status == "SENT" and not result.external_ref):
            return ProviderResult.failed("Provider returned no external_ref")
        return result

    def _persist(self, payout: Payout, mutation: PayoutMutation) -> Optional[StoreResult]:
        """
        CAS the provider outcome, retrying store exceptions a bounded number of
        times. Returns None when every attempt raised.
        """
        attempts = max(1, self.persist_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return self.store.compare_and_swap(payout.id, payout.version, mutation)
            except (InvalidTransition, ValueError):
                raise
            except Exception:
                logger.exception(
                    "settlement CAS raised payout=%s attempt=%s/%s", payout.id, attempt, attempts
                )
                if attempt < attempts:
                    self._sleep(self.claim_poll_s)
        return None

    def _await_winner(self, seen: Payout) -> SettlementOutcome:
        deadline = self._monotonic() + max(0.0, self.claim_wait_s)
        while True:
            current = self.store.get(seen.id)
            if not current.ok:
                return SettlementOutcome("NOT_FOUND")
            if current.payout.version != seen.version:
                return SettlementOutcome("ALREADY_ADVANCED", payout=current.payout)
            if self._monotonic() >= deadline:
                return SettlementOutcome(
                    "IN_PROGRESS",
                    payout=current.payout,
                    error="Settlement already in progress",
                )
            self._sleep(self.claim_poll_s)

    # ==========================================================
    # confirm: sent -> paid
    # ==========================================================

    def confirm_payout(self, principal: Principal, payout_id: str) -> SettlementOutcome:
        loaded = self.store.get(payout_id)
        if not loaded.ok:
            return SettlementOutcome("NOT_FOUND")
        payout = loaded.payout

        if not is_authorized(principal, CONFIRM_PAYOUT, ResourceScope(payout.company_id)):
            self._forbidden(principal, payout, CONFIRM_PAYOUT)
            return SettlementOutcome("FORBIDDEN")

        if payout.status != "sent":
            return SettlementOutcome(
                "INVALID_STATE",
                payout=payout,
                error=f"Payout is {payout.status}, expected sent",
            )

        written = self.store.compare_and_swap(payout.id, payout.version, PayoutMutation(status="paid"))
        if written.status == "CONFLICT":
            return self._current(payout.id, "ALREADY_ADVANCED")
        if written.status == "NOT_FOUND":
            return SettlementOutcome("NOT_FOUND")

        self._audit("payout_paid", principal, written.payout, {"external_ref": written.payout.external_ref})
        return SettlementOutcome("PAID", payout=written.payout)

    # ==========================================================
    # reads
    # ==========================================================

    def get_payout(self, principal: Principal, payout_id: str) -> SettlementOutcome:
        loaded = self.store.get(payout_id)
        if not loaded.ok:
            return SettlementOutcome("NOT_FOUND")
        payout = loaded.payout
        scope = ResourceScope(payout.company_id, owner_user_id=payout.creator_id)
        if not is_authorized(principal, READ_PAYOUT, scope):
            self._forbidden(principal, payout, READ_PAYOUT)
            return SettlementOutcome("FORBIDDEN")
        return SettlementOutcome("OK", payout=payout)

    def list_payouts(
        self,
        principal: Principal,
        *,
        status: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> SettlementOutcome:
        scope = ResourceScope(principal.company_id)
        if not is_authorized(principal, LIST_PAYOUTS, scope):
            self._forbidden(principal, None, LIST_PAYOUTS)
            return SettlementOutcome("FORBIDDEN")
        rows = self.store.list_for_company(principal.company_id, status=status, limit=limit)
        return SettlementOutcome("OK", payouts=tuple(rows))

    # ==========================================================
    # helpers
    # ==========================================================

    def _current(self, payout_id: str, status: OutcomeStatus) -> SettlementOutcome:
        current: StoreResult = self.store.get(payout_id)
        if not current.ok:
            return SettlementOutcome("NOT_FOUND")
        return SettlementOutcome(status, payout=current.payout)

    def _forbidden(self, principal: Principal, payout: Optional[Payout], action: str) -> None:
        # list attempts have no target payout
        payout_id = payout.id if payout else None
        audit_logger.warning(
            "forbidden action=%s payout=%s user=%s role=%s principal_company=%s payout_company=%s request_id=%s",
            action, payout_id, principal.user_id, principal.role,
            principal.company_id, payout.company_id if payout else None, get_request_id(),
        )
        self._audit("forbidden", principal, payout, {"attempted": action, "role": principal.role})

    def _audit(self, action: str, principal: Principal, payout: Optional[Payout], metadata: dict) -> None:
        payout_id = payout.id if payout else None
        event = AuditEvent(
            action=action,
            payout_id=payout_id,
            actor_user_id=principal.user_id,
            company_id=principal.company_id,
            metadata=metadata,
            request_id=get_request_id(),
        )
        try:
            self.store.append_audit(event)
        except Exception:
            # audit trail must not undo a committed settlement
            logger.exception("audit write failed action=%s payout=%s", action, payout_id)
