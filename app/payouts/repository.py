# app/payouts/repository.py
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from psycopg2.extras import Json, RealDictCursor

from app.payouts.model import AuditEvent, Payout, PayoutMutation, StoreResult
from app.payouts.state_machine import assert_ref_invariant, assert_transition

DEFAULT_LIST_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate(current: Payout, mutation: PayoutMutation) -> None:
    assert_transition(current.status, mutation.status)
    assert_ref_invariant(mutation.status, mutation.resolved_ref(current))


class PayoutStore(Protocol):
    def get(self, payout_id: str) -> StoreResult: ...

    def compare_and_swap(
        self, payout_id: str, expected_version: int, mutation: PayoutMutation
    ) -> StoreResult: ...

    def claim_settlement(self, payout_id: str, idempotency_key: str) -> bool: ...

    def list_for_company(
        self, company_id: str, *, status: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT
    ) -> list[Payout]: ...

    def append_audit(self, event: AuditEvent) -> None: ...


# ==========================================================
# In-memory store (dev + tests)
# ==========================================================

class InMemoryPayoutStore:
    """
    Thread-safe dict-backed store. The lock only makes each primitive atomic;
    callers get the same CAS semantics as the Postgres store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, Payout] = {}
        self._claims: dict[str, str] = {}
        self.audit_events: list[AuditEvent] = []

    def insert(self, payout: Payout) -> Payout:
        # creation path for the external approval flow and tests
        assert_ref_invariant(payout.status, payout.external_ref)
        with self._lock:
            if payout.id in self._rows:
                raise ValueError(f"Payout already exists: {payout.id}")
            self._rows[payout.id] = payout
        return payout

    def get(self, payout_id: str) -> StoreResult:
        with self._lock:
            row = self._rows.get(payout_id)
        return StoreResult.found(row) if row else StoreResult.not_found()

    def compare_and_swap(
        self, payout_id: str, expected_version: int, mutation: PayoutMutation
    ) -> StoreResult:
        with self._lock:
            current = self._rows.get(payout_id)
            if current is None:
                return StoreResult.not_found()
            if current.version != expected_version:
                return StoreResult.conflict()
            _validate(current, mutation)
            updated = mutation.apply(current, now=_utcnow())
            self._rows[payout_id] = updated
        return StoreResult.found(updated)

    def claim_settlement(self, payout_id: str, idempotency_key: str) -> bool:
        with self._lock:
            if idempotency_key in self._claims:
                return False
            self._claims[idempotency_key] = payout_id
            return True

    def list_for_company(
        self, company_id: str, *, status: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT
    ) -> list[Payout]:
        with self._lock:
            rows = [
                p for p in self._rows.values()
                if p.company_id == company_id and (status is None or p.status == status)
            ]
        rows.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        return rows[:limit]

    def append_audit(self, event: AuditEvent) -> None:
        with self._lock:
            self.audit_events.append(event)


# ==========================================================
# Postgres store
# ==========================================================

_PAYOUT_COLUMNS = """
  id::text AS id,
  creator_id::text AS creator_id,
  company_id::text AS company_id,
  amount_cents,
  currency,
  status,
  external_ref,
  last_error,
  created_at,
  updated_at,
  version
"""


def _row_to_payout(row: dict[str, Any]) -> Payout:
    return Payout(
        id=str(row["id"]),
        creator_id=str(row["creator_id"]),
        company_id=str(row["company_id"]),
        amount_cents=int(row["amount_cents"]),
        currency=str(row["currency"]),
        status=str(row["status"]),
        external_ref=row.get("external_ref"),
        last_error=row.get("last_error"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        version=int(row["version"]),
    )


class PostgresPayoutStore:
    """
    Expects (provisioned externally):
      app.payouts(id, creator_id, company_id, amount_cents, currency, status,
                  external_ref, last_error, created_at, updated_at, version)
      app.settlement_claims(idempotency_key PRIMARY KEY, payout_id, created_at)
      app.audit_log(actor_user_id, action, target_id, metadata, request_id)
    """

    def __init__(self, conn_factory=None) -> None:
        if conn_factory is None:
            from db import get_conn
            conn_factory = get_conn
        self._conn = conn_factory

    def get(self, payout_id: str) -> StoreResult:
        with self._conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_PAYOUT_COLUMNS} FROM app.payouts WHERE id::text = %s",
                    (payout_id,),
                )
                row = cur.fetchone()
        return StoreResult.found(_row_to_payout(dict(row))) if row else StoreResult.not_found()

    def compare_and_swap(
        self, payout_id: str, expected_version: int, mutation: PayoutMutation
    ) -> StoreResult:
        with self._conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_PAYOUT_COLUMNS} FROM app.payouts WHERE id::text = %s",
                    (payout_id,),
                )
                row = cur.fetchone()
                if not row:
                    return StoreResult.not_found()
                current = _row_to_payout(dict(row))
                if current.version != expected_version:
                    return StoreResult.conflict()
                _validate(current, mutation)

                # version guard in WHERE is the actual CAS; the read above only classifies
                cur.execute(
                    f"""
                    UPDATE app.payouts
                    SET
                      status = %s,
                      external_ref = %s,
                      last_error = %s,
                      version = version + 1,
                      updated_at = now()
                    WHERE id::text = %s
                      AND version = %s
                    RETURNING {_PAYOUT_COLUMNS}
                    """,
                    (
                        mutation.status,
                        mutation.resolved_ref(current),
                        mutation.resolved_error(current),
                        payout_id,
                        expected_version,
                    ),
                )
                updated = cur.fetchone()
        if not updated:
            return StoreResult.conflict()
        return StoreResult.found(_row_to_payout(dict(updated)))

    def claim_settlement(self, payout_id: str, idempotency_key: str) -> bool:
        with self._conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.settlement_claims (idempotency_key, payout_id)
                    VALUES (%s, %s)
                    ON CONFLICT (idempotency_key) DO NOTHING
                    """,
                    (idempotency_key, payout_id),
                )
                return cur.rowcount == 1

    def list_for_company(
        self, company_id: str, *, status: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT
    ) -> list[Payout]:
        status_filter = ""
        params: list[Any] = [company_id]
        if status:
            status_filter = "AND status = %s"
            params.append(status)
        params.append(limit)

        with self._conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_PAYOUT_COLUMNS}
                    FROM app.payouts
                    WHERE company_id::text = %s
                    {status_filter}
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s
                    """,
                    tuple(params),
                )
                rows = cur.fetchall() or []
        return [_row_to_payout(dict(r)) for r in rows]

    def append_audit(self, event: AuditEvent) -> None:
        with self._conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.audit_log (actor_user_id, action, target_id, metadata, request_id)
                    VALUES (%s, %s, %s, %s::jsonb, %s);
                    """,
                    (
                        event.actor_user_id,
                        event.action,
                        event.payout_id,
                        Json({**(event.metadata or {}), "company_id": event.company_id}),
                        event.request_id,
                    ),
                )
