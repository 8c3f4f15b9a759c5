from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from app.payouts.model import AuditEvent, PayoutMutation
from app.payouts.repository import InMemoryPayoutStore
from app.payouts.state_machine import InvalidTransition
from tests.conftest import OTHER_COMPANY_ID, make_payout


def test_get_missing_is_not_found(store):
    res = store.get("nope")
    assert res.status == "NOT_FOUND"
    assert res.payout is None


def test_cas_bumps_version_and_applies_mutation(store, pending_payout):
    res = store.compare_and_swap("p1", 1, PayoutMutation(status="sent", external_ref="ext-1"))
    assert res.ok
    assert res.payout.status == "sent"
    assert res.payout.external_ref == "ext-1"
    assert res.payout.version == 2
    assert res.payout.updated_at != pending_payout.updated_at
    assert store.get("p1").payout == res.payout


def test_cas_stale_version_conflicts_without_write(store, pending_payout):
    res = store.compare_and_swap("p1", 7, PayoutMutation(status="failed", last_error="x"))
    assert res.status == "CONFLICT"
    assert store.get("p1").payout == pending_payout


def test_cas_missing_payout(store):
    res = store.compare_and_swap("ghost", 1, PayoutMutation(status="failed"))
    assert res.status == "NOT_FOUND"


def test_cas_rejects_illegal_transition(store):
    store.insert(make_payout("p2", status="paid", external_ref="ext-9", version=3))
    with pytest.raises(InvalidTransition):
        store.compare_and_swap("p2", 3, PayoutMutation(status="failed"))
    assert store.get("p2").payout.status == "paid"


def test_cas_rejects_sent_without_ref(store, pending_payout):
    with pytest.raises(ValueError):
        store.compare_and_swap("p1", 1, PayoutMutation(status="sent"))


def test_paid_keeps_existing_ref(store):
    store.insert(make_payout("p3", status="sent", external_ref="ext-3", version=2))
    res = store.compare_and_swap("p3", 2, PayoutMutation(status="paid"))
    assert res.payout.external_ref == "ext-3"
    assert res.payout.version == 3


def test_sent_to_failed_clears_ref_and_keeps_trace(store):
    store.insert(make_payout("p4", status="sent", external_ref="ext-4", version=2))

    res = store.compare_and_swap("p4", 2, PayoutMutation(status="failed"))

    assert res.ok
    assert res.payout.status == "failed"
    assert res.payout.external_ref is None
    assert res.payout.last_error == "reversed external_ref=ext-4"
    assert res.payout.version == 3


def test_sent_to_failed_keeps_explicit_error(store):
    store.insert(make_payout("p5", status="sent", external_ref="ext-5", version=2))

    res = store.compare_and_swap("p5", 2, PayoutMutation(status="failed", last_error="returned by bank"))

    assert res.payout.external_ref is None
    assert res.payout.last_error == "returned by bank"


def test_only_one_concurrent_cas_wins(store, pending_payout):
    def attempt(i: int) -> str:
        return store.compare_and_swap("p1", 1, PayoutMutation(status="sent", external_ref=f"ext-{i}")).status

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(attempt, range(16)))

    assert results.count("OK") == 1
    assert results.count("CONFLICT") == 15


def test_claim_settlement_is_single_winner(store):
    assert store.claim_settlement("p1", "k1") is True
    assert store.claim_settlement("p1", "k1") is False
    assert store.claim_settlement("p1", "k2") is True


def test_insert_duplicate_rejected(store, pending_payout):
    with pytest.raises(ValueError):
        store.insert(make_payout("p1"))


def test_list_for_company_is_tenant_scoped(store):
    store.insert(make_payout("a"))
    store.insert(make_payout("b", status="failed"))
    store.insert(make_payout("c", company_id=OTHER_COMPANY_ID))

    ids = {p.id for p in store.list_for_company("company-123")}
    assert ids == {"a", "b"}
    assert [p.id for p in store.list_for_company("company-123", status="failed")] == ["b"]
    assert len(store.list_for_company("company-123", limit=1)) == 1


def test_append_audit():
    s = InMemoryPayoutStore()
    s.append_audit(AuditEvent(action="forbidden", payout_id="p1", actor_user_id="u", company_id="c"))
    assert [e.action for e in s.audit_events] == ["forbidden"]
