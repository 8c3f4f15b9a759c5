# tests/conftest.py

import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from app.payouts.model import Payout
from app.payouts.repository import InMemoryPayoutStore
from app.payouts.settlement import SettlementEngine
from app.providers.base import ProviderResult
from deps.services import get_engine, get_resolver
from main import create_app
from services.identity import InMemorySessionStore, Principal, SessionPrincipalResolver


COMPANY_ID = "company-123"
OTHER_COMPANY_ID = "company-999"


# ---------------------------
# Provider doubles
# ---------------------------

class RecordingProvider:
    """
    Counts calls; returns a fixed ref, a failure, or raises. Optional delay
    widens the race window for concurrency tests.
    """

    def __init__(
        self,
        *,
        external_ref: str = "ext-1",
        succeed: bool = True,
        raise_exc: Optional[Exception] = None,
        delay_s: float = 0.0,
        on_send=None,
    ):
        self.external_ref = external_ref
        self.succeed = succeed
        self.raise_exc = raise_exc
        self.delay_s = delay_s
        self.on_send = on_send
        self.calls = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def send(self, payout_id, amount_cents, currency, idempotency_key):
        with self._lock:
            self.calls.append((payout_id, amount_cents, currency, idempotency_key))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.on_send is not None:
            self.on_send(payout_id)
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.succeed:
            return ProviderResult.sent(self.external_ref, response={"http_status": 200})
        return ProviderResult.failed("Insufficient platform balance", response={"http_status": 402})


# ---------------------------
# Builders
# ---------------------------

def make_payout(
    payout_id: Optional[str] = None,
    *,
    status: str = "pending",
    version: int = 1,
    company_id: str = COMPANY_ID,
    creator_id: str = "creator-1",
    amount_cents: int = 2500,
    currency: str = "USD",
    external_ref: Optional[str] = None,
) -> Payout:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return Payout(
        id=payout_id or f"p-{uuid.uuid4()}",
        creator_id=creator_id,
        company_id=company_id,
        amount_cents=amount_cents,
        currency=currency,
        status=status,
        external_ref=external_ref,
        created_at=now,
        updated_at=now,
        version=version,
    )


def principal(role: str = "admin", company_id: str = COMPANY_ID, user_id: str = "user-1", permissions=()) -> Principal:
    return Principal(user_id=user_id, company_id=company_id, role=role, permissions=frozenset(permissions))


# ---------------------------
# Fixtures
# ---------------------------

@pytest.fixture()
def store() -> InMemoryPayoutStore:
    return InMemoryPayoutStore()


@pytest.fixture()
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture()
def engine(store, provider) -> SettlementEngine:
    return SettlementEngine(store, provider, claim_wait_s=2.0, claim_poll_s=0.01)


@pytest.fixture()
def pending_payout(store) -> Payout:
    return store.insert(make_payout("p1"))


@pytest.fixture()
def admin() -> Principal:
    return principal("admin", user_id="admin-1")


@pytest.fixture()
def owner() -> Principal:
    return principal("owner", user_id="owner-1")


@pytest.fixture()
def member() -> Principal:
    return principal("member", user_id="member-1")


@pytest.fixture()
def foreign_owner() -> Principal:
    return principal("owner", company_id=OTHER_COMPANY_ID, user_id="owner-9")


@pytest.fixture()
def resolver() -> SessionPrincipalResolver:
    return SessionPrincipalResolver(InMemorySessionStore())


@pytest.fixture()
def client(engine, resolver) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_resolver] = lambda: resolver
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
