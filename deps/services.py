# deps/services.py
from __future__ import annotations

from functools import lru_cache

from app.payouts.repository import InMemoryPayoutStore, PostgresPayoutStore
from app.payouts.settlement import SettlementEngine
from app.providers.factory import get_provider, reset_provider_cache
from services.identity import InMemorySessionStore, PostgresSessionStore, SessionPrincipalResolver
from settings import settings


def _use_postgres() -> bool:
    return bool((settings.DATABASE_URL or "").strip())


@lru_cache(maxsize=1)
def get_payout_store():
    return PostgresPayoutStore() if _use_postgres() else InMemoryPayoutStore()


@lru_cache(maxsize=1)
def get_resolver() -> SessionPrincipalResolver:
    sessions = PostgresSessionStore() if _use_postgres() else InMemorySessionStore()
    return SessionPrincipalResolver(sessions)


@lru_cache(maxsize=1)
def get_engine() -> SettlementEngine:
    provider = get_provider(settings.SETTLEMENT_PROVIDER)
    if provider is None:
        raise RuntimeError(f"Unsupported settlement provider: {settings.SETTLEMENT_PROVIDER}")
    return SettlementEngine(get_payout_store(), provider)


def shutdown_services() -> None:
    """
    Release provider HTTP clients and pooled DB connections on app shutdown.
    """
    from db import close_pool

    get_engine.cache_clear()
    reset_provider_cache()
    close_pool()
