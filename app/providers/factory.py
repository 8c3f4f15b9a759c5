# app/providers/factory.py
from __future__ import annotations

from typing import Any, Dict

_PROVIDER_CACHE: Dict[str, Any] = {}


def get_provider(name: str):
    key = (name or "").strip().upper()
    if not key:
        return None

    key = key.replace("-", "_").replace(" ", "_")

    if key in _PROVIDER_CACHE:
        return _PROVIDER_CACHE[key]

    provider = None

    if key == "MOCK":
        from app.providers.mock import MockSettlementProvider
        provider = MockSettlementProvider()

    elif key == "HTTP":
        from app.providers.rest import HttpSettlementProvider
        provider = HttpSettlementProvider()

    else:
        return None

    _PROVIDER_CACHE[key] = provider
    return provider


def reset_provider_cache() -> None:
    for provider in _PROVIDER_CACHE.values():
        close = getattr(provider, "close", None)
        if close is not None:
            close()
    _PROVIDER_CACHE.clear()
