# app/providers/mock.py
from __future__ import annotations

import threading
from typing import Optional

from app.providers.base import ProviderResult


class MockSettlementProvider:
    """
    Test/dev provider.

    - Deduplicates on idempotency_key like a real provider would: a repeated key
      returns the first result instead of moving funds again.
    - external_ref is derived from the key, so it is stable across retries.
    """

    def __init__(
        self,
        *,
        succeed: bool = True,
        error: str = "Settlement declined",
        ref_prefix: str = "mock",
    ):
        self.succeed = succeed
        self.error = error
        self.ref_prefix = ref_prefix
        self.calls: list[dict] = []
        self._lock = threading.Lock()
        self._seen: dict[str, ProviderResult] = {}

    def send(
        self,
        payout_id: str,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
    ) -> ProviderResult:
        with self._lock:
            self.calls.append(
                {
                    "payout_id": payout_id,
                    "amount_cents": amount_cents,
                    "currency": currency,
                    "idempotency_key": idempotency_key,
                }
            )
            previous: Optional[ProviderResult] = self._seen.get(idempotency_key)
            if previous is not None:
                return previous

            if self.succeed:
                result = ProviderResult.sent(
                    f"{self.ref_prefix}-{idempotency_key[:16]}",
                    response={"http_status": 200, "mock": True},
                )
            else:
                result = ProviderResult.failed(
                    self.error,
                    response={"http_status": 502, "mock": True},
                )
            self._seen[idempotency_key] = result
            return result

    @property
    def call_count(self) -> int:
        return len(self.calls)
