from __future__ import annotations

import json
import hashlib
from typing import Any


def request_hash(payload: dict[str, Any]) -> str:
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def settlement_key(payout_id: str, version: int) -> str:
    """
    Deterministic provider idempotency key for one pre-send state of a payout.
    Same (payout_id, version) => same key; no clock or randomness involved.
    """
    return "stl_" + request_hash({"payout_id": str(payout_id), "version": int(version)})[:48]
