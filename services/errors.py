# services/errors.py
from __future__ import annotations

from fastapi import HTTPException

OUTCOME_HTTP_MAP: dict[str, tuple[int, str]] = {
    "OK": (200, "OK"),
    "SENT": (200, "Payout sent"),
    "PAID": (200, "Payout marked paid"),
    "ALREADY_ADVANCED": (200, "Payout already advanced"),
    "IN_PROGRESS": (202, "Settlement already in progress"),
    "FORBIDDEN": (403, "ADMIN_REQUIRED"),
    "NOT_FOUND": (404, "PAYOUT_NOT_FOUND"),
    "INVALID_STATE": (409, "PAYOUT_INVALID_STATE"),
    "PROVIDER_FAILED": (502, "SETTLEMENT_FAILED"),
}


def http_status_for(outcome_status: str) -> int:
    return OUTCOME_HTTP_MAP.get(outcome_status, (500, ""))[0]


def message_for(outcome_status: str) -> str:
    return OUTCOME_HTTP_MAP.get(outcome_status, (500, "Internal server error"))[1]


def raise_for_outcome(outcome_status: str) -> None:
    """
    Raise for outcomes that carry no payout body; fail closed on unknown tags.
    """
    if outcome_status not in OUTCOME_HTTP_MAP:
        raise HTTPException(status_code=500, detail="Internal server error")
    status, message = OUTCOME_HTTP_MAP[outcome_status]
    if status >= 400:
        raise HTTPException(status_code=status, detail=message)
