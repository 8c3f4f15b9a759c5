# schemas.py
from __future__ import annotations

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

from app.payouts.model import PayoutStatus

PayoutStatusName = PayoutStatus


# -------- PAYOUTS --------
class PayoutItem(BaseModel):
    id: str
    creator_id: str
    company_id: str
    amount_cents: int
    currency: str
    status: PayoutStatusName
    external_ref: Optional[str] = None
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int


class PayoutListResponse(BaseModel):
    company_id: str
    payouts: List[PayoutItem]


class SettlementResponse(BaseModel):
    outcome: str
    message: str
    payout: Optional[PayoutItem] = None
    external_ref: Optional[str] = None
    error: Optional[str] = None
