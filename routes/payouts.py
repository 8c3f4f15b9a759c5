# routes/payouts.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.payouts.model import Payout
from app.payouts.settlement import SettlementEngine, SettlementOutcome
from deps.auth import get_current_principal
from deps.services import get_engine
from schemas import PayoutItem, PayoutListResponse, PayoutStatusName, SettlementResponse
from services.errors import http_status_for, message_for, raise_for_outcome
from services.identity import Principal

logger = logging.getLogger("creatorpay")
router = APIRouter(prefix="/payouts", tags=["payouts"])


def _item(p: Payout) -> PayoutItem:
    return PayoutItem(**p.to_dict())


def _settlement_response(outcome: SettlementOutcome) -> JSONResponse:
    # no-body failures (403/404) go through HTTPException
    if outcome.payout is None:
        raise_for_outcome(outcome.status)

    body = SettlementResponse(
        outcome=outcome.status,
        message=message_for(outcome.status),
        payout=_item(outcome.payout),
        external_ref=outcome.external_ref,
        error=outcome.error,
    )
    return JSONResponse(
        status_code=http_status_for(outcome.status),
        content=body.model_dump(mode="json"),
    )


@router.post("/{payout_id}/send", response_model=SettlementResponse)
def send_payout(
    payout_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: SettlementEngine = Depends(get_engine),
):
    outcome = engine.send_payout(principal, payout_id)
    logger.info("send_payout payout=%s user=%s outcome=%s", payout_id, principal.user_id, outcome.status)
    return _settlement_response(outcome)


@router.post("/{payout_id}/confirm", response_model=SettlementResponse)
def confirm_payout(
    payout_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: SettlementEngine = Depends(get_engine),
):
    outcome = engine.confirm_payout(principal, payout_id)
    logger.info("confirm_payout payout=%s user=%s outcome=%s", payout_id, principal.user_id, outcome.status)
    return _settlement_response(outcome)


@router.get("/{payout_id}", response_model=PayoutItem)
def get_payout(
    payout_id: str,
    principal: Principal = Depends(get_current_principal),
    engine: SettlementEngine = Depends(get_engine),
):
    outcome = engine.get_payout(principal, payout_id)
    raise_for_outcome(outcome.status)
    return _item(outcome.payout)


@router.get("", response_model=PayoutListResponse)
def list_payouts(
    status: Optional[PayoutStatusName] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    engine: SettlementEngine = Depends(get_engine),
):
    outcome = engine.list_payouts(principal, status=status, limit=limit)
    raise_for_outcome(outcome.status)
    return PayoutListResponse(
        company_id=principal.company_id,
        payouts=[_item(p) for p in outcome.payouts],
    )
