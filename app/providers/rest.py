# app/providers/rest.py
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.providers.base import ProviderResult
from app.providers.http import HttpClient, HttpResponse
from settings import settings

logger = logging.getLogger("creatorpay.settlement")


def _response_payload(resp: HttpResponse) -> dict[str, Any]:
    return {"http_status": resp.status_code, "body": resp.json if resp.json is not None else resp.text[:500]}


def _extract_ref(payload: Optional[dict[str, Any]]) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in ("external_ref", "externalRef", "reference", "id"):
        val = payload.get(key)
        if val:
            return str(val)
    return None


class HttpSettlementProvider:
    """
    JSON-over-HTTP settlement provider.

    POST {url}
      headers: Authorization: Bearer <key>, Idempotency-Key: <key>
      body:    {payout_id, amount_cents, currency}
      2xx:     {"external_ref": "..."}
    """

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[HttpClient] = None,
    ) -> None:
        self.url = (url if url is not None else settings.SETTLEMENT_HTTP_URL).strip()
        self.api_key = (api_key if api_key is not None else settings.SETTLEMENT_HTTP_API_KEY).strip()
        self.client = client or HttpClient(
            timeout_s=timeout_s if timeout_s is not None else settings.SETTLEMENT_HTTP_TIMEOUT_S
        )

    def send(
        self,
        payout_id: str,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
    ) -> ProviderResult:
        if not self.url or not self.api_key:
            return ProviderResult.failed("SETTLEMENT_CONFIG_MISSING")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Idempotency-Key": idempotency_key,
            "Content-Type": "application/json",
        }
        body = {
            "payout_id": payout_id,
            "amount_cents": int(amount_cents),
            "currency": currency,
        }

        try:
            resp = self.client.post(self.url, headers=headers, json_body=body)
        except httpx.TimeoutException:
            logger.warning("settlement timeout payout=%s key=%s", payout_id, idempotency_key)
            return ProviderResult.failed("SETTLEMENT_TIMEOUT")
        except httpx.HTTPError as exc:
            logger.warning("settlement transport error payout=%s err=%s", payout_id, type(exc).__name__)
            return ProviderResult.failed(f"SETTLEMENT_TRANSPORT_ERROR: {type(exc).__name__}")

        if 200 <= resp.status_code < 300:
            ref = _extract_ref(resp.json)
            if ref:
                return ProviderResult.sent(ref, response=_response_payload(resp))
            return ProviderResult.failed("SETTLEMENT_MISSING_REF", response=_response_payload(resp))

        return ProviderResult.failed(f"HTTP {resp.status_code}", response=_response_payload(resp))

    def close(self) -> None:
        self.client.close()
