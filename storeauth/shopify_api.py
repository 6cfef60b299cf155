from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from storeauth.config import settings
from storeauth.errors import ShopifyApiError, TokenExchangeError
from storeauth.schemas import ExchangeResult
from storeauth.security import shop_domain_for

logger = logging.getLogger(__name__)


class ShopifyApiClient:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout or settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    async def exchange_code_for_access_token(self, *, store_name: str, code: str) -> ExchangeResult:
        url = f"https://{shop_domain_for(store_name)}/admin/oauth/access_token"
        payload = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "code": code,
        }
        response = await self._post_json(url=url, payload=payload)
        try:
            return ExchangeResult.model_validate(response)
        except ValidationError as exc:
            raise ShopifyApiError(message="OAuth token exchange response is missing access_token") from exc

    async def _post_json(
        self,
        *,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise ShopifyApiError(message=f"Network error while calling Shopify: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "Shopify rejected request",
                extra={"url": url, "status_code": response.status_code},
            )
            raise TokenExchangeError(upstream_status=response.status_code, body=response.text)

        try:
            body = response.json()
        except ValueError as exc:
            raise ShopifyApiError(message="Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise ShopifyApiError(message="Shopify API response must be a JSON object")
        return body
