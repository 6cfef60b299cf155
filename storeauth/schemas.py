from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AuthorizationRequest(BaseModel):
    store: str = Field(min_length=1)
    nonce: str = Field(min_length=1)
    redirectUri: str
    scopes: list[str] = Field(min_length=1)


class CallbackPayload(BaseModel):
    """Query parameters Shopify appends to the OAuth redirect."""

    model_config = ConfigDict(extra="allow")

    code: str | None = None
    state: str | None = None
    hmac: str | None = None
    shop: str | None = None
    timestamp: str | None = None
    host: str | None = None


class ExchangeResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    scope: str | None = None


class MaskedToken(BaseModel):
    storeName: str
    maskedToken: str
