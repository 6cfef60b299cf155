from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from storeauth.errors import StoreAuthError, TokenNotFoundError
from storeauth.schemas import MaskedToken

logger = logging.getLogger(__name__)

_TOKENS_ADAPTER = TypeAdapter(dict[str, str])


def mask_token(token: str) -> str:
    return f"{token[:8]}...{token[-4:]}"


class TokenStore:
    """One Admin API token per store name, kept in a flat JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreAuthError(message=f"Token file {self.path} is not valid JSON: {exc}") from exc
        try:
            return _TOKENS_ADAPTER.validate_python(raw)
        except ValidationError as exc:
            raise StoreAuthError(
                message=f"Token file {self.path} must contain a JSON object of store name to token"
            ) from exc

    def save(self, tokens: dict[str, str]) -> None:
        self.path.write_text(json.dumps(tokens, indent=2) + "\n", encoding="utf-8")

    def get(self, store_name: str) -> str | None:
        return self.load().get(store_name)

    def put(self, store_name: str, access_token: str) -> None:
        tokens = self.load()
        tokens[store_name] = access_token
        self.save(tokens)
        logger.info("Stored access token", extra={"store": store_name, "token": mask_token(access_token)})

    def remove(self, store_name: str) -> None:
        tokens = self.load()
        if store_name not in tokens:
            raise TokenNotFoundError(store_name=store_name)
        del tokens[store_name]
        self.save(tokens)
        logger.info("Removed access token", extra={"store": store_name})

    def masked(self) -> list[MaskedToken]:
        return [
            MaskedToken(storeName=store_name, maskedToken=mask_token(token))
            for store_name, token in self.load().items()
        ]
