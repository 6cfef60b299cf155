from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storeauth.errors import ConfigMissingError

DEFAULT_SCOPES = (
    "read_metaobject_definitions,write_metaobject_definitions,"
    "read_metaobjects,write_metaobjects,"
    "read_products,write_products,"
    "read_files,write_files"
)


class Settings(BaseSettings):
    SHOPIFY_CLIENT_ID: str | None = None
    SHOPIFY_CLIENT_SECRET: str | None = None
    SHOPIFY_OAUTH_SCOPES: str = DEFAULT_SCOPES
    SHOPIFY_OAUTH_CALLBACK_HOST: str = "localhost"
    SHOPIFY_OAUTH_CALLBACK_PORT: int = 3456
    SHOPIFY_OAUTH_CALLBACK_PATH: str = "/callback"
    SHOPIFY_OAUTH_TIMEOUT_SECONDS: float = 300.0
    # Relative paths, including the .env file below, resolve against the working directory.
    SHOPIFY_TOKENS_PATH: Path = Path(".tokens.json")
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0

    SHOPIFY_STORE: str | None = None
    SHOPIFY_ACCESS_TOKEN: str | None = None
    SHOPIFY_ADMIN_API_VERSION: str = "2025-01"

    LOG_LEVEL: str = "INFO"

    @field_validator("SHOPIFY_OAUTH_SCOPES")
    @classmethod
    def validate_scopes(cls, value: str) -> str:
        scopes = [scope.strip() for scope in value.split(",") if scope.strip()]
        if not scopes:
            raise ValueError("SHOPIFY_OAUTH_SCOPES must include at least one scope")
        return ",".join(scopes)

    @field_validator("SHOPIFY_OAUTH_CALLBACK_PATH")
    @classmethod
    def validate_callback_path(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("/"):
            value = f"/{value}"
        return value

    @property
    def scopes(self) -> list[str]:
        return self.SHOPIFY_OAUTH_SCOPES.split(",")

    @property
    def redirect_uri(self) -> str:
        return (
            f"http://{self.SHOPIFY_OAUTH_CALLBACK_HOST}:{self.SHOPIFY_OAUTH_CALLBACK_PORT}"
            f"{self.SHOPIFY_OAUTH_CALLBACK_PATH}"
        )

    def require_client_credentials(self) -> tuple[str, str]:
        """Return ``(client_id, client_secret)`` or fail before any network call."""
        if not self.SHOPIFY_CLIENT_ID or not self.SHOPIFY_CLIENT_SECRET:
            raise ConfigMissingError(
                message=(
                    "Missing SHOPIFY_CLIENT_ID or SHOPIFY_CLIENT_SECRET in .env. "
                    "Add them from your Partners dashboard."
                )
            )
        return self.SHOPIFY_CLIENT_ID, self.SHOPIFY_CLIENT_SECRET

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
