"""Admin API credential resolution for scripts that run after ``storeauth``.

This is the entry point for downstream maintenance scripts: call
``resolve_store_credentials(sys.argv)`` and pass the remaining arguments
through ``strip_store_flag``.

Resolution order:

1. ``--store <name>`` on the script's command line, looked up in the token file.
2. ``SHOPIFY_STORE`` from the environment, looked up in the token file, falling
   back to a directly configured ``SHOPIFY_ACCESS_TOKEN``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from storeauth.config import Settings, settings
from storeauth.errors import CredentialsNotFoundError
from storeauth.security import normalize_store_name, shop_domain_for
from storeauth.token_store import TokenStore

STORE_FLAG = "--store"


@dataclass(frozen=True)
class StoreCredentials:
    store_name: str
    access_token: str
    api_version: str

    @property
    def shop_domain(self) -> str:
        return shop_domain_for(self.store_name)

    @property
    def graphql_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"


def parse_store_flag(argv: Sequence[str]) -> str | None:
    try:
        idx = list(argv).index(STORE_FLAG)
    except ValueError:
        return None
    if idx + 1 >= len(argv):
        return None
    return argv[idx + 1]


def strip_store_flag(argv: Sequence[str]) -> list[str]:
    """Return ``argv`` without ``--store <value>`` so scripts can parse their own arguments."""
    args = list(argv)
    if STORE_FLAG in args:
        idx = args.index(STORE_FLAG)
        del args[idx : idx + 2]
    return args


def resolve_store_credentials(
    argv: Sequence[str],
    *,
    config: Settings = settings,
    token_store: TokenStore | None = None,
) -> StoreCredentials:
    token_store = token_store or TokenStore(config.SHOPIFY_TOKENS_PATH)
    tokens = token_store.load()

    store_flag = parse_store_flag(argv)
    if store_flag:
        name = normalize_store_name(store_flag)
        token = tokens.get(name)
        if not token:
            raise CredentialsNotFoundError(message=f'No token found for "{name}". Run: storeauth {name}')
        return StoreCredentials(store_name=name, access_token=token, api_version=config.SHOPIFY_ADMIN_API_VERSION)

    if config.SHOPIFY_STORE:
        name = normalize_store_name(config.SHOPIFY_STORE)
        token = tokens.get(name) or config.SHOPIFY_ACCESS_TOKEN
        if not token:
            raise CredentialsNotFoundError(
                message=(
                    f'No token for "{name}". Either run: storeauth {name} '
                    "or set SHOPIFY_ACCESS_TOKEN in .env"
                )
            )
        return StoreCredentials(store_name=name, access_token=token, api_version=config.SHOPIFY_ADMIN_API_VERSION)

    raise CredentialsNotFoundError(message="No store configured. Set SHOPIFY_STORE in .env, or use --store <name>.")
