from __future__ import annotations

import hashlib
import hmac
import re
from collections.abc import Mapping

from storeauth.errors import InvalidStoreNameError

_STORE_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")
_SHOP_DOMAIN_SUFFIX = ".myshopify.com"


def normalize_store_name(store: str) -> str:
    """Accept ``name`` or ``name.myshopify.com`` and return the bare store name."""
    normalized = store.strip().lower()
    if normalized.endswith(_SHOP_DOMAIN_SUFFIX):
        normalized = normalized[: -len(_SHOP_DOMAIN_SUFFIX)]
    if not _STORE_NAME_RE.fullmatch(normalized):
        raise InvalidStoreNameError(
            message=f'"{store}" is not a valid store name (expected e.g. my-store or my-store.myshopify.com)'
        )
    return normalized


def shop_domain_for(store_name: str) -> str:
    return f"{store_name}{_SHOP_DOMAIN_SUFFIX}"


def sign_oauth_params(params: Mapping[str, str], secret: str) -> str:
    message = "&".join(
        f"{key}={params[key]}" for key in sorted(params) if key != "hmac"
    )
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_oauth_hmac(params: Mapping[str, str], secret: str) -> bool:
    supplied_hmac = params.get("hmac")
    if not supplied_hmac:
        return False

    digest = sign_oauth_params(params, secret)
    # compare_digest returns early on length mismatch; signature length is fixed and not secret.
    return hmac.compare_digest(digest.encode("utf-8"), supplied_hmac.encode("utf-8"))
