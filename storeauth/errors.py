"""Exception types raised by the store authentication flow.

Every error carries the HTTP status the callback endpoint answers with when
the error is raised while handling the OAuth redirect.
"""

from __future__ import annotations


class StoreAuthError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigMissingError(StoreAuthError):
    """Client id or secret is not configured."""


class InvalidStoreNameError(StoreAuthError):
    """The operator supplied something that is not a Shopify store name."""


class CallbackRejectedError(StoreAuthError):
    """Base class for callbacks refused by the local listener."""


class CallbackPathError(CallbackRejectedError):
    def __init__(self, *, path: str) -> None:
        super().__init__(message=f"Unexpected callback path: {path}", status_code=404)
        self.path = path


class CsrfMismatchError(CallbackRejectedError):
    def __init__(self) -> None:
        super().__init__(message="OAuth state mismatch, possible CSRF attack.")


class SignatureInvalidError(CallbackRejectedError):
    def __init__(self) -> None:
        super().__init__(message="HMAC validation failed, callback may have been tampered with.")


class MissingCodeError(CallbackRejectedError):
    def __init__(self) -> None:
        super().__init__(message="No authorization code in callback.")


class ShopifyApiError(StoreAuthError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message=message, status_code=status_code)


class TokenExchangeError(ShopifyApiError):
    """Shopify answered the code exchange with a non-success status."""

    def __init__(self, *, upstream_status: int, body: str) -> None:
        super().__init__(message=f"Token exchange failed ({upstream_status}): {body}")
        self.upstream_status = upstream_status
        self.body = body


class CallbackTimeoutError(StoreAuthError):
    def __init__(self, *, timeout_seconds: float) -> None:
        minutes = timeout_seconds / 60
        super().__init__(
            message=f"Timed out waiting for OAuth callback ({minutes:g} min).",
            status_code=408,
        )
        self.timeout_seconds = timeout_seconds


class TokenNotFoundError(StoreAuthError):
    def __init__(self, *, store_name: str) -> None:
        super().__init__(message=f'No token found for "{store_name}".', status_code=404)
        self.store_name = store_name


class CredentialsNotFoundError(StoreAuthError):
    """No token could be resolved for a script that needs Admin API access."""
