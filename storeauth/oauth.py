from __future__ import annotations

import logging
import secrets
import threading
import webbrowser
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any
from urllib.parse import urlencode

import httpx

from storeauth.callback import CallbackListener, CallbackServer
from storeauth.config import Settings, settings
from storeauth.schemas import AuthorizationRequest, ExchangeResult, MaskedToken
from storeauth.security import normalize_store_name, shop_domain_for
from storeauth.shopify_api import ShopifyApiClient
from storeauth.token_store import TokenStore, mask_token

logger = logging.getLogger(__name__)

ServerFactory = Callable[[CallbackListener], AbstractAsyncContextManager[Any]]


def generate_nonce() -> str:
    return secrets.token_hex(16)


def build_authorize_url(*, request: AuthorizationRequest, client_id: str) -> str:
    query = urlencode(
        {
            "client_id": client_id,
            "scope": ",".join(request.scopes),
            "redirect_uri": request.redirectUri,
            "state": request.nonce,
        }
    )
    return f"https://{shop_domain_for(request.store)}/admin/oauth/authorize?{query}"


class OAuthFlow:
    """Drives one store authentication at a time and manages the token file."""

    def __init__(
        self,
        *,
        config: Settings = settings,
        token_store: TokenStore | None = None,
        open_browser: Callable[[str], bool] | None = None,
        server_factory: ServerFactory | None = None,
        nonce_factory: Callable[[], str] = generate_nonce,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.token_store = token_store or TokenStore(config.SHOPIFY_TOKENS_PATH)
        self._open_browser = open_browser or _open_in_default_browser
        self._server_factory = server_factory or self._default_server
        self._nonce_factory = nonce_factory
        self._transport = transport

    def _default_server(self, listener: CallbackListener) -> CallbackServer:
        return CallbackServer(
            listener,
            host=self.config.SHOPIFY_OAUTH_CALLBACK_HOST,
            port=self.config.SHOPIFY_OAUTH_CALLBACK_PORT,
        )

    async def authenticate(
        self,
        store: str,
        *,
        on_listening: Callable[[str, str], None] | None = None,
    ) -> ExchangeResult:
        """Run one authorization attempt for ``store``.

        ``on_listening(store_name, redirect_uri)`` is called once the callback
        server accepts connections, before the browser is launched.
        """
        client_id, client_secret = self.config.require_client_credentials()
        store_name = normalize_store_name(store)

        request = AuthorizationRequest(
            store=store_name,
            nonce=self._nonce_factory(),
            redirectUri=self.config.redirect_uri,
            scopes=self.config.scopes,
        )
        api = ShopifyApiClient(
            client_id=client_id,
            client_secret=client_secret,
            timeout=self.config.SHOPIFY_REQUEST_TIMEOUT_SECONDS,
            transport=self._transport,
        )

        async def exchange(code: str) -> ExchangeResult:
            return await api.exchange_code_for_access_token(store_name=store_name, code=code)

        listener = CallbackListener(
            request=request,
            client_secret=client_secret,
            exchange=exchange,
            callback_path=self.config.SHOPIFY_OAUTH_CALLBACK_PATH,
        )
        authorize_url = build_authorize_url(request=request, client_id=client_id)

        listener.start()
        async with self._server_factory(listener):
            logger.info(
                "Authenticating store",
                extra={
                    "store": store_name,
                    "redirect_uri": request.redirectUri,
                    "authorize_url": authorize_url.replace(request.nonce, "***"),
                },
            )
            if on_listening is not None:
                on_listening(store_name, request.redirectUri)
            # Terminal browsers block until they exit and must not stall the loop serving the callback.
            threading.Thread(
                target=self._launch_browser,
                args=(authorize_url,),
                name="storeauth-browser",
                daemon=True,
            ).start()
            result = await listener.wait(timeout=self.config.SHOPIFY_OAUTH_TIMEOUT_SECONDS)

        self.token_store.put(store_name, result.access_token)
        logger.info(
            "Store authenticated",
            extra={"store": store_name, "token": mask_token(result.access_token), "scope": result.scope},
        )
        return result

    def _launch_browser(self, authorize_url: str) -> None:
        if not self._open_browser(authorize_url):
            logger.warning("Could not open a browser. Open this URL to continue: %s", authorize_url)

    def list_tokens(self) -> list[MaskedToken]:
        return self.token_store.masked()

    def revoke_token(self, store: str) -> str:
        store_name = normalize_store_name(store)
        self.token_store.remove(store_name)
        return store_name


def _open_in_default_browser(url: str) -> bool:
    try:
        return webbrowser.open(url, new=1, autoraise=True)
    except webbrowser.Error:
        logger.warning("No usable browser found", exc_info=True)
        return False
