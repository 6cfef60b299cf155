"""Single-shot local endpoint that receives the Shopify OAuth redirect.

The listener owns one pending authorization attempt. The first request that
reaches it decides the outcome: either the code is exchanged for a token
(``COMPLETED``) or the request is refused (``REJECTED``). If nothing valid
arrives in time the attempt ends as ``TIMED_OUT``. Once terminal, later
requests, and requests arriving while a code is being exchanged, are answered
with 410 and never change the outcome.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections.abc import Awaitable, Callable
from html import escape

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse

from storeauth.errors import (
    CallbackPathError,
    CallbackTimeoutError,
    CsrfMismatchError,
    MissingCodeError,
    StoreAuthError,
    SignatureInvalidError,
)
from storeauth.schemas import AuthorizationRequest, CallbackPayload, ExchangeResult
from storeauth.security import verify_oauth_hmac

logger = logging.getLogger(__name__)

Exchanger = Callable[[str], Awaitable[ExchangeResult]]


class ListenerState(str, enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"
    VALIDATED = "validated"
    EXCHANGING = "exchanging"
    COMPLETED = "completed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({ListenerState.COMPLETED, ListenerState.REJECTED, ListenerState.TIMED_OUT})

_PAGE_STYLE = "font-family:system-ui;text-align:center;padding:4em"


def _html_page(body: str, *, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        content=f"<html><body style='{_PAGE_STYLE}'>{body}</body></html>",
        status_code=status_code,
    )


class CallbackListener:
    def __init__(
        self,
        *,
        request: AuthorizationRequest,
        client_secret: str,
        exchange: Exchanger,
        callback_path: str = "/callback",
    ) -> None:
        self.request = request
        self.callback_path = callback_path
        self.state = ListenerState.IDLE
        self.result: ExchangeResult | None = None
        self.error: StoreAuthError | None = None
        self._client_secret = client_secret
        self._exchange = exchange
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._outcome: asyncio.Future[ExchangeResult] | None = None
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Shopify OAuth callback", docs_url=None, redoc_url=None, openapi_url=None)

        @app.get("/{path:path}", response_class=HTMLResponse)
        async def receive_callback(path: str, request: Request) -> HTMLResponse:
            return await self.handle(request.url.path, dict(request.query_params))

        return app

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def start(self) -> None:
        with self._lock:
            if self.state is not ListenerState.IDLE:
                raise RuntimeError(f"Callback listener cannot start from state {self.state.value}")
            self.state = ListenerState.LISTENING

    async def handle(self, path: str, params: dict[str, str]) -> HTMLResponse:
        if self.state is not ListenerState.LISTENING:
            return _html_page(
                "<h1>Error</h1><p>This authorization attempt is no longer active.</p>",
                status_code=status.HTTP_410_GONE,
            )

        try:
            result = await self._process(path, params)
        except StoreAuthError as exc:
            logger.warning(
                "OAuth callback rejected",
                extra={"store": self.request.store, "path": path, "reason": str(exc)},
            )
            return self._reject(exc)
        except Exception as exc:
            logger.exception("Unhandled error while processing OAuth callback", extra={"store": self.request.store})
            return self._reject(
                StoreAuthError(
                    message=f"Unexpected error while processing callback: {exc}",
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
            )

        self._finish(ListenerState.COMPLETED, result=result)
        store = escape(self.request.store)
        return _html_page(
            "<h1>Authenticated!</h1>"
            f"<p>Token for <strong>{store}</strong> has been saved.</p>"
            "<p>You can close this tab.</p>",
            status_code=status.HTTP_200_OK,
        )

    def _reject(self, error: StoreAuthError) -> HTMLResponse:
        self._finish(ListenerState.REJECTED, error=error)
        return _html_page(
            f"<h1>Error</h1><p>{escape(str(error))}</p>",
            status_code=error.status_code,
        )

    async def _process(self, path: str, params: dict[str, str]) -> ExchangeResult:
        if path != self.callback_path:
            raise CallbackPathError(path=path)

        payload = CallbackPayload.model_validate(params)
        if payload.state != self.request.nonce:
            raise CsrfMismatchError()
        if not verify_oauth_hmac(params, self._client_secret):
            raise SignatureInvalidError()
        if not payload.code:
            raise MissingCodeError()

        self.state = ListenerState.VALIDATED
        logger.info("Exchanging code for access token...", extra={"store": self.request.store, "shop": payload.shop})
        self.state = ListenerState.EXCHANGING
        return await self._exchange(payload.code)

    def _finish(
        self,
        state: ListenerState,
        *,
        result: ExchangeResult | None = None,
        error: StoreAuthError | None = None,
    ) -> None:
        with self._lock:
            if self.done:
                return
            self.state = state
            self.result = result
            self.error = error
            if self._outcome is not None and self._loop is not None:
                self._loop.call_soon_threadsafe(self._resolve_outcome)

    def _resolve_outcome(self) -> None:
        if self._outcome is None or self._outcome.done():
            return
        if self.error is not None:
            self._outcome.set_exception(self.error)
        elif self.result is not None:
            self._outcome.set_result(self.result)

    async def wait(self, *, timeout: float) -> ExchangeResult:
        """Suspend until the first callback settles the attempt or ``timeout`` elapses."""
        loop = asyncio.get_running_loop()
        with self._lock:
            self._loop = loop
            self._outcome = loop.create_future()
            if self.done:
                self._resolve_outcome()

        try:
            return await asyncio.wait_for(self._outcome, timeout=timeout)
        except asyncio.TimeoutError as exc:
            with self._lock:
                if not self.done:
                    self.state = ListenerState.TIMED_OUT
            raise CallbackTimeoutError(timeout_seconds=timeout) from exc


class CallbackServer:
    """Runs a listener's app under uvicorn for the lifetime of an ``async with`` block."""

    def __init__(self, listener: CallbackListener, *, host: str, port: int) -> None:
        self.listener = listener
        self.host = host
        self.port = port
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "CallbackServer":
        config = uvicorn.Config(
            self.listener.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise StoreAuthError(
                    message=f"Callback server on {self.host}:{self.port} stopped before accepting connections"
                )
            await asyncio.sleep(0.05)
        logger.info("Callback server listening", extra={"host": self.host, "port": self.port})
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        await self._task
        logger.info("Callback server stopped", extra={"state": self.listener.state.value})
