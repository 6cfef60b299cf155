from __future__ import annotations

import asyncio

import httpx
import pytest

from storeauth import cli
from storeauth.config import Settings
from storeauth.errors import CallbackTimeoutError, ConfigMissingError
from storeauth.oauth import OAuthFlow
from storeauth.schemas import ExchangeResult
from storeauth.security import sign_oauth_params
from storeauth.token_store import TokenStore


@pytest.fixture()
def flow(tmp_path):
    config = Settings(
        _env_file=None,
        SHOPIFY_CLIENT_ID="test_client_id",
        SHOPIFY_CLIENT_SECRET="test_secret",
        SHOPIFY_TOKENS_PATH=tmp_path / ".tokens.json",
    )
    return OAuthFlow(config=config, open_browser=lambda url: True)


def test_list_without_tokens_prints_hint(flow, capsys):
    assert cli.main(["--list"], flow=flow) == 0

    assert "No stored tokens. Run: storeauth <store-name>" in capsys.readouterr().out


def test_list_prints_masked_tokens(flow, capsys):
    flow.token_store.save({"my-store": "shpat_0123456789abcdef"})

    assert cli.main(["--list"], flow=flow) == 0

    out = capsys.readouterr().out
    assert str(flow.token_store.path.resolve()) in out
    assert "my-store.myshopify.com  →  shpat_01...cdef" in out
    assert "0123456789ab" not in out


def test_revoke_removes_token(flow, capsys):
    flow.token_store.save({"my-store": "shpat_a"})

    assert cli.main(["--revoke", "my-store"], flow=flow) == 0

    assert flow.token_store.load() == {}
    assert 'Token for "my-store" removed.' in capsys.readouterr().out


def test_revoke_reports_normalised_store_name(flow, capsys):
    flow.token_store.save({"my-store": "shpat_a"})

    assert cli.main(["--revoke", "My-Store.myshopify.com"], flow=flow) == 0

    assert 'Token for "my-store" removed.' in capsys.readouterr().out


def test_revoke_unknown_store_exits_with_error(flow, capsys):
    assert cli.main(["--revoke", "missing"], flow=flow) == 1

    assert 'Error: No token found for "missing".' in capsys.readouterr().err


def test_revoke_without_store_is_usage_error(flow):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--revoke"], flow=flow)

    assert exc_info.value.code == 1


def test_store_and_list_together_is_usage_error(flow):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["my-store", "--list"], flow=flow)

    assert exc_info.value.code == 1


def test_no_arguments_prints_usage(flow, capsys):
    assert cli.main([], flow=flow) == 0

    assert "storeauth --revoke <store-name>" in capsys.readouterr().out


def test_authenticate_reports_masked_token(flow, monkeypatch, capsys):
    async def fake_authenticate(store: str, *, on_listening=None) -> ExchangeResult:
        assert store == "my-store"
        flow.token_store.put("my-store", "shpat_0123456789abcdef")
        return ExchangeResult(access_token="shpat_0123456789abcdef")

    monkeypatch.setattr(flow, "authenticate", fake_authenticate)

    assert cli.main(["my-store"], flow=flow) == 0

    out = capsys.readouterr().out
    assert f"Token saved to {flow.token_store.path.resolve()}: shpat_01...cdef" in out
    assert 'Done! "my-store" is now authenticated.' in out
    assert TokenStore(flow.config.SHOPIFY_TOKENS_PATH).load() == {"my-store": "shpat_0123456789abcdef"}


@pytest.mark.parametrize(
    "error",
    [
        CallbackTimeoutError(timeout_seconds=300),
        ConfigMissingError(message="Missing SHOPIFY_CLIENT_ID or SHOPIFY_CLIENT_SECRET in .env."),
    ],
)
def test_authenticate_failures_exit_with_one_line_error(flow, monkeypatch, capsys, error):
    async def fake_authenticate(store: str, *, on_listening=None) -> ExchangeResult:
        raise error

    monkeypatch.setattr(flow, "authenticate", fake_authenticate)

    assert cli.main(["my-store"], flow=flow) == 1

    assert capsys.readouterr().err == f"Error: {error}\n"
    assert not flow.token_store.path.exists()


class _RedirectingServer:
    """Delivers a correctly signed redirect as soon as the listener is served."""

    def __init__(self, listener):
        self.listener = listener
        self._task = None

    async def __aenter__(self):
        params = {"code": "xyz", "shop": "my-store.myshopify.com", "state": "abc123", "timestamp": "1710000000"}
        params["hmac"] = sign_oauth_params(params, "test_secret")
        self._task = asyncio.create_task(self.listener.handle("/callback", params))
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self._task


def test_authenticate_prints_normalised_store_and_token_path(tmp_path, capsys):
    config = Settings(
        _env_file=None,
        SHOPIFY_CLIENT_ID="test_client_id",
        SHOPIFY_CLIENT_SECRET="test_secret",
        SHOPIFY_TOKENS_PATH=tmp_path / ".tokens.json",
    )
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"access_token": "shpat_0123456789abcdef", "scope": "read_products"})
    )
    flow = OAuthFlow(
        config=config,
        open_browser=lambda url: True,
        server_factory=_RedirectingServer,
        nonce_factory=lambda: "abc123",
        transport=transport,
    )

    assert cli.main(["My-Store.myshopify.com"], flow=flow) == 0

    out = capsys.readouterr().out
    assert 'Authenticating "my-store"...' in out
    assert out.index("Callback server listening on http://localhost:3456/callback") < out.index("Token saved to")
    assert f"Token saved to {(tmp_path / '.tokens.json').resolve()}: shpat_01...cdef" in out
    assert 'Done! "my-store" is now authenticated.' in out


def test_authenticate_without_credentials_prints_no_listening_line(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("SHOPIFY_CLIENT_ID", raising=False)
    monkeypatch.delenv("SHOPIFY_CLIENT_SECRET", raising=False)
    flow = OAuthFlow(
        config=Settings(_env_file=None, SHOPIFY_TOKENS_PATH=tmp_path / ".tokens.json"),
        open_browser=lambda url: pytest.fail("browser must not open without credentials"),
        server_factory=lambda listener: pytest.fail("server must not start without credentials"),
    )

    assert cli.main(["my-store"], flow=flow) == 1

    captured = capsys.readouterr()
    assert "listening" not in captured.out
    assert "Authenticating" not in captured.out
    assert "Opening browser" not in captured.out
    assert "Error: Missing SHOPIFY_CLIENT_ID or SHOPIFY_CLIENT_SECRET" in captured.err
