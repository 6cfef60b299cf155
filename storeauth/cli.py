from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import NoReturn, Sequence

from storeauth.config import settings
from storeauth.errors import StoreAuthError
from storeauth.oauth import OAuthFlow
from storeauth.security import normalize_store_name, shop_domain_for
from storeauth.token_store import mask_token

EPILOG = """\
Usage:
  storeauth <store-name>            Authenticate against a store
  storeauth --list                  Show all stored tokens
  storeauth --revoke <store-name>   Remove a stored token

Example:
  storeauth den-lille-malerfabrik
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="storeauth",
        description="Authenticate Shopify stores via OAuth and manage stored Admin API tokens.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("store", nargs="?", help="Store name, e.g. my-store or my-store.myshopify.com")
    group.add_argument("--list", action="store_true", help="Show all stored tokens (masked).")
    group.add_argument("--revoke", metavar="STORE", help="Remove the stored token for STORE.")
    return parser


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_tokens(flow: OAuthFlow) -> None:
    tokens = flow.list_tokens()
    if not tokens:
        print("\nNo stored tokens. Run: storeauth <store-name>\n")
        return
    print(f"\nStored tokens ({flow.token_store.path.resolve()}):\n")
    for token in tokens:
        print(f"  {shop_domain_for(token.storeName)}  →  {token.maskedToken}")
    print()


def _announce_listening(store_name: str, redirect_uri: str) -> None:
    print(f'\nAuthenticating "{store_name}"...')
    print(f"  Callback server listening on {redirect_uri}")
    print("  Opening browser...\n")


def main(argv: Sequence[str] | None = None, *, flow: OAuthFlow | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging()
    flow = flow or OAuthFlow()

    try:
        if args.list:
            _print_tokens(flow)
            return 0

        if args.revoke:
            store_name = flow.revoke_token(args.revoke)
            print(f'\nToken for "{store_name}" removed.\n')
            return 0

        if not args.store:
            parser.print_help()
            return 0

        result = asyncio.run(flow.authenticate(args.store, on_listening=_announce_listening))
        print(f"  Token saved to {flow.token_store.path.resolve()}: {mask_token(result.access_token)}")
        print(f'\nDone! "{normalize_store_name(args.store)}" is now authenticated.\n')
        return 0
    except StoreAuthError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
