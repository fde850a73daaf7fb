#!/usr/bin/env python3
"""
rwa-auth: obtain session tokens from the RWA auth service with a wallet key.

Usage:
  rwa-auth login --role ADMIN            # print identity, access and refresh tokens
  rwa-auth token --role INVESTOR         # print only the access token (for shell scripts)
  rwa-auth refresh <refresh-token>       # exchange a refresh token for a new pair
  rwa-auth call <to> <data>              # eth_call a contract, print result or revert reason
  rwa-auth tx-status <tx-hash>           # print whether a transaction succeeded

Environment variables:
  SIGNER_PRIVATE_KEY   Private key of the signing wallet. INVESTOR_KEY and USER_KEY
                       are read as fallbacks. Use --key-env to name another variable.
  API_URL              Base URL of the auth service (default http://localhost:8000).
  RPC_URL              JSON-RPC endpoint for call and tx-status (default Mantle Sepolia).
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

import httpx
from eth_account import Account

from rwa_auth.client import AuthClient, AuthClientError
from rwa_auth.services.ledger_client import DEFAULT_RPC_URL, LedgerClient, RemoteCallResult

KEY_ENV_FALLBACKS = ("SIGNER_PRIVATE_KEY", "INVESTOR_KEY", "USER_KEY")

logger = logging.getLogger("rwa_auth.cli")


def _load_private_key(key_env: Optional[str]) -> str:
    names = (key_env,) if key_env else KEY_ENV_FALLBACKS
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    raise SystemExit(f"Error: none of {', '.join(names)} is set")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rwa-auth",
        description="Wallet sign-in helper for the RWA auth service.",
    )
    parser.add_argument("--api-url", default=os.environ.get("API_URL", "http://localhost:8000"))
    parser.add_argument("--rpc-url", default=os.environ.get("RPC_URL", DEFAULT_RPC_URL))
    parser.add_argument("-v", "--verbose", action="store_true", help="Log HTTP activity.")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("login", "Sign in and print identity plus both tokens."),
        ("token", "Sign in and print only the access token."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--role", default="INVESTOR", help="ADMIN, INVESTOR or ORIGINATOR.")
        p.add_argument("--key-env", default=None, help="Environment variable holding the private key.")

    p = sub.add_parser("refresh", help="Exchange a refresh token for a new token pair.")
    p.add_argument("refresh_token")

    p = sub.add_parser("call", help="Read a contract with eth_call.")
    p.add_argument("to", help="Contract address.")
    p.add_argument("data", help="ABI-encoded calldata, 0x-prefixed.")
    p.add_argument("--block", default="latest")

    p = sub.add_parser("tx-status", help="Report the outcome of a transaction.")
    p.add_argument("tx_hash")
    return parser


def _print_remote(result: RemoteCallResult) -> int:
    if result.success:
        print(result.result)
        return 0
    print(f"Reverted: {result.revert_reason}", file=sys.stderr)
    return 1


async def _run_ledger(args: argparse.Namespace) -> int:
    ledger = LedgerClient(args.rpc_url)
    if args.command == "call":
        return _print_remote(await ledger.call(args.to, args.data, block=args.block))
    return _print_remote(await ledger.transaction_status(args.tx_hash))


async def _run(args: argparse.Namespace) -> int:
    if args.command in ("call", "tx-status"):
        return await _run_ledger(args)

    client = AuthClient(args.api_url)

    if args.command == "refresh":
        data = await client.refresh(args.refresh_token)
        print(f"access:  {data['tokens']['access']}")
        print(f"refresh: {data['tokens']['refresh']}")
        return 0

    account = Account.from_key(_load_private_key(args.key_env))
    logger.info("Signing in as %s (role=%s)", account.address, args.role)
    data = await client.login(account, role=args.role)

    if args.command == "token":
        print(data["tokens"]["access"])
        return 0

    identity = data["identity"]
    print(f"Wallet:  {identity['wallet_address']}")
    print(f"Role:    {identity['role']}")
    print()
    print(f"Access token:\n  {data['tokens']['access']}")
    print(f"Refresh token:\n  {data['tokens']['refresh']}")
    print()
    print("Export for curl:")
    print(f'  export {identity["role"]}_TOKEN="{data["tokens"]["access"]}"')
    return 0


def main(argv: Optional[list] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except (AuthClientError, httpx.HTTPError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
