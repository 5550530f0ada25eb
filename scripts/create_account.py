from __future__ import annotations

import argparse
import asyncio
import sys

from tenantkey.core.errors import TenantKeyError
from tenantkey.persistence.db import SessionLocal
from tenantkey.services.credentials.accounts import create_account
from tenantkey.services.credentials.clients import create_client, decrypt_secret


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create an account and optionally its first client")
    parser.add_argument("--name", required=True, help="Account display name")
    parser.add_argument(
        "--permission",
        default="DOMAIN",
        help="Account permission: SUPERADMIN|ADMINISTRATOR|DOMAIN",
    )
    parser.add_argument("--external-id", default=None, help="Caller-side identifier")
    parser.add_argument("--client-name", default=None, help="Create a first client with this name")
    parser.add_argument(
        "--client-permission",
        default="READWRITE",
        help="Client access permission: READWRITE|READONLY",
    )
    return parser


async def _create(args: argparse.Namespace) -> int:
    async with SessionLocal() as session:
        account = await create_account(
            session,
            {"name": args.name, "external_id": args.external_id, "account_permission": args.permission},
        )
        print("Account created:")
        print(f"  account_id: {account.id}")
        if args.client_name:
            client = await create_client(
                session,
                {"name": args.client_name, "access_permission": args.client_permission},
                account,
            )
            secret = await decrypt_secret(client, account)
            print("Client created:")
            print(f"  client_id: {client.id}")
            print("  client_secret: ")
            print(f"    {secret}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_create(args))
    except TenantKeyError as exc:
        print(f"create_account failed: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
