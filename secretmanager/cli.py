"""
Secret Manager CLI — inspect a host's secrets through the panel controller.

Usage:
    secret-manager list [--all]       # First page (or every page) of secrets
    secret-manager search QUERY       # Filter by website or username
    secret-manager shares SECRET_ID   # Who a secret is shared with
    secret-manager users [--query Q]  # Users offered for sharing
    secret-manager roles              # Roles offered for sharing
    secret-manager version            # Show version

Passwords are always masked. Connection settings come from
SECRET_MANAGER_HOST_URL / SECRET_MANAGER_API_TOKEN.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from secretmanager.client import HostApiClient
from secretmanager.config import Config, get_config
from secretmanager.controller import SecretListController
from secretmanager.errors import StoreUnavailable
from secretmanager.models import Secret
from secretmanager.providers import ProviderSet
from secretmanager.state import PanelState

logger = logging.getLogger(__name__)

MASK = "********"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="secret-manager",
        description="Secret Manager — browse and audit shared credentials.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    parser.add_argument("--host", type=str, help="Host API URL (default: $SECRET_MANAGER_HOST_URL)")

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List secrets")
    list_parser.add_argument("--all", action="store_true", help="Follow pagination to the end")

    search_parser = subparsers.add_parser("search", help="Search secrets")
    search_parser.add_argument("query", help="Website or username fragment")

    shares_parser = subparsers.add_parser("shares", help="Show who a secret is shared with")
    shares_parser.add_argument("secret_id", help="Secret id")

    users_parser = subparsers.add_parser("users", help="List users available for sharing")
    users_parser.add_argument("--query", type=str, default="", help="Filter by email")

    subparsers.add_parser("roles", help="List roles available for sharing")
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from secretmanager import __version__

        print(f"secret-manager {__version__}")
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    cfg = get_config()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return asyncio.run(_run(args, cfg))


async def _run(args: argparse.Namespace, cfg: Config) -> int:
    async with HostApiClient(base_url=args.host, config=cfg) as client:
        providers = ProviderSet.from_client(client)
        try:
            _require_providers(providers, args.command)
        except StoreUnavailable as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        controller = SecretListController(providers, config=cfg)
        try:
            if args.command == "list":
                await _settle(controller.refresh())
                while args.all and controller.state.has_more and not controller.state.error:
                    offset = controller.state.offset
                    await _settle(controller.load_more())
                    if controller.state.offset == offset:
                        break
                return _report(controller.state, args, _secret_rows(controller.state))
            if args.command == "search":
                await _settle(controller.search(args.query))
                return _report(controller.state, args, _secret_rows(controller.state))
            if args.command == "shares":
                await _settle(controller.list_shares(args.secret_id))
                rows = [
                    {"kind": share.kind, "target": share.target_label}
                    for share in controller.state.shares
                ]
                return _report(controller.state, args, rows)
            if args.command == "users":
                await _settle(controller.search_users_for_sharing(args.query))
                rows = [
                    {"id": u.id, "email": u.email, "roles": ", ".join(u.roles)}
                    for u in controller.state.available_users
                ]
                return _report(controller.state, args, rows)
            if args.command == "roles":
                await _settle(controller.load_available_roles())
                rows = [{"id": r.id, "name": r.name} for r in controller.state.available_roles]
                return _report(controller.state, args, rows)
        finally:
            controller.close()

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


def _require_providers(providers: ProviderSet, command: str) -> None:
    """Fail fast instead of printing an empty list when the host lacks a provider."""
    if command in ("users", "roles"):
        providers.require_directory()
    else:
        providers.require_secrets()


async def _settle(task: asyncio.Task | None) -> None:
    if task is not None:
        await task


def _secret_rows(state: PanelState) -> list[dict[str, Any]]:
    return [_secret_row(secret) for secret in state.items]


def _secret_row(secret: Secret) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": secret.id,
        "website": secret.website,
        "username": secret.username,
        "password": MASK,
        "tags": ", ".join(secret.tags),
    }
    if secret.expiration_date is not None:
        row["expires"] = secret.expiration_date.date().isoformat()
    if secret.metadata is not None and secret.metadata.twofa_enabled:
        row["2fa"] = secret.metadata.twofa_type or "yes"
    return row


def _report(state: PanelState, args: argparse.Namespace, rows: list[dict[str, Any]]) -> int:
    if state.error:
        print(f"Error: {state.error}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"items": rows, "hasMore": state.has_more}, indent=2))
        return 0

    if not rows:
        print("(none)")
        return 0
    for row in rows:
        print("  ".join(f"{key}={value}" for key, value in row.items() if value != ""))
    if args.command == "list" and state.has_more:
        print(f"... more available (showing {len(rows)}; use --all)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
