"""CLI entrypoint for taller-client."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from taller_client.credentials import TokenStore
from taller_client.errors import TallerClientError
from taller_client.executor import NO_CONTENT
from taller_client.export import export_rows_csv
from taller_client.forms import PAGE_SIZES, ListFilters
from taller_client.keys import RequestKey
from taller_client.logging_setup import configure_logging
from taller_client.pagination import PageWindow
from taller_client.resources import default_catalog
from taller_client.session import TallerSession
from taller_client.settings import Settings


class CLIError(TallerClientError):
    """User-facing CLI error."""


def _settings_from_args(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if args.config else None
    return Settings.from_runtime(config_path, base_url=args.base_url or None)


def _list_key(args: argparse.Namespace) -> RequestKey:
    path = args.path if args.path.startswith("/") else f"/api/{args.path}"
    filters = ListFilters(search=args.search, estado=args.estado).query_params()
    return RequestKey.of(path, filters) if filters else RequestKey.of(path)


def _print_json(value: Any) -> None:
    if value is NO_CONTENT:
        return
    print(json.dumps(value, sort_keys=True, indent=2, ensure_ascii=False))


async def _run_get(settings: Settings, args: argparse.Namespace) -> int:
    key = _list_key(args)
    async with TallerSession(settings) as session:
        data = await session.cache.fetch(key)
    if args.page and isinstance(data, list):
        window = PageWindow(total=len(data), page=args.page, page_size=args.page_size)
        print(window.summary(), file=sys.stderr)
        data = window.slice(data)
    _print_json(data)
    return 0


def _cmd_get(args: argparse.Namespace, settings: Settings) -> int:
    return asyncio.run(_run_get(settings, args))


async def _run_export(settings: Settings, args: argparse.Namespace) -> int:
    key = _list_key(args)
    async with TallerSession(settings) as session:
        data = await session.cache.fetch(key)
    if not isinstance(data, list):
        raise CLIError(f"{key} did not return a list")
    if not export_rows_csv(data, Path(args.out)):
        print("no rows to export", file=sys.stderr)
        return 0
    print(f"exported {len(data)} rows to {args.out}")
    return 0


def _cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    return asyncio.run(_run_export(settings, args))


async def _run_login(settings: Settings, args: argparse.Namespace) -> int:
    async with TallerSession(settings) as session:
        user = await session.login(args.username, args.password)
    name = user.get("nombre") or user.get("username") or args.username
    print(f"logged in as {name}")
    return 0


def _cmd_login(args: argparse.Namespace, settings: Settings) -> int:
    return asyncio.run(_run_login(settings, args))


def _cmd_logout(args: argparse.Namespace, settings: Settings) -> int:
    TokenStore(settings.resolved_token_path()).clear()
    print("logged out")
    return 0


def _cmd_resources(args: argparse.Namespace, settings: Settings) -> int:
    for resource in default_catalog():
        invalidated = ", ".join(key.path for key in resource.invalidates)
        mode = "rw" if resource.writable else "ro"
        print(f"{resource.name:<24} {mode} {resource.path:<32} invalidates: {invalidated}")
    return 0


def _add_list_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Endpoint path, e.g. /api/clientes or clientes.")
    parser.add_argument("--search", default="", help="Server-side search filter.")
    parser.add_argument("--estado", default="", help="Server-side state filter.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taller")
    parser.add_argument(
        "--config",
        default="",
        help="Path to runtime config TOML (default: ~/.config/taller/runtime.toml).",
    )
    parser.add_argument("--base-url", default="", help="Override backend base URL.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    login_parser = subparsers.add_parser("login", help="Log in and store the bearer token.")
    login_parser.add_argument("username")
    login_parser.add_argument("password")
    login_parser.set_defaults(func=_cmd_login)

    logout_parser = subparsers.add_parser("logout", help="Forget the stored bearer token.")
    logout_parser.set_defaults(func=_cmd_logout)

    get_parser = subparsers.add_parser("get", help="Read one endpoint and print JSON.")
    _add_list_args(get_parser)
    get_parser.add_argument("--page", type=int, default=0, help="1-based page to print.")
    get_parser.add_argument(
        "--page-size", type=int, default=PAGE_SIZES[0], choices=PAGE_SIZES, help="Rows per page."
    )
    get_parser.set_defaults(func=_cmd_get)

    export_parser = subparsers.add_parser("export", help="Export a list endpoint to CSV.")
    _add_list_args(export_parser)
    export_parser.add_argument("out", help="Output CSV path.")
    export_parser.set_defaults(func=_cmd_export)

    resources_parser = subparsers.add_parser(
        "resources", help="List known resources and the keys their writes invalidate."
    )
    resources_parser.set_defaults(func=_cmd_resources)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    try:
        settings = _settings_from_args(args)
        configure_logging("DEBUG" if args.verbose else settings.log_level)
        return int(func(args, settings))
    except (TallerClientError, FileNotFoundError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
