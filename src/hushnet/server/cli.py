# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Command-line interface for running and maintaining the registry."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ..core.exceptions import HushnetException


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP server."""
    import uvicorn

    from ..core.logging import configure_logging
    from .config import get_settings

    configure_logging()
    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    print(f"Serving registry on {host}:{port}")
    uvicorn.run(
        "hushnet.server.app:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    """Apply the database schema."""
    from ..core.db import close_pool, init_schema

    try:
        init_schema(args.schema)
    finally:
        close_pool()
    print("Schema applied")
    return 0


def cmd_purge_challenges(args: argparse.Namespace) -> int:
    """Delete expired challenges once."""
    from ..registry.challenge_store import get_challenge_store

    removed = get_challenge_store().purge_expired()
    print(f"Removed {removed} expired challenge(s)")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Hushnet node registry",
        prog="hushnet-registry",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the registry HTTP server")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: HUSHNET_HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", "-p", type=int, default=None, help="Bind port (default: HUSHNET_PORT or 8080)")

    # Init-db command
    init_parser = subparsers.add_parser("init-db", help="Create tables and indexes")
    init_parser.add_argument(
        "--schema",
        type=Path,
        default=None,
        help="Schema file to apply (default: bundled schema.sql)",
    )

    # Purge command
    subparsers.add_parser("purge-challenges", help="Delete expired challenges")

    args = parser.parse_args(argv)

    commands = {
        "serve": cmd_serve,
        "init-db": cmd_init_db,
        "purge-challenges": cmd_purge_challenges,
    }

    try:
        return commands[args.command](args)
    except HushnetException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
