#!/usr/bin/env python3
"""
Credential Service -- user signup, password login, and token issuance.

Usage:
  python main.py serve
  python main.py serve --port 8080
  python main.py serve --reload
  python main.py purge-tokens

Environment variables (or .env):
  JWT_ACCESS_SECRET    Signing secret for access tokens (>= 32 chars).
  JWT_REFRESH_SECRET   Signing secret for refresh tokens (>= 32 chars, distinct).
  DEBUG=true           Generate throwaway secrets instead of refusing to start.
  DATABASE_URL         SQLAlchemy URL. Defaults to a SQLite file in auth/.
  PORT                 Listening port (default 3000).
"""

import argparse
import sys

import uvicorn

from auth.session import SessionManager
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from auth.tokens import BcryptHasher, TokenSigner
from core.config import Settings, get_settings


def serve(settings: Settings, host: str | None, port: int | None, reload: bool) -> None:
    uvicorn.run(
        "asgi:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


def purge_tokens(settings: Settings) -> int:
    """Delete expired refresh-token rows. Returns the number removed.

    refresh() already drops expired rows it happens to see; this catches
    the ones nobody presents again.
    """
    engine = create_store_engine(settings.database_url)
    try:
        manager = SessionManager(
            UserStore(engine),
            RefreshTokenStore(engine),
            BcryptHasher(settings.bcrypt_rounds),
            TokenSigner(settings),
        )
        return manager.purge_expired()
    finally:
        engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="credential-service",
        description="User signup, password login, and access/refresh token issuance.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --host 127.0.0.1 --port 8080 --reload
  python main.py purge-tokens
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Listening port (default: PORT or 3000)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")

    subparsers.add_parser("purge-tokens", help="Delete expired refresh tokens from the database")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()

    if args.command == "serve":
        serve(settings, args.host, args.port, args.reload)
        return 0

    removed = purge_tokens(settings)
    print(f"  Removed {removed} expired refresh token(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
