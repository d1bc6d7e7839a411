#!/usr/bin/env python3
"""
AuthGate -- password login, emailed second factor, and password reset.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 0.0.0.0 --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Session signing key, at least 32 characters. Required unless DEBUG=true.
  DEBUG          Set to true for local development (auto-generated SECRET_KEY).
  DATABASE_URL   SQLAlchemy URL of the credential store.
  HOST / PORT    Default listen address when --host/--port are not given.
  SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, FROM_EMAIL
                 Outbound mail. Without SMTP_HOST/SMTP_USER, messages are
                 written to OUTBOX_PATH instead.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Run the AuthGate credential service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Listen port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
