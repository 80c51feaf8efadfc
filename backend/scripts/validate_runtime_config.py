#!/usr/bin/env python3
"""Validate runtime configuration for pre-production/production deploys.

Examples:
  python backend/scripts/validate_runtime_config.py
  python backend/scripts/validate_runtime_config.py --require-postgres --pretty
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.engine import make_url

from core.config import get_settings, is_local_env


def _validate_settings(*, require_postgres: bool) -> tuple[list[str], dict[str, Any]]:
    settings = get_settings()
    local_env = is_local_env(settings.app_env)
    backend = make_url(settings.database_url).get_backend_name()
    failures: list[str] = []

    if not local_env:
        if "dev_password" in settings.database_url:
            failures.append("DATABASE_URL must not use the development password outside local/dev/test")
        if settings.database_echo:
            failures.append("DATABASE_ECHO=true is not allowed outside local/dev/test")

    if require_postgres and backend != "postgresql":
        failures.append(f"DATABASE_URL must point at PostgreSQL when --require-postgres is set (got {backend})")

    summary = {
        "status": "success" if not failures else "failed",
        "app_env": settings.app_env,
        "local_env": local_env,
        "database_backend": backend,
        "default_currency": settings.default_currency,
        "require_postgres": bool(require_postgres),
        "failures": failures,
    }
    return failures, summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate deployment runtime config")
    parser.add_argument(
        "--require-postgres",
        action="store_true",
        help="Require a PostgreSQL DATABASE_URL for this deploy target",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    try:
        failures, summary = _validate_settings(require_postgres=bool(args.require_postgres))
    except Exception as exc:  # noqa: BLE001
        summary = {
            "status": "failed",
            "error": str(exc),
            "require_postgres": bool(args.require_postgres),
        }
        failures = [str(exc)]

    if args.pretty:
        print(json.dumps(summary, indent=2, sort_keys=True))
    else:
        print(json.dumps(summary))

    return 0 if not failures else 1


if __name__ == "__main__":
    raise SystemExit(main())
