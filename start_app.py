# start_app.py
"""Apply database migrations and serve the table ordering API."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

import config

ALEMBIC_INI = Path(__file__).with_name("api") / "alembic.ini"


def migrate(db_url: str) -> None:
    """Upgrade ``db_url`` to the latest schema, exiting on failure."""

    try:
        subprocess.run(
            [
                sys.executable,
                "-m",
                "alembic",
                "-c",
                str(ALEMBIC_INI),
                "-x",
                f"db_url={db_url}",
                "upgrade",
                "head",
            ],
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        if exc.stdout:
            sys.stdout.write(exc.stdout)
        if exc.stderr:
            sys.stderr.write(exc.stderr)
        print(f"database migration failed (exit code {exc.returncode})", file=sys.stderr)
        raise SystemExit(exc.returncode)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--skip-db-migrations",
        action="store_true",
        help="start without running Alembic migrations",
    )
    parser.add_argument("--host", default="0.0.0.0")  # nosec B104: container bind
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    args = parser.parse_args(argv)

    load_dotenv()
    settings = config.get_settings()

    env_flag = os.getenv("SKIP_DB_MIGRATIONS", "")
    if not (args.skip_db_migrations or env_flag.lower() in {"1", "true", "yes"}):
        migrate(settings.database_url)

    uvicorn.run(
        "api.app.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
