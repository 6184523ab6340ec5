"""Thin CLI over alembic for the workflow schema.

Usage:
    python scripts/migrate.py                      # upgrade to head
    python scripts/migrate.py upgrade <revision>
    python scripts/migrate.py downgrade <revision>
    python scripts/migrate.py revision "add billing lines"
    python scripts/migrate.py current
"""

import argparse
import sys
from collections.abc import Callable
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def alembic_config() -> Config:
    cfg = Config(str(ALEMBIC_INI))
    # Resolve script_location relative to the ini, not the caller's cwd
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    return cfg


def run(description: str, action: Callable[[Config], None]) -> int:
    """Run one alembic command and map failures to a non-zero exit code."""
    print(f"{description}...")
    try:
        action(alembic_config())
    except Exception as e:
        print(f"✗ {description} failed: {e}", file=sys.stderr)
        return 1
    print(f"✓ {description} done")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the clinic workflow database schema")
    sub = parser.add_subparsers(dest="command")

    upgrade = sub.add_parser("upgrade", help="Apply migrations")
    upgrade.add_argument("revision", nargs="?", default="head")

    downgrade = sub.add_parser("downgrade", help="Revert migrations")
    downgrade.add_argument("revision")

    revision = sub.add_parser("revision", help="Autogenerate a migration from the table metadata")
    revision.add_argument("message")

    sub.add_parser("current", help="Show the applied revision")

    args = parser.parse_args(argv)

    if args.command in (None, "upgrade"):
        target = getattr(args, "revision", "head")
        return run(f"Upgrading schema to {target}", lambda cfg: command.upgrade(cfg, target))
    if args.command == "downgrade":
        return run(
            f"Downgrading schema to {args.revision}",
            lambda cfg: command.downgrade(cfg, args.revision),
        )
    if args.command == "revision":
        return run(
            f"Creating migration '{args.message}'",
            lambda cfg: command.revision(cfg, message=args.message, autogenerate=True),
        )
    return run("Reading current revision", lambda cfg: command.current(cfg, verbose=True))


if __name__ == "__main__":
    sys.exit(main())
