"""Script to run database migrations."""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _config() -> Config:
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    return cfg


def run_migrations(target: str = "head") -> None:
    """Upgrade the schema to ``target``."""
    try:
        print(f"Upgrading database to {target}...")
        command.upgrade(_config(), target)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback_migration(target: str = "-1") -> None:
    """Downgrade the schema to ``target``."""
    try:
        print(f"Downgrading database to {target}...")
        command.downgrade(_config(), target)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        run_migrations()
    elif args[0] == "upgrade":
        run_migrations(args[1] if len(args) > 1 else "head")
    elif args[0] == "downgrade":
        rollback_migration(args[1] if len(args) > 1 else "-1")
    else:
        print("Usage: python scripts/migrate.py [upgrade [rev] | downgrade [rev]]")
        sys.exit(2)
