"""
Programmatic Alembic runner for the bundled migrations (no alembic.ini needed).

Usage examples:
    python -m skuvault_saas.db.run_migrations upgrade head
    python -m skuvault_saas.db.run_migrations downgrade -1
    python -m skuvault_saas.db.run_migrations current
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List

from alembic import command
from alembic.config import Config

from skuvault_saas.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def build_config() -> Config:
    """Alembic Config bound to the bundled migrations and the configured database."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Offline mode only; env.py builds its own async engine online
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


def _show(cfg: Config, *args: str) -> None:
    if not args:
        print("Usage: show <revision>")
        sys.exit(2)
    command.show(cfg, args[0])


# command name -> (handler, default arguments)
COMMANDS: Dict[str, tuple] = {
    "upgrade": (command.upgrade, ["head"]),
    "downgrade": (command.downgrade, ["-1"]),
    "history": (command.history, []),
    "current": (command.current, []),
    "heads": (command.heads, []),
    "show": (_show, []),
}


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """
    Run one Alembic command, e.g. main(["upgrade", "head"]).

    Exits with status 2 for an unknown command or missing arguments.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(f"Usage: run_migrations <{'|'.join(COMMANDS)}> [args]")
        sys.exit(2)

    name, rest = args[0], args[1:]
    if name not in COMMANDS:
        print(f"Unsupported Alembic command: {name}")
        sys.exit(2)

    handler, defaults = COMMANDS[name]
    logger.info("alembic %s %s", name, " ".join(rest or defaults))
    handler(build_config(), *(rest or defaults))


if __name__ == "__main__":
    main()
