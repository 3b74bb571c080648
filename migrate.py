#!/usr/bin/env python3
"""
Gestión de migraciones del esquema de textil con Alembic.

    python migrate.py create "mensaje"   # autogenerar revisión desde los modelos
    python migrate.py upgrade [rev]      # aplicar hasta rev (por defecto head)
    python migrate.py downgrade [rev]    # revertir hasta rev (por defecto -1)
    python migrate.py history
    python migrate.py current
"""
import sys
from pathlib import Path

root_dir = Path(__file__).parent
sys.path.insert(0, str(root_dir))

from alembic.config import Config
from alembic import command
from textil.core.config import settings


def alembic_config() -> Config:
    cfg = Config(str(root_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(root_dir / "alembic"))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return cfg


def create(cfg: Config, args):
    if not args:
        raise SystemExit("Error: se requiere un mensaje para la revisión")
    command.revision(cfg, autogenerate=True, message=args[0])
    print(f"Revisión creada: {args[0]}")


def upgrade(cfg: Config, args):
    target = args[0] if args else "head"
    command.upgrade(cfg, target)
    print(f"Esquema actualizado a {target}")


def downgrade(cfg: Config, args):
    target = args[0] if args else "-1"
    command.downgrade(cfg, target)
    print(f"Esquema revertido a {target}")


ACTIONS = {
    "create": create,
    "upgrade": upgrade,
    "downgrade": downgrade,
    "history": lambda cfg, args: command.history(cfg),
    "current": lambda cfg, args: command.current(cfg),
}


if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in ACTIONS:
        print(__doc__)
        sys.exit(1)
    ACTIONS[sys.argv[1]](alembic_config(), sys.argv[2:])
