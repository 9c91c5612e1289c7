#!/usr/bin/env python3
"""Container entrypoint step: wait for the database, then `alembic upgrade head`.

Exits non-zero if the database never comes up or a migration fails, so the
API never starts against an unknown schema. With --seed, also creates and
activates default templates for roles that have none (first deploy).
"""

import argparse
import os
import sys
import time
from dotenv import load_dotenv

load_dotenv()

HERE = os.path.dirname(os.path.abspath(__file__))


def alembic_upgrade_head() -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(os.path.join(HERE, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(HERE, "alembic"))
    command.upgrade(cfg, "head")


def wait_for_database(attempts: int) -> bool:
    from core.database import check_db_connection

    for attempt in range(1, attempts + 1):
        if check_db_connection():
            return True
        print(f"Database unavailable (attempt {attempt}/{attempts}); retrying in 1s")
        time.sleep(1)
    return False


def seed_missing_templates() -> None:
    from core.database import SessionLocal
    from services.template_store import seed_default_templates

    db = SessionLocal()
    try:
        created = seed_default_templates(db)
        for template in created:
            print(f"Seeded {template.role}@v{template.version}")
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--wait", type=int, default=30, help="connection attempts before giving up")
    parser.add_argument("--seed", action="store_true", help="seed default templates for empty roles")
    args = parser.parse_args()

    if not wait_for_database(args.wait):
        print("ERROR: database not reachable")
        return 1

    try:
        alembic_upgrade_head()
    except Exception as e:
        print(f"ERROR: alembic upgrade failed: {e}")
        return 1
    print("Schema at head")

    if args.seed:
        seed_missing_templates()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
