"""Create and activate default content templates for roles that have none (ops script)."""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.database import SessionLocal
    from core.logging import setup_logging
    from services.admin_audit import record_admin_audit_event
    from services.template_store import seed_default_templates

    parser = argparse.ArgumentParser(description=__doc__)
    parser.parse_args()
    setup_logging()

    db = SessionLocal()
    try:
        created = seed_default_templates(db)
        if not created:
            print("Every configured role already has templates; nothing to seed")
            return 0
        for template in created:
            print(f">>> Seeded {template.role} v{template.version} (active)")
        record_admin_audit_event(
            db,
            request=None,
            actor=None,
            action="template.seed",
            payload={"created": [f"{t.role}@v{t.version}" for t in created], "source": "script"},
        )
        db.commit()
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
