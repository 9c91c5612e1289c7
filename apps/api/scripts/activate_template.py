"""Activate one content template version for a role (ops script)."""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.database import SessionLocal
    from core.exceptions import APIException
    from core.logging import setup_logging
    from services.admin_audit import record_admin_audit_event
    from services.template_store import activate_template, resolve_active_template

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("role", help="template role, e.g. public")
    parser.add_argument("version", type=int, help="template version to activate")
    parser.add_argument("--reason", default=None, help="recorded in the admin audit log")
    args = parser.parse_args()
    setup_logging()

    db = SessionLocal()
    try:
        try:
            current = resolve_active_template(db, args.role.strip().lower())
        except APIException:
            current = None
        if current is not None:
            print(f"Current active: {current.role} v{current.version}")

        try:
            template = activate_template(db, args.role, args.version)
        except APIException as e:
            print(f"ERROR: {e.detail}")
            return 1

        record_admin_audit_event(
            db,
            request=None,
            actor=None,
            action="template.activate",
            target=f"{template.role}@v{template.version}",
            reason=args.reason,
            payload={"source": "script"},
        )
        db.commit()
        print(f">>> Activated {template.role} v{template.version}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
