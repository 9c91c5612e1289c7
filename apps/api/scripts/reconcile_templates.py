"""
Repair stored content templates (ops script).

1. Rewrite legacy template shapes to the canonical nested content.
2. Force exactly one active template per role.

Defaults to a dry run; pass --commit to persist.
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.database import SessionLocal
    from core.logging import setup_logging
    from services.admin_audit import record_admin_audit_event
    from services.template_reconciliation import reconcile_active_flags, reconcile_template_structure

    parser = argparse.ArgumentParser(description="Repair stored content templates")
    parser.add_argument("--commit", action="store_true", help="Persist repairs (default: dry-run)")
    parser.add_argument(
        "--promote-latest",
        action="store_true",
        help="Activate the highest version for roles with no active template",
    )
    parser.add_argument("--reason", default=None, help="recorded in the admin audit log")
    args = parser.parse_args()
    setup_logging()
    dry_run = not args.commit

    db = SessionLocal()
    try:
        structure = reconcile_template_structure(db, dry_run=dry_run)
        print(f"Checked {structure['checked']} template(s)")
        for label in structure["rewritten"]:
            print(f"  {'DRY_RUN: would rewrite' if dry_run else 'Rewrote'} {label}")
        for label in structure["skipped_concurrent"]:
            print(f"  SKIPPED (changed concurrently): {label}")
        for problem in structure["invalid"]:
            print(f"  INVALID {problem['template']}: {problem['error']}")

        flags = reconcile_active_flags(db, promote_latest=args.promote_latest, dry_run=dry_run)
        for role, outcome in flags["roles"].items():
            version = outcome.get("version")
            suffix = f" -> v{version}" if version else ""
            print(f"  {role}: {outcome['status']}{suffix}")

        if not dry_run:
            record_admin_audit_event(
                db,
                request=None,
                actor=None,
                action="template.reconcile",
                reason=args.reason,
                payload={
                    "rewritten": structure["rewritten"],
                    "roles": {role: o["status"] for role, o in flags["roles"].items()},
                    "source": "script",
                },
            )
            db.commit()

        unresolved = [role for role, o in flags["roles"].items() if o["status"] == "no_active"]
        if unresolved:
            print(f"ERROR: no active template for: {', '.join(unresolved)} (try --promote-latest)")
            return 1
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
