"""Audit report of stored content templates per role (read-only ops script)."""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.config import settings
    from core.database import SessionLocal
    from models import ActiveTemplatePointer
    from services.template_store import CONTENT_KEYS, list_templates

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--role", default=None, help="only report this role")
    args = parser.parse_args()

    db = SessionLocal()
    problems = 0
    try:
        templates = list_templates(db, args.role)
        pointers = {p.role: p for p in db.query(ActiveTemplatePointer).all()}
        roles = [args.role.strip().lower()] if args.role else sorted(
            set(settings.template_roles) | {t.role for t in templates}
        )

        print("=" * 70)
        print("CONTENT TEMPLATES")
        print("=" * 70)
        for role in roles:
            rows = [t for t in templates if t.role == role]
            active = [t for t in rows if t.is_active]
            pointer = pointers.get(role)
            print(f"\n{role.upper()}: {len(rows)} version(s), {len(active)} flagged active")

            if not rows:
                print("  !! no templates")
                problems += 1
                continue
            if len(active) != 1:
                print(f"  !! expected exactly one active version, found {[t.version for t in active]}")
                problems += 1
            if pointer is None:
                print("  !! no active-template pointer")
                problems += 1
            elif not any(t.id == pointer.template_id and t.is_active for t in rows):
                print("  !! pointer target is not the flagged active version")
                problems += 1

            for t in rows:
                content = t.content or {}
                counts = ", ".join(f"{key}={len(content.get(key) or [])}" for key in CONTENT_KEYS)
                flags = " ACTIVE" if t.is_active else ""
                legacy = " legacy-fields" if t.legacy_fields else ""
                print(f"  v{t.version} (rev {t.revision}){flags}{legacy}: {counts}")
                if t.legacy_fields:
                    problems += 1

        print()
        print(f"{problems} problem(s) found" if problems else "All templates consistent")
        return 1 if problems else 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
