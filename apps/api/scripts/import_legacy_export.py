"""
Import JSON exports of the legacy document store (ops script).

    python scripts/import_legacy_export.py \
        --templates content_templates.json \
        --user-data user_data.json \
        --user-map user_map.json

Each export is a JSON array of documents. The optional user map is a JSON
object of legacy user id -> app_user UUID. Safe to re-run.
"""

from __future__ import annotations

import json
import os
import sys
from uuid import UUID

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def _load_json(path):
    if not path:
        return []
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def main() -> int:
    import argparse

    from core.database import SessionLocal
    from core.logging import setup_logging
    from services.legacy_migration import import_legacy_export

    parser = argparse.ArgumentParser(description="Import legacy JSON exports")
    parser.add_argument("--templates", action="append", default=[], help="content_templates or templateSets export")
    parser.add_argument("--user-data", default=None, help="user_data export")
    parser.add_argument("--user-map", default=None, help="JSON object: legacy user id -> user UUID")
    args = parser.parse_args()
    setup_logging()

    templates = []
    for path in args.templates:
        templates.extend(_load_json(path))
    user_data = _load_json(args.user_data)
    user_map = {str(k): UUID(str(v)) for k, v in (_load_json(args.user_map) or {}).items()} if args.user_map else {}

    db = SessionLocal()
    try:
        report = import_legacy_export(db, templates=templates, user_data=user_data, user_id_map=user_map)
    finally:
        db.close()

    t, u = report["templates"], report["user_data"]
    print(f"Templates: {len(t['imported'])} imported, {len(t['skipped_existing'])} already present, "
          f"{len(t['invalid'])} invalid, activated {t['activated'] or 'none'}")
    print(f"Day entries: {len(u['imported'])} imported, {len(u['skipped_existing'])} already present, "
          f"{len(u['invalid'])} invalid, {u['spaces_created']} user spaces created")
    if u["skipped_unknown_user"]:
        print(f"WARNING: {len(u['skipped_unknown_user'])} document(s) for unknown users "
              f"(pass --user-map): {sorted(set(u['skipped_unknown_user']))[:10]}")
    for problem in t["invalid"] + u["invalid"]:
        print(f"  INVALID: {problem}")
    print("Run scripts/reconcile_templates.py next to clear imported legacy fields.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
