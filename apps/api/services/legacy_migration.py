"""
Legacy export import.

Moves JSON exports of the old document store into the relational tables:

- `content_templates` / `templateSets` documents -> content_template rows
  (canonical content; the raw top-level lists are kept in `legacy_fields`
  until structural reconciliation clears them)
- `user_data` documents -> one day_entry per (user, day) plus the user's
  user_space settings (timezone, wake time)

Imports are idempotent: templates are keyed by (role, version), or by
(role, content) when the document carries no version; day entries
by (user_id, day), spaces by user_id. Existing rows are never overwritten.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from models import ContentTemplate, DayEntry, User, UserSpace
from services.conditional_writes import insert_if_absent
from services.day_keys import parse_day_key, parse_wake_time, validate_role
from services.template_reconciliation import canonicalize_template_document, extract_legacy_fields
from services.template_store import activate_template, get_template, resolve_active_template, validate_template_content

logger = logging.getLogger(__name__)

# user_data list -> (day_entry column, generated-id prefix)
LEGACY_LISTS = {
    "masterChecklist": ("master_checklist", "mc"),
    "habitBreakChecklist": ("habit_break_checklist", "hb"),
    "workoutChecklist": ("workout_checklist", "wk"),
    "todoList": ("todo_list", "todo"),
}


def _iso(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _normalize_entry_items(items: Optional[List[Any]], prefix: str) -> List[Dict[str, Any]]:
    normalized = []
    seen = set()
    for position, item in enumerate(items or [], start=1):
        if not isinstance(item, dict):
            continue
        copied = copy.deepcopy(item)
        item_id = str(copied.pop("itemId", None) or copied.get("id") or f"{prefix}-{position:03d}")
        if item_id in seen:
            item_id = f"{item_id}-{position}"
        seen.add(item_id)
        copied["id"] = item_id
        copied["text"] = str(copied.get("text") or "")
        copied["completed"] = bool(copied.get("completed", False))
        copied["completedAt"] = _iso(copied.get("completedAt"))
        normalized.append(copied)
    return normalized


def _normalize_entry_blocks(blocks: Optional[List[Any]]) -> List[Dict[str, Any]]:
    normalized = []
    seen = set()
    for position, block in enumerate(blocks or [], start=1):
        if not isinstance(block, dict):
            continue
        copied = copy.deepcopy(block)
        index = copied.get("index")
        fallback = f"block-{index + 1}" if isinstance(index, int) else f"block-{position}"
        block_id = str(copied.pop("blockId", None) or copied.get("id") or fallback)
        if block_id in seen:
            block_id = f"{block_id}-{position}"
        seen.add(block_id)
        copied["id"] = block_id
        copied["complete"] = bool(copied.get("complete", False))
        notes = copied.get("notes")
        copied["notes"] = [str(n) for n in notes] if isinstance(notes, list) else []
        copied.setdefault("activities", [])
        normalized.append(copied)
    return normalized


def _legacy_wake_time(value: Any) -> Optional[str]:
    """Zero-padded "HH:MM", or None for anything that is not a 24h clock time."""
    if not value:
        return None
    try:
        return parse_wake_time(value)
    except ValidationError:
        logger.warning(f"Dropping unparseable legacy wake time {value!r}")
        return None


def split_legacy_user_data(doc: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    One legacy `user_data` document -> (day entry values, user space values).

    The returned day values carry no user_id; the caller resolves it.
    Raises ValidationError for a missing or malformed `date`.
    """
    day = parse_day_key(doc.get("date"))

    day_values: Dict[str, Any] = {
        "day": day,
        "time_blocks": _normalize_entry_blocks(doc.get("blocks") or doc.get("timeBlocks")),
        "notes": doc.get("notes") if isinstance(doc.get("notes"), str) else "",
    }
    for key, (column, prefix) in LEGACY_LISTS.items():
        day_values[column] = _normalize_entry_items(doc.get(key), prefix)
    day_values["wake_time"] = _legacy_wake_time(doc.get("dailyWakeTime") or doc.get("wakeTime"))

    space_values = {
        "timezone": doc.get("userTimezone") or None,
        "wake_time": day_values["wake_time"],
    }
    return day_values, space_values


def _resolve_user(db: Session, legacy_id: Any, user_id_map: Mapping[str, UUID]) -> Optional[UUID]:
    key = str(legacy_id or "")
    if key in user_id_map:
        return user_id_map[key]
    try:
        candidate = UUID(key)
    except ValueError:
        return None
    exists = db.query(User.id).filter(User.id == candidate).first()
    return candidate if exists else None


def _version_with_content(db: Session, role: str, content: Dict[str, Any]) -> Optional[int]:
    """
    Version of an existing `role` template whose canonical content equals
    `content`. Versionless legacy documents are matched this way on re-import.
    """
    rows = (
        db.query(ContentTemplate.version, ContentTemplate.content)
        .filter(ContentTemplate.role == role)
        .order_by(ContentTemplate.version)
        .all()
    )
    for version, stored in rows:
        if stored == content:
            return version
    return None


def import_templates(db: Session, documents: Iterable[Dict[str, Any]], report: Dict[str, Any]) -> None:
    activate_requests: Dict[str, int] = {}

    for doc in documents:
        canonical = canonicalize_template_document(doc)
        try:
            role = validate_role(canonical["role"] or "")
            content = validate_template_content(canonical["content"])
        except ValidationError as e:
            report["templates"]["invalid"].append({"document": str(doc.get("_id", "?")), "error": e.detail})
            continue

        version = canonical["version"]
        if version is None:
            existing = _version_with_content(db, role, content)
            if existing is not None:
                report["templates"]["skipped_existing"].append(f"{role}@v{existing}")
                if canonical["isActive"]:
                    activate_requests[role] = max(existing, activate_requests.get(role, 0))
                continue
            version = (
                db.query(func.max(ContentTemplate.version)).filter(ContentTemplate.role == role).scalar() or 0
            ) + 1

        inserted = insert_if_absent(
            db,
            ContentTemplate,
            {
                "role": role,
                "version": version,
                "is_active": False,
                "content": content,
                "legacy_fields": extract_legacy_fields(doc),
                "revision": 1,
            },
            ["role", "version"],
        )
        bucket = "imported" if inserted else "skipped_existing"
        report["templates"][bucket].append(f"{role}@v{version}")
        if canonical["isActive"]:
            activate_requests[role] = max(version, activate_requests.get(role, 0))

    db.commit()

    # Legacy active flags only apply to roles that have nothing active yet.
    for role, version in sorted(activate_requests.items()):
        if resolve_active_template(db, role) is not None:
            continue
        if get_template(db, role, version) is not None:
            activate_template(db, role, version)
            report["templates"]["activated"].append(f"{role}@v{version}")


def import_user_data(
    db: Session,
    documents: Iterable[Dict[str, Any]],
    report: Dict[str, Any],
    user_id_map: Mapping[str, UUID],
) -> None:
    for doc in documents:
        legacy_user = doc.get("userId")
        user_id = _resolve_user(db, legacy_user, user_id_map)
        if user_id is None:
            report["user_data"]["skipped_unknown_user"].append(str(legacy_user))
            continue
        try:
            day_values, space_values = split_legacy_user_data(doc)
        except ValidationError as e:
            report["user_data"]["invalid"].append({"userId": str(legacy_user), "error": e.detail})
            continue

        label = f"{user_id}/{day_values['day'].isoformat()}"
        inserted = insert_if_absent(db, DayEntry, {"user_id": user_id, **day_values}, ["user_id", "day"])
        report["user_data"]["imported" if inserted else "skipped_existing"].append(label)

        if any(space_values.values()):
            if insert_if_absent(db, UserSpace, {"user_id": user_id, **space_values}, ["user_id"]):
                report["user_data"]["spaces_created"] += 1

    db.commit()


def import_legacy_export(
    db: Session,
    *,
    templates: Iterable[Dict[str, Any]] = (),
    user_data: Iterable[Dict[str, Any]] = (),
    user_id_map: Optional[Mapping[str, UUID]] = None,
) -> Dict[str, Any]:
    """
    Import legacy JSON exports. Safe to re-run; returns a report.

    `user_id_map` maps legacy user ids to app_user ids. Without an entry the
    legacy id is used directly when it is the UUID of an existing user.
    """
    report: Dict[str, Any] = {
        "templates": {"imported": [], "skipped_existing": [], "invalid": [], "activated": []},
        "user_data": {
            "imported": [],
            "skipped_existing": [],
            "skipped_unknown_user": [],
            "invalid": [],
            "spaces_created": 0,
        },
    }
    import_templates(db, templates, report)
    import_user_data(db, user_data, report, user_id_map or {})

    logger.info(
        f"Legacy import: {len(report['templates']['imported'])} templates, "
        f"{len(report['user_data']['imported'])} day entries",
        extra={"extra_fields": {
            "templates_imported": len(report["templates"]["imported"]),
            "templates_skipped": len(report["templates"]["skipped_existing"]),
            "days_imported": len(report["user_data"]["imported"]),
            "days_skipped": len(report["user_data"]["skipped_existing"]),
            "unknown_users": len(report["user_data"]["skipped_unknown_user"]),
        }},
    )
    return report
