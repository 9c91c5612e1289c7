"""
Hydration Service

Materializes a user's day from the active content template the first time
that day is accessed, then hands ownership to the user.

Rules:
1. An existing DayEntry for (user, day) is the source of truth and is
   returned untouched; template changes never reach it.
2. Otherwise the active template for the role is copied: checklist items
   start incomplete, time blocks start open, identifiers are preserved.
3. The copy is persisted with insert-if-absent on (user_id, day). A caller
   that loses the race re-reads and returns the winner's row, so every
   concurrent first access observes the same seeded state.

A role with no active template is a ConfigurationError and persists
nothing.
"""

from __future__ import annotations

import copy
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import StorageError
from models import DayEntry
from services.conditional_writes import call_with_storage_retry, insert_if_absent
from services.day_keys import parse_day_key, validate_role
from services.template_store import CHECKLIST_KEYS, TIME_BLOCKS_KEY, get_active_template

logger = logging.getLogger(__name__)

# Template content key -> DayEntry column
CHECKLIST_COLUMNS = {
    "masterChecklist": "master_checklist",
    "habitBreakChecklist": "habit_break_checklist",
    "workoutChecklist": "workout_checklist",
}


def seed_checklist_items(items: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Template checklist items -> fresh per-day copies (all incomplete)."""
    seeded = []
    for item in items or []:
        copied = copy.deepcopy(item)
        copied["completed"] = False
        copied["completedAt"] = None
        seeded.append(copied)
    return seeded


def seed_time_blocks(blocks: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Template time blocks -> fresh per-day copies (open, no notes)."""
    seeded = []
    for block in blocks or []:
        copied = copy.deepcopy(block)
        copied.setdefault("activities", [])
        copied["complete"] = False
        copied["notes"] = []
        seeded.append(copied)
    return seeded


def build_day_entry_values(user_id: UUID, day: date, template: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for a DayEntry seeded from a template snapshot."""
    content = template.get("content") or {}
    values: Dict[str, Any] = {
        "user_id": user_id,
        "day": day,
        "time_blocks": seed_time_blocks(content.get(TIME_BLOCKS_KEY)),
        "todo_list": [],
        "notes": "",
        "template_id": UUID(str(template["id"])),
        "template_version": template["version"],
    }
    for key in CHECKLIST_KEYS:
        values[CHECKLIST_COLUMNS[key]] = seed_checklist_items(content.get(key))
    return values


def find_day_entry(db: Session, user_id: UUID, day: date) -> Optional[DayEntry]:
    return (
        db.query(DayEntry)
        .filter(DayEntry.user_id == user_id, DayEntry.day == day)
        .populate_existing()
        .first()
    )


def hydrate(db: Session, user_id: UUID, role: str, day: Union[str, date]) -> DayEntry:
    """
    Return the DayEntry for (user_id, day), seeding it from the role's active
    template on first access.

    A first access commits `db`, so anything else already pending on the
    session is committed with the seed. Callers that need the seed kept
    apart from their own writes must flush or commit those first. Reading an
    existing day does not commit.

    Raises:
        ValidationError: malformed role or day (before any store access)
        ConfigurationError: no active template for the role
        StorageError: data store unavailable after one retry
    """
    day = parse_day_key(day)
    role = validate_role(role)

    def _load_or_seed() -> DayEntry:
        existing = find_day_entry(db, user_id, day)
        if existing is not None:
            return existing

        template = get_active_template(db, role)
        values = build_day_entry_values(user_id, day, template)
        inserted = insert_if_absent(db, DayEntry, values, ["user_id", "day"])
        db.commit()

        entry = find_day_entry(db, user_id, day)
        if entry is None:
            # Insert reported success or conflict, yet nothing is readable.
            raise StorageError(f"Day entry for {day.isoformat()} vanished after seeding")

        if inserted:
            logger.info(
                f"Seeded day {day.isoformat()} from {role} template v{template['version']}",
                extra={"extra_fields": {
                    "user_id": str(user_id),
                    "day": day.isoformat(),
                    "role": role,
                    "template_version": template["version"],
                }},
            )
        else:
            logger.info(
                f"Lost first-hydration race for day {day.isoformat()}; using existing entry",
                extra={"extra_fields": {"user_id": str(user_id), "day": day.isoformat()}},
            )
        return entry

    return call_with_storage_retry(db, _load_or_seed, description="hydrate day entry")
