"""
Day entry mutations.

Every mutation hydrates the day first (so a toggle on a never-opened day
acts on the seeded copy), then re-reads the row under a per-entry lock and
rewrites the affected JSON list. Locking is scoped to one (user, day) row.
"""

from __future__ import annotations

import copy
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from core.exceptions import NotFoundError, ValidationError
from models import DayEntry
from services.day_keys import parse_day_key, parse_wake_time, validate_role
from services.hydration import hydrate

logger = logging.getLogger(__name__)

# Accepted list names (API uses camelCase, matching template content keys).
LIST_COLUMNS = {
    "masterChecklist": "master_checklist",
    "habitBreakChecklist": "habit_break_checklist",
    "workoutChecklist": "workout_checklist",
    "todoList": "todo_list",
}
LIST_COLUMNS.update({column: column for column in list(LIST_COLUMNS.values())})


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def resolve_list_column(list_name: str) -> str:
    column = LIST_COLUMNS.get(list_name)
    if column is None:
        raise ValidationError(
            f"Unknown checklist {list_name!r}; expected one of "
            f"masterChecklist, habitBreakChecklist, workoutChecklist, todoList",
            field="list_name",
        )
    return column


def _locked_entry(db: Session, user_id: UUID, role: str, day: date) -> DayEntry:
    entry = hydrate(db, user_id, role, day)
    return (
        db.query(DayEntry)
        .filter(DayEntry.id == entry.id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def _store(entry: DayEntry, column: str, value: Any) -> None:
    setattr(entry, column, value)
    flag_modified(entry, column)


def toggle_checklist_item(
    db: Session,
    user_id: UUID,
    role: str,
    day: Union[str, date],
    list_name: str,
    item_id: str,
) -> Dict[str, Any]:
    """Flip an item's completion state. Returns the updated item."""
    column = resolve_list_column(list_name)
    day = parse_day_key(day)
    role = validate_role(role)

    entry = _locked_entry(db, user_id, role, day)
    items = copy.deepcopy(getattr(entry, column) or [])
    for item in items:
        if item.get("id") == item_id:
            done = not bool(item.get("completed", False))
            item["completed"] = done
            item["completedAt"] = _utc_now_iso() if done else None
            break
    else:
        db.rollback()
        raise NotFoundError("Checklist item", f"{list_name}/{item_id}")

    _store(entry, column, items)
    db.commit()
    return item


def toggle_time_block(db: Session, user_id: UUID, role: str, day: Union[str, date], block_id: str) -> Dict[str, Any]:
    day = parse_day_key(day)
    role = validate_role(role)

    entry = _locked_entry(db, user_id, role, day)
    blocks = copy.deepcopy(entry.time_blocks or [])
    for block in blocks:
        if block.get("id") == block_id:
            block["complete"] = not bool(block.get("complete", False))
            break
    else:
        db.rollback()
        raise NotFoundError("Time block", block_id)

    _store(entry, "time_blocks", blocks)
    db.commit()
    return block


def add_block_note(
    db: Session,
    user_id: UUID,
    role: str,
    day: Union[str, date],
    block_id: str,
    text: str,
) -> Dict[str, Any]:
    note = (text or "").strip()
    if not note:
        raise ValidationError("Note text must not be empty", field="text")
    day = parse_day_key(day)
    role = validate_role(role)

    entry = _locked_entry(db, user_id, role, day)
    blocks = copy.deepcopy(entry.time_blocks or [])
    for block in blocks:
        if block.get("id") == block_id:
            block.setdefault("notes", []).append(note)
            break
    else:
        db.rollback()
        raise NotFoundError("Time block", block_id)

    _store(entry, "time_blocks", blocks)
    db.commit()
    return block


def add_todo(
    db: Session,
    user_id: UUID,
    role: str,
    day: Union[str, date],
    text: str,
    *,
    category: str = "todo",
    due_date: Optional[date] = None,
) -> Dict[str, Any]:
    """Append a user-authored item to the day's todo list."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Todo text must not be empty", field="text")
    day = parse_day_key(day)
    role = validate_role(role)

    entry = _locked_entry(db, user_id, role, day)
    todos: List[Dict[str, Any]] = copy.deepcopy(entry.todo_list or [])
    item = {
        "id": f"todo-{uuid4().hex[:12]}",
        "text": text,
        "category": category or "todo",
        "completed": False,
        "completedAt": None,
        "dueDate": due_date.isoformat() if due_date else None,
    }
    todos.append(item)
    _store(entry, "todo_list", todos)
    db.commit()
    return item


def remove_todo(db: Session, user_id: UUID, role: str, day: Union[str, date], item_id: str) -> None:
    day = parse_day_key(day)
    role = validate_role(role)

    entry = _locked_entry(db, user_id, role, day)
    todos = [t for t in (entry.todo_list or []) if t.get("id") != item_id]
    if len(todos) == len(entry.todo_list or []):
        db.rollback()
        raise NotFoundError("Todo item", item_id)

    _store(entry, "todo_list", copy.deepcopy(todos))
    db.commit()


def update_notes(db: Session, user_id: UUID, role: str, day: Union[str, date], notes: str) -> DayEntry:
    day = parse_day_key(day)
    role = validate_role(role)

    entry = _locked_entry(db, user_id, role, day)
    entry.notes = notes or ""
    db.commit()
    return entry


def set_wake_time(db: Session, user_id: UUID, role: str, day: Union[str, date], wake_time: str) -> DayEntry:
    """Set this day's wake time ("HH:MM", 24h). Other days keep theirs."""
    day = parse_day_key(day)
    role = validate_role(role)
    wake_time = parse_wake_time(wake_time)

    entry = _locked_entry(db, user_id, role, day)
    entry.wake_time = wake_time
    db.commit()
    return entry


def completion_summary(entry: DayEntry) -> Dict[str, Any]:
    """Per-list completed/total counts and an overall 0-100 score."""
    lists = {
        "masterChecklist": entry.master_checklist or [],
        "habitBreakChecklist": entry.habit_break_checklist or [],
        "workoutChecklist": entry.workout_checklist or [],
        "todoList": entry.todo_list or [],
    }
    progress = {
        name: {"completed": sum(1 for i in items if i.get("completed")), "total": len(items)}
        for name, items in lists.items()
    }
    blocks = entry.time_blocks or []
    progress["timeBlocks"] = {
        "completed": sum(1 for b in blocks if b.get("complete")),
        "total": len(blocks),
    }

    completed = sum(p["completed"] for p in progress.values())
    total = sum(p["total"] for p in progress.values())
    # Half-up rounding, so 2/3 -> 67 and 1/8 -> 13.
    score = int(math.floor(completed * 100 / total + 0.5)) if total else 0
    return {"lists": progress, "completed": completed, "total": total, "score": score}
