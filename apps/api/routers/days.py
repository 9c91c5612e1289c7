"""
Day Entry API Router

A user's tracked day. The first GET of a day seeds it from the active
template of the caller's effective role; every mutation works on that
seeded copy (hydrating first when the day was never opened).
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import Any, Dict

from core.database import get_db
from core.auth import get_current_user
from models import User
from schemas import BlockNoteCreate, DayEntryResponse, DayView, NotesUpdate, TodoCreate, WakeTimeUpdate
from services import day_entries
from services.day_keys import parse_day_key
from services.hydration import hydrate
from services.user_spaces import effective_role, effective_wake_time

router = APIRouter(prefix="/v1/days", tags=["Days"])


def _day_view(db: Session, entry, role: str) -> Dict[str, Any]:
    return {
        "entry": DayEntryResponse.model_validate(entry),
        "summary": day_entries.completion_summary(entry),
        "effective_role": role,
        "wake_time": effective_wake_time(db, entry.user_id, entry),
    }


@router.get("/{day}", response_model=DayView)
def get_day(
    day: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get the day's checklists, time blocks, todos and notes.

    Seeds the day from the active template on first access.
    """
    parsed = parse_day_key(day)
    role = effective_role(db, current_user)
    entry = hydrate(db, current_user.id, role, parsed)
    return _day_view(db, entry, role)


@router.post("/{day}/checklists/{list_name}/{item_id}/toggle")
def toggle_checklist_item(
    day: str,
    list_name: str,
    item_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed = parse_day_key(day)
    item = day_entries.toggle_checklist_item(
        db, current_user.id, effective_role(db, current_user), parsed, list_name, item_id
    )
    return {"item": item}


@router.post("/{day}/blocks/{block_id}/toggle")
def toggle_time_block(
    day: str,
    block_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed = parse_day_key(day)
    block = day_entries.toggle_time_block(db, current_user.id, effective_role(db, current_user), parsed, block_id)
    return {"block": block}


@router.post("/{day}/blocks/{block_id}/notes", status_code=status.HTTP_201_CREATED)
def add_block_note(
    day: str,
    block_id: str,
    note: BlockNoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed = parse_day_key(day)
    block = day_entries.add_block_note(
        db, current_user.id, effective_role(db, current_user), parsed, block_id, note.text
    )
    return {"block": block}


@router.post("/{day}/todos", status_code=status.HTTP_201_CREATED)
def add_todo(
    day: str,
    todo: TodoCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed = parse_day_key(day)
    item = day_entries.add_todo(
        db,
        current_user.id,
        effective_role(db, current_user),
        parsed,
        todo.text,
        category=todo.category,
        due_date=todo.due_date,
    )
    return {"item": item}


@router.delete("/{day}/todos/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_todo(
    day: str,
    item_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed = parse_day_key(day)
    day_entries.remove_todo(db, current_user.id, effective_role(db, current_user), parsed, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{day}/notes", response_model=DayView)
def update_notes(
    day: str,
    body: NotesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    parsed = parse_day_key(day)
    role = effective_role(db, current_user)
    entry = day_entries.update_notes(db, current_user.id, role, parsed, body.notes)
    return _day_view(db, entry, role)


@router.put("/{day}/wake-time", response_model=DayView)
def set_wake_time(
    day: str,
    body: WakeTimeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Set the wake time for this day only."""
    parsed = parse_day_key(day)
    role = effective_role(db, current_user)
    entry = day_entries.set_wake_time(db, current_user.id, role, parsed, body.wake_time)
    return _day_view(db, entry, role)
