"""
Per-user settings and the effective content role.

Admins can switch their view to public content (the "view as public" toggle)
without changing their account role. Everyone else always sees the content
of their own role.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ForbiddenError, ValidationError
from models import User, UserSpace
from services.conditional_writes import insert_if_absent

logger = logging.getLogger(__name__)

VIEW_MODES = ("admin", "public")
DEFAULT_WAKE_TIME = "04:00"


def get_user_space(db: Session, user_id) -> Optional[UserSpace]:
    return db.query(UserSpace).filter(UserSpace.user_id == user_id).populate_existing().first()


def effective_role(db: Session, user: User) -> str:
    """Role whose template seeds and renders this user's days."""
    role = (user.role or "").strip().lower()
    if role == "admin":
        space = get_user_space(db, user.id)
        if space is not None and space.view_mode == "public":
            return "public"
    if role in settings.template_roles:
        return role
    return settings.DEFAULT_ROLE


def set_view_mode(db: Session, user: User, view_mode: str) -> UserSpace:
    if (user.role or "").lower() != "admin":
        raise ForbiddenError("Only admins can change the content view mode")
    if view_mode not in VIEW_MODES:
        raise ValidationError(f"Unknown view mode {view_mode!r}", field="view_mode")

    insert_if_absent(db, UserSpace, {"user_id": user.id}, ["user_id"])
    space = get_user_space(db, user.id)
    space.view_mode = view_mode
    db.commit()

    logger.info(
        f"Admin view mode set to {view_mode}",
        extra={"extra_fields": {"user_id": str(user.id), "view_mode": view_mode}},
    )
    return space


def effective_wake_time(db: Session, user_id, entry=None) -> str:
    """The day's own wake time, else the user's default, else DEFAULT_WAKE_TIME."""
    if entry is not None and entry.wake_time:
        return entry.wake_time
    space = get_user_space(db, user_id)
    if space is not None and space.wake_time:
        return space.wake_time
    return DEFAULT_WAKE_TIME
