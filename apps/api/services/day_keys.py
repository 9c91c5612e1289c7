"""
Input guards shared by the hydration and day-entry services.

Both run before any store access so malformed requests never touch the
database.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Union

from core.config import settings
from core.exceptions import ValidationError

DAY_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_day_key(value: Union[str, date]) -> date:
    """
    Parse a calendar-day key (YYYY-MM-DD, no time component).

    `date` instances pass through; `datetime` is rejected because it carries
    a time component and an implied timezone.
    """
    if isinstance(value, datetime):
        raise ValidationError("Day key must not include a time component", field="date")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DAY_KEY_PATTERN.match(value.strip()):
        raise ValidationError(f"Invalid day key {value!r}; expected YYYY-MM-DD", field="date")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"Invalid calendar date {value!r}", field="date")


def format_day_key(day: date) -> str:
    return day.isoformat()


def validate_role(role: str) -> str:
    """Return the normalized role or raise if no template may exist for it."""
    normalized = (role or "").strip().lower()
    if normalized not in settings.template_roles:
        raise ValidationError(
            f"Unknown role {role!r}; expected one of {settings.template_roles}",
            field="role",
        )
    return normalized


WAKE_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_wake_time(value: str) -> str:
    """Validate a 24h wake time and zero-pad it: "4:30" -> "04:30"."""
    match = WAKE_TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid wake time {value!r}; expected HH:MM (24h)", field="wake_time")
    return f"{int(match.group(1)):02d}:{match.group(2)}"
