"""
Starter content for roles that have no template yet.

Used by `seed_default_templates` (admin "init content" action and the
seed_templates operator script).
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

FIRST_BLOCK_HOUR = 4  # 4:00 AM
BLOCK_COUNT = 18      # through 9:00 PM

_MASTER_ITEMS: List[Tuple[str, str, str]] = [
    ("morning-1", "morning", "Morning meditation/planning"),
    ("morning-2", "morning", "Review daily priorities"),
    ("work-1", "work", "Deep focus session 1"),
    ("work-2", "work", "Check and respond to messages"),
    ("work-3", "work", "Deep focus session 2"),
    ("tech-1", "tech", "Update project documentation"),
    ("tech-2", "tech", "Code review or technical task"),
    ("house-1", "house", "Tidy living space"),
    ("house-2", "house", "Plan tomorrow's meals"),
    ("wrapup-1", "wrapup", "Review day's accomplishments"),
    ("wrapup-2", "wrapup", "Prepare for tomorrow"),
]

_HABIT_BREAK_ITEMS: List[Tuple[str, str, str]] = [
    ("break-1", "lsd", "Avoid mindless social media"),
    ("break-2", "financial", "No unnecessary purchases"),
    ("break-3", "entertainment", "Limit entertainment consumption"),
    ("break-4", "time", "Avoid procrastination"),
    ("break-5", "lsd", "No negative self-talk"),
]

_WORKOUT_ITEMS: List[Tuple[str, str, str]] = [
    ("cardio-1", "cardio", "30 min cardio session"),
    ("strength-1", "strength", "Upper body strength training"),
    ("strength-2", "strength", "Lower body strength training"),
    ("stretch-1", "stretching", "Full body stretching"),
    ("yoga-1", "yoga", "Yoga or mobility work"),
    ("walk-1", "walking", "10,000+ steps or walk"),
]

# Admins also track the upkeep of the product itself.
_ADMIN_EXTRA_MASTER_ITEMS: List[Tuple[str, str, str]] = [
    ("admin-1", "work", "Review template feedback"),
    ("admin-2", "tech", "Check reconciliation report"),
]


def format_hour_label(hour: int) -> str:
    """24h hour -> "4:00 AM" style label."""
    hour = hour % 24
    hour12 = 12 if hour % 12 == 0 else hour % 12
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour12}:00 {suffix}"


def _period_label(hour: int) -> str:
    if 4 <= hour < 6:
        return "Early Morning"
    if 6 <= hour < 9:
        return "Morning"
    if 9 <= hour < 12:
        return "Late Morning"
    if 12 <= hour < 14:
        return "Midday"
    if 14 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 20:
        return "Evening"
    if 20 <= hour < 22:
        return "Night"
    return "Late Night"


def default_time_blocks(first_hour: int = FIRST_BLOCK_HOUR, count: int = BLOCK_COUNT) -> List[Dict[str, Any]]:
    blocks = []
    for i in range(count):
        hour = (first_hour + i) % 24
        blocks.append({
            "id": f"block-{i + 1}",
            "time": format_hour_label(hour),
            "label": f"{_period_label(hour)} Block {i + 1}",
            "activities": [],
            "order": i + 1,
            "duration": 60,
        })
    return blocks


def _items(rows: List[Tuple[str, str, str]]) -> List[Dict[str, Any]]:
    return [
        {"id": item_id, "text": text, "category": category, "order": i + 1}
        for i, (item_id, category, text) in enumerate(rows)
    ]


def default_template_content(role: str) -> Dict[str, Any]:
    master = list(_MASTER_ITEMS)
    if role == "admin":
        master += _ADMIN_EXTRA_MASTER_ITEMS
    return {
        "masterChecklist": _items(master),
        "habitBreakChecklist": _items(_HABIT_BREAK_ITEMS),
        "workoutChecklist": _items(_WORKOUT_ITEMS),
        "timeBlocks": default_time_blocks(),
    }
