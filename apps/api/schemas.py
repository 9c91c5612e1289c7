from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List, Dict, Any, Literal


# --- Template content ---------------------------------------------------

class ChecklistItemTemplate(BaseModel):
    """Checklist item as defined in a template. `id` is the stable identifier."""
    id: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., max_length=500)
    category: str = Field(default="general", max_length=50)
    order: Optional[int] = None


class TimeBlockTemplate(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    time: str = Field(..., max_length=20)  # display label, e.g. "4:00 AM"
    label: str = Field(..., max_length=200)
    activities: List[str] = Field(default_factory=list)
    order: Optional[int] = None
    duration: int = Field(default=60, ge=1, le=24 * 60)  # minutes


class TemplateContent(BaseModel):
    masterChecklist: List[ChecklistItemTemplate] = Field(default_factory=list)
    habitBreakChecklist: List[ChecklistItemTemplate] = Field(default_factory=list)
    workoutChecklist: List[ChecklistItemTemplate] = Field(default_factory=list)
    timeBlocks: List[TimeBlockTemplate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _ids_unique_per_list(self):
        for name in ("masterChecklist", "habitBreakChecklist", "workoutChecklist", "timeBlocks"):
            seen = set()
            for entry in getattr(self, name):
                if entry.id in seen:
                    raise ValueError(f"duplicate id '{entry.id}' in {name}")
                seen.add(entry.id)
        return self


class ContentTemplateCreate(BaseModel):
    role: str
    content: TemplateContent
    activate: bool = False
    reason: Optional[str] = Field(default=None, description="Why this version was created (audited)")


class ActivateTemplateRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Why this version was activated (audited)")


class ContentTemplateResponse(BaseModel):
    id: UUID
    role: str
    version: int
    is_active: bool
    content: Dict[str, Any]
    revision: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ActiveContentResponse(BaseModel):
    """Content shown to the caller, with the role actually used to pick it."""
    content: Dict[str, Any]
    version: int
    user_role: str
    effective_role: str


# --- Day entries --------------------------------------------------------

class ChecklistItem(BaseModel):
    id: str
    text: str
    category: str = "general"
    order: Optional[int] = None
    completed: bool = False
    completedAt: Optional[str] = None
    dueDate: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class TimeBlock(BaseModel):
    id: str
    time: str
    label: str
    activities: List[str] = Field(default_factory=list)
    order: Optional[int] = None
    duration: int = 60
    complete: bool = False
    notes: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class DayEntryResponse(BaseModel):
    id: UUID
    user_id: UUID
    day: date
    master_checklist: List[ChecklistItem]
    habit_break_checklist: List[ChecklistItem]
    workout_checklist: List[ChecklistItem]
    time_blocks: List[TimeBlock]
    todo_list: List[ChecklistItem]
    notes: str = ""
    wake_time: Optional[str] = None
    template_version: Optional[int] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ListProgress(BaseModel):
    completed: int
    total: int


class CompletionSummary(BaseModel):
    lists: Dict[str, ListProgress]
    completed: int
    total: int
    score: int  # 0-100, rounded


class DayView(BaseModel):
    entry: DayEntryResponse
    summary: CompletionSummary
    effective_role: str
    wake_time: str  # the day's own, else the user default


class TodoCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)
    category: str = Field(default="todo", max_length=50)
    due_date: Optional[date] = None


class BlockNoteCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)


class NotesUpdate(BaseModel):
    notes: str = Field(default="", max_length=20000)


class WakeTimeUpdate(BaseModel):
    wake_time: str = Field(..., max_length=8)  # "HH:MM", 24h


# --- Admin --------------------------------------------------------------

class ViewModeUpdate(BaseModel):
    view_mode: Literal["admin", "public"]


class ReconcileRequest(BaseModel):
    dry_run: bool = False
    promote_latest: bool = Field(
        default=False,
        description="For roles with no active template, activate the highest version",
    )
    reason: Optional[str] = None
