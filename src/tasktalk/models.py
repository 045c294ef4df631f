from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from dates.normalizer import is_canonical_date
from tasktalk.text import sanitize_plain_text

Priority = Literal["low", "medium", "high"]
RecurrenceType = Literal["daily", "weekly", "monthly"]
CreatedBy = Literal["user", "ai"]
Reason = Literal[
    "invalid",
    "invalid-date",
    "duplicate",
    "locked",
    "not-found",
    "ambiguous",
    "no-match",
]

DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY = "general"


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecurrenceRule(CamelModel):
    type: RecurrenceType
    interval: int = Field(1, ge=1)
    # 0 = Sunday ... 6 = Saturday
    day_of_week: Optional[int] = Field(None, ge=0, le=6)


class Subtask(CamelModel):
    id: str = Field(default_factory=new_id)
    text: str = Field(..., min_length=1)
    completed: bool = False
    completed_at: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v2 = sanitize_plain_text(v)
        if not v2:
            raise ValueError("subtask text must not be blank")
        return v2

    @model_validator(mode="after")
    def completion_consistent(self) -> "Subtask":
        if not self.completed and self.completed_at is not None:
            raise ValueError("completed_at must be empty while the subtask is open")
        return self


class Task(CamelModel):
    id: str = Field(default_factory=new_id)
    text: str = Field(..., min_length=1)
    priority: Priority = DEFAULT_PRIORITY
    due_date: Optional[str] = None
    category: str = DEFAULT_CATEGORY

    completed: bool = False
    completed_at: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    created_by: CreatedBy = "user"

    notes: str = ""
    recurring: Optional[RecurrenceRule] = None
    subtasks: List[Subtask] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v2 = sanitize_plain_text(v)
        if not v2:
            raise ValueError("text must not be blank")
        return v2

    @field_validator("category")
    @classmethod
    def category_or_default(cls, v: str) -> str:
        return sanitize_plain_text(v).lower() or DEFAULT_CATEGORY

    @field_validator("due_date")
    @classmethod
    def due_date_canonical(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_canonical_date(v):
            raise ValueError(f"due_date must be a valid YYYY-MM-DD date, got {v!r}")
        return v

    @model_validator(mode="after")
    def completion_consistent(self) -> "Task":
        if not self.completed and self.completed_at is not None:
            raise ValueError("completed_at must be empty while the task is open")
        if self.completed and self.completed_at is None:
            raise ValueError("completed tasks need completed_at")
        return self


class TaskPayload(CamelModel):
    """Fields parsed or supplied for a task that does not exist yet.

    None means "not specified". `due_date` keeps the raw value so a caller can
    tell an unparseable date apart from an absent one.
    """

    text: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Any = None
    category: Optional[str] = None
    notes: Optional[str] = None
    recurring: Optional[RecurrenceRule] = None
    created_by: Optional[CreatedBy] = None


class TaskRef(CamelModel):
    id: str
    text: str
    priority: Priority
    due_date: Optional[str] = None

    @classmethod
    def of(cls, task: Task) -> "TaskRef":
        return cls(id=task.id, text=task.text, priority=task.priority, due_date=task.due_date)


class MatchCandidate(CamelModel):
    task: Task
    score: float
    intersection_count: int


class TaskStatistics(CamelModel):
    total: int = 0
    pending: int = 0
    completed: int = 0
    overdue: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    completion_rate: int = 0


class CommandResult(CamelModel):
    success: bool
    reason: Optional[Reason] = None
    intent: Optional[str] = None
    message: Optional[str] = None
    task: Optional[Task] = None
    task_name: Optional[str] = None
    multiple_matches: bool = False
    matches: List[TaskRef] = Field(default_factory=list)
    created: List[Task] = Field(default_factory=list)
    items: List[TaskRef] = Field(default_factory=list)
    statistics: Optional[TaskStatistics] = None
    # the full list after the command; hosts swap it in on success
    tasks: List[Task] = Field(default_factory=list, exclude=True)
