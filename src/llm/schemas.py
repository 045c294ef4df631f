from __future__ import annotations
from typing import Optional, List
from pydantic import AliasChoices, BaseModel, Field, field_validator

from classification.priority import parse_priority_word


class ExtractedTask(BaseModel):
    text: str = Field(..., min_length=1, validation_alias=AliasChoices("text", "title", "task"))
    priority: Optional[str] = None
    due_date: Optional[str] = Field(None, validation_alias=AliasChoices("due_date", "dueDate", "deadline"))
    category: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("text must not be blank")
        return v2

    @field_validator("priority")
    @classmethod
    def priority_level(cls, v: Optional[str]) -> Optional[str]:
        # models answer "urgent" or "asap" as often as "high"
        return parse_priority_word(v)

    @field_validator("category")
    @classmethod
    def category_lower(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return v.strip().lower() or None


class TaskExtractionResult(BaseModel):
    tasks: List[ExtractedTask] = Field(default_factory=list)
