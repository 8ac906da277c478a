"""Data models for the schedule assistant."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, List, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_datetime(value: Any) -> Any:
    """Accept dates and date-only strings where a datetime is expected."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and len(value.strip()) == 10:
        return datetime.combine(date.fromisoformat(value.strip()), time.min)
    return value


def _to_local(value: Optional[datetime]) -> Optional[datetime]:
    """Calendar-day comparisons happen in local naive time."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class ScheduleEvent(BaseModel):
    """Calendar event as supplied by the UI layer. Read-only."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    date: datetime
    start_time: str = Field(default="", alias="startTime")
    end_time: str = Field(default="", alias="endTime")
    category: str = "other"
    priority: str = "medium"
    is_all_day: bool = Field(default=False, alias="isAllDay")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Union[str, int]) -> str:
        return str(v)

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _coerce_datetime(v)

    @field_validator('date', mode='after')
    @classmethod
    def localize_date(cls, v: datetime) -> datetime:
        return _to_local(v)


class ScheduleTask(BaseModel):
    """To-do task as supplied by the UI layer. Read-only."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    priority: str = "medium"
    completed: bool = False
    category: str = "other"
    estimated_time: Optional[int] = Field(default=None, alias="estimatedTime")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Union[str, int]) -> str:
        return str(v)

    @field_validator('due_date', mode='before')
    @classmethod
    def coerce_due_date(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return _coerce_datetime(v)

    @field_validator('due_date', mode='after')
    @classmethod
    def localize_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_local(v)


class ItemKind(Enum):
    """Source kind of a retrievable item."""
    EVENT = "event"
    TASK = "task"


class TemporalTag(Enum):
    """Position of an item relative to the current instant."""
    TODAY = "[TODAY]"
    UPCOMING = "[UPCOMING]"
    PAST = "[PAST]"
    GENERAL = "[GENERAL]"


@dataclass
class RetrievableItem:
    """One event or task normalized for ranking."""
    id: str
    kind: ItemKind
    title: str
    rendered_text: str
    tag: TemporalTag
    source_ref: Union[ScheduleEvent, ScheduleTask] = field(repr=False)
    iso_date: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    embedding: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @property
    def day(self) -> Optional[date]:
        """Calendar day of the item, None for undated tasks."""
        if not self.iso_date:
            return None
        return datetime.fromisoformat(self.iso_date).date()


@dataclass
class ScoredCandidate:
    """Ranking result for a single item. Lives for one query."""
    item: RetrievableItem
    score: float
    vector_score: float = 0.0
    lexical_score: float = 0.0
    recency_score: float = 0.0


@dataclass
class DiscussionStep:
    """One note in a multi-persona discussion transcript."""
    persona: str
    note: str


@dataclass
class AssistantReply:
    """
    Answer returned to the UI layer.

    ``answer`` is always a displayable string, including on fatal paths
    (then ``failed`` is set). The remaining fields are diagnostics.
    """
    answer: str
    persona: Optional[str] = None
    discussion: List[DiscussionStep] = field(default_factory=list)
    failed: bool = False
    total_found: Optional[int] = None
    context: List[str] = field(default_factory=list)
    queries: List[str] = field(default_factory=list)
    reflected: bool = False
