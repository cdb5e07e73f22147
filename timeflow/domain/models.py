"""
Domain Models using Pydantic for validation.

Architecture Decision: Why Pydantic?
Pydantic provides runtime data validation, ensuring data integrity when loading
snapshots from storage. It also provides easy serialization/deserialization.

Snapshots are stored with camelCase keys (``taskId``, ``isBreak``, ...), while
Python code uses snake_case attributes. Both spellings are accepted on input,
as is the older active session layout ``{task, isBreak, startTime,
workStartTime}``. Instants with an offset (``...Z``) are converted to naive
local time.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


BREAK_TASK_ID = "break"
UNKNOWN_TASK_ID = "unknown"

TASK_COLORS = [
    "#635BFF", "#00D4FF", "#0ACF83", "#F59E0B", "#EF4444",
    "#8B5CF6", "#EC4899", "#06B6D4", "#84CC16", "#F97316",
    "#14B8A6", "#6366F1", "#F43F5E", "#22C55E", "#3B82F6",
]
BREAK_COLOR = "#94A3B8"
UNKNOWN_TASK_COLOR = "#CBD5E1"


def new_id() -> str:
    """Generate a unique identifier for tasks and entries"""
    return uuid.uuid4().hex


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an offset-aware instant to naive local time"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class PeriodKind(str, Enum):
    """Aggregation window"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class SessionStatus(str, Enum):
    """State of the session state machine"""
    IDLE = "idle"
    WORKING = "working"
    ON_BREAK = "on_break"


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Task(_SnapshotModel):
    """
    Represents a trackable task.

    Examples: "Development", "Meetings", "Admin"
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    color: str = TASK_COLORS[0]

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Task name must not be blank")
        return value


class TimeEntry(_SnapshotModel):
    """
    A closed interval of work on a task, or of break.

    Entries are frozen; edits produce a new instance via ``model_copy``.
    ``date`` is the day key of ``start_time`` at creation time.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    task_id: str
    is_break: bool = False
    start_time: datetime
    end_time: datetime
    duration: int = Field(default=0, ge=0)  # Whole seconds
    date: str

    @field_validator("start_time", "end_time")
    @classmethod
    def local_times(cls, value: datetime) -> datetime:
        return to_local_naive(value)


class ActiveSession(_SnapshotModel):
    """
    The in-progress, not yet closed interval of work or break.

    ``work_start_time`` is the first work start of the current working day.
    It survives break cycles and is cleared when the day is finished.
    """

    task_id: str = Field(
        validation_alias=AliasChoices("taskId", "task_id", "task"),
        serialization_alias="taskId",
    )
    is_break: bool = False
    session_start_time: datetime = Field(
        validation_alias=AliasChoices("sessionStartTime", "session_start_time", "startTime"),
        serialization_alias="sessionStartTime",
    )
    work_start_time: Optional[datetime] = None

    @field_validator("session_start_time", "work_start_time")
    @classmethod
    def local_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(value)

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.ON_BREAK if self.is_break else SessionStatus.WORKING


class Snapshot(_SnapshotModel):
    """Everything that is persisted between runs"""

    tasks: List[Task] = Field(default_factory=list)
    entries: List[TimeEntry] = Field(default_factory=list)
    active_session: Optional[ActiveSession] = None


class UserPreferences(BaseModel):
    """
    User configuration and preferences.

    This allows users to customize behavior without touching code.
    """
    model_config = ConfigDict(from_attributes=True)

    # Tracking
    tick_interval_seconds: float = Field(
        default=1.0, gt=0, description="Refresh interval of the running clock"
    )
    seed_default_tasks: bool = Field(
        default=True, description="Create example tasks on first run"
    )

    # Analytics
    default_period: PeriodKind = Field(default=PeriodKind.DAY, description="Initial analytics period")


def default_tasks() -> List[Task]:
    """Example tasks created on first run"""
    return [
        Task(id="1", name="Development", color=TASK_COLORS[0]),
        Task(id="2", name="Meetings", color=TASK_COLORS[1]),
        Task(id="3", name="Admin", color=TASK_COLORS[2]),
    ]
