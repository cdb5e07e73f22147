"""Domain layer - Pure business entities and logic"""

from .models import (
    ActiveSession,
    PeriodKind,
    SessionStatus,
    Snapshot,
    Task,
    TimeEntry,
    UserPreferences,
)

__all__ = [
    "ActiveSession",
    "PeriodKind",
    "SessionStatus",
    "Snapshot",
    "Task",
    "TimeEntry",
    "UserPreferences",
]
