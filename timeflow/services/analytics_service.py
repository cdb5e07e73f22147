"""
Analytics Service - aggregates time entries into period statistics.

Architecture Decision: Recompute on demand
Personal use means small entry volumes, so every figure is recomputed from the
full entry list on each call. There is no cached or incremental state.
"""

import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, computed_field

from timeflow.domain.models import (
    BREAK_COLOR,
    BREAK_TASK_ID,
    UNKNOWN_TASK_COLOR,
    UNKNOWN_TASK_ID,
    ActiveSession,
    PeriodKind,
    Task,
    TimeEntry,
)
from timeflow.utils import (
    date_key,
    days_in_month,
    parse_date_key,
    period_key,
    shift_period,
    start_of_week,
)


class PeriodStats(BaseModel):
    """Totals for a set of entries. Break time is keyed under 'break'."""

    task_time: Dict[str, int] = Field(default_factory=dict)
    total_work: int = 0
    total_break: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.total_work + self.total_break


class HourlyBucket(BaseModel):
    work_seconds: int = 0
    break_seconds: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.work_seconds + self.break_seconds


class DailyBucket(BaseModel):
    date: datetime.date
    work_seconds: int = 0
    break_seconds: int = 0
    by_task: Dict[str, int] = Field(default_factory=dict)  # Work only

    @property
    def key(self) -> str:
        return date_key(self.date)

    @computed_field
    @property
    def total(self) -> int:
        return self.work_seconds + self.break_seconds


class TaskShare(BaseModel):
    task_id: str
    name: str
    color: str
    seconds: int
    percentage: float


class PeriodReport(BaseModel):
    """Everything the analytics view shows for one period"""

    period: PeriodKind
    selected_date: datetime.date
    stats: PeriodStats
    previous: PeriodStats
    work_trend: float
    break_trend: float
    work_percentage: float
    hourly: List[HourlyBucket]
    daily: List[DailyBucket]
    tasks: List[TaskShare]


def entries_for_period(selected_date: datetime.date, kind: PeriodKind,
                       entries: Iterable[TimeEntry]) -> List[TimeEntry]:
    """Entries whose ``date`` falls in the same day/week/month as selected_date"""
    target = period_key(selected_date, kind)
    return [e for e in entries if period_key(parse_date_key(e.date), kind) == target]


def compute_stats(period_entries: Iterable[TimeEntry]) -> PeriodStats:
    stats = PeriodStats()
    for entry in period_entries:
        if entry.is_break:
            stats.total_break += entry.duration
            key = BREAK_TASK_ID
        else:
            stats.total_work += entry.duration
            key = entry.task_id
        stats.task_time[key] = stats.task_time.get(key, 0) + entry.duration
    return stats


def previous_period_stats(selected_date: datetime.date, kind: PeriodKind,
                          entries: Iterable[TimeEntry]) -> PeriodStats:
    """Stats of the period right before the selected one, from the full entry set"""
    previous_date = shift_period(selected_date, kind, -1)
    return compute_stats(entries_for_period(previous_date, kind, entries))


def trend(current: int, previous: int) -> float:
    """
    Percentage change versus the previous period.

    Returns 0 when there is no previous value; display code should treat
    that case as "no trend" rather than "unchanged".
    """
    if previous > 0:
        return (current - previous) / previous * 100
    return 0.0


def hourly_distribution(period_entries: Iterable[TimeEntry]) -> List[HourlyBucket]:
    """
    Seconds of work and break per hour of day.

    An entry's whole duration counts towards the hour it started in, even
    when it runs past the end of that hour.
    """
    hours = [HourlyBucket() for _ in range(24)]
    for entry in period_entries:
        bucket = hours[entry.start_time.hour]
        if entry.is_break:
            bucket.break_seconds += entry.duration
        else:
            bucket.work_seconds += entry.duration
    return hours


def period_days(kind: PeriodKind, selected_date: datetime.date) -> List[datetime.date]:
    """Calendar days covered by the week or month containing selected_date"""
    if kind == PeriodKind.WEEK:
        first = start_of_week(selected_date)
        count = 7
    elif kind == PeriodKind.MONTH:
        first = datetime.date(selected_date.year, selected_date.month, 1)
        count = days_in_month(selected_date.year, selected_date.month)
    else:
        first = datetime.date(selected_date.year, selected_date.month, selected_date.day)
        count = 1
    return [first + datetime.timedelta(days=i) for i in range(count)]


def daily_breakdown(period_entries: Iterable[TimeEntry], kind: PeriodKind,
                    selected_date: datetime.date) -> List[DailyBucket]:
    """One bucket per day of the period, in calendar order"""
    buckets = {date_key(day): DailyBucket(date=day) for day in period_days(kind, selected_date)}

    for entry in period_entries:
        bucket = buckets.get(entry.date)
        if bucket is None:
            continue
        if entry.is_break:
            bucket.break_seconds += entry.duration
        else:
            bucket.work_seconds += entry.duration
            bucket.by_task[entry.task_id] = bucket.by_task.get(entry.task_id, 0) + entry.duration

    return list(buckets.values())


def _percentage(part: int, total: int) -> float:
    return part / total * 100 if total > 0 else 0.0


def work_percentage(stats: PeriodStats) -> float:
    return _percentage(stats.total_work, stats.total)


def task_breakdown(stats: PeriodStats, tasks: Iterable[Task]) -> List[TaskShare]:
    """
    Per-task shares of the period total.

    Known tasks come first in registry order, then time booked on deleted
    tasks (a single "unknown" bucket), then breaks. Zero rows are skipped.
    """
    shares: List[TaskShare] = []
    known = set()

    for task in tasks:
        known.add(task.id)
        seconds = stats.task_time.get(task.id, 0)
        if seconds > 0:
            shares.append(TaskShare(task_id=task.id, name=task.name, color=task.color,
                                    seconds=seconds, percentage=_percentage(seconds, stats.total)))

    unknown = sum(seconds for task_id, seconds in stats.task_time.items()
                  if task_id not in known and task_id != BREAK_TASK_ID)
    if unknown > 0:
        shares.append(TaskShare(task_id=UNKNOWN_TASK_ID, name="Unknown task", color=UNKNOWN_TASK_COLOR,
                                seconds=unknown, percentage=_percentage(unknown, stats.total)))

    breaks = stats.task_time.get(BREAK_TASK_ID, 0)
    if breaks > 0:
        shares.append(TaskShare(task_id=BREAK_TASK_ID, name="Breaks", color=BREAK_COLOR,
                                seconds=breaks, percentage=_percentage(breaks, stats.total)))

    return shares


def with_live_session(stats: PeriodStats, session: Optional[ActiveSession],
                      elapsed: int) -> PeriodStats:
    """Copy of stats that also counts the still running session"""
    live = stats.model_copy(deep=True)
    if session is None or elapsed <= 0:
        return live

    key = BREAK_TASK_ID if session.is_break else session.task_id
    if session.is_break:
        live.total_break += elapsed
    else:
        live.total_work += elapsed
    live.task_time[key] = live.task_time.get(key, 0) + elapsed
    return live


class AnalyticsService:
    """
    Builds period reports from a list of entries.

    Holds references only; every call recomputes from the current contents.
    """

    def __init__(self, entries: Iterable[TimeEntry], tasks: Iterable[Task]):
        self.entries = entries
        self.tasks = tasks

    def build_report(self, selected_date: datetime.date,
                     kind: PeriodKind = PeriodKind.DAY) -> PeriodReport:
        """
        Generate the report for the period containing selected_date.

        Args:
            selected_date: Any day inside the wanted period
            kind: Day, week or month

        Returns:
            PeriodReport with totals, trends and distributions
        """
        kind = PeriodKind(kind)
        if isinstance(selected_date, datetime.datetime):
            selected_date = selected_date.date()
        all_entries = list(self.entries)
        period_entries = entries_for_period(selected_date, kind, all_entries)

        stats = compute_stats(period_entries)
        previous = previous_period_stats(selected_date, kind, all_entries)

        return PeriodReport(
            period=kind,
            selected_date=selected_date,
            stats=stats,
            previous=previous,
            work_trend=trend(stats.total_work, previous.total_work),
            break_trend=trend(stats.total_break, previous.total_break),
            work_percentage=work_percentage(stats),
            hourly=hourly_distribution(period_entries),
            daily=daily_breakdown(period_entries, kind, selected_date),
            tasks=task_breakdown(stats, list(self.tasks)),
        )
