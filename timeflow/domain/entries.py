"""
Entry Store - the collection of finished time entries.

Entries are appended by the session state machine and may later be edited or
deleted by the user. Overlaps introduced by edits are tolerated.
"""

import datetime
from typing import Callable, Iterable, Iterator, List, Optional

from timeflow.domain.models import BREAK_TASK_ID, TimeEntry
from timeflow.domain.session import seconds_between
from timeflow.utils import date_key, parse_clock


class EntryStore:
    """
    Ordered, in-memory collection of time entries.

    Ids are expected to be unique but this is not enforced; when duplicates
    exist, lookups by id resolve to the first one.
    """

    def __init__(self, entries: Optional[Iterable[TimeEntry]] = None):
        self._entries: List[TimeEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TimeEntry]:
        return iter(list(self._entries))

    def to_list(self) -> List[TimeEntry]:
        return list(self._entries)

    def append(self, entry: TimeEntry) -> TimeEntry:
        self._entries.append(entry)
        return entry

    def get(self, entry_id: str) -> Optional[TimeEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def edit(self, entry_id: str, start_clock: str, end_clock: str,
             task_id: str) -> Optional[TimeEntry]:
        """
        Edit an entry's clock times and task.

        The new HH:MM values replace the time of day of the original start and
        end instants; their calendar dates stay as they were. The ``date`` key
        is not recomputed, so an edited entry stays in its original day.

        Args:
            entry_id: Entry to edit
            start_clock: New start time, 'HH:MM'
            end_clock: New end time, 'HH:MM'
            task_id: New task id, or 'break'

        Returns:
            The edited entry, or None if no entry has this id

        Raises:
            ValueError: if a clock value cannot be parsed
        """
        start_hour, start_minute = parse_clock(start_clock)
        end_hour, end_minute = parse_clock(end_clock)

        for index, entry in enumerate(self._entries):
            if entry.id != entry_id:
                continue

            start = entry.start_time.replace(hour=start_hour, minute=start_minute,
                                             second=0, microsecond=0)
            end = entry.end_time.replace(hour=end_hour, minute=end_minute,
                                         second=0, microsecond=0)
            edited = entry.model_copy(update={
                "task_id": task_id,
                "is_break": task_id == BREAK_TASK_ID,
                "start_time": start,
                "end_time": end,
                "duration": seconds_between(start, end),
            })
            self._entries[index] = edited
            return edited

        return None

    def delete(self, entry_id: str) -> bool:
        """Remove an entry by id. Unknown ids are ignored."""
        remaining = [e for e in self._entries if e.id != entry_id]
        removed = len(remaining) != len(self._entries)
        self._entries = remaining
        return removed

    def query(self, predicate: Callable[[TimeEntry], bool]) -> Iterator[TimeEntry]:
        """Lazily yield entries matching the predicate"""
        return (e for e in list(self._entries) if predicate(e))

    def for_date(self, day: datetime.date) -> List[TimeEntry]:
        """Entries keyed to a calendar day, ordered by start time"""
        key = date_key(day)
        return sorted(self.query(lambda e: e.date == key), key=lambda e: e.start_time)

    def has_entries(self, day: datetime.date) -> bool:
        key = date_key(day)
        return any(e.date == key for e in self._entries)
