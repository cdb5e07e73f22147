"""
Tracker Service - Core time tracking logic.

Architecture Decision: Observer Pattern (callbacks)
The service notifies registered listeners when the running clock changes,
keeping it decoupled from any UI.

The service owns the whole tracker state (tasks, entries, active session).
Every mutation is applied in memory first and then the complete snapshot is
handed to the injected store. A failed save is logged and never rolls back
the in-memory state.
"""

import asyncio
import contextlib
import datetime
import logging
from typing import Callable, List, Optional

from timeflow.domain import session as machine
from timeflow.domain.entries import EntryStore
from timeflow.domain.models import (
    ActiveSession,
    PeriodKind,
    SessionStatus,
    Snapshot,
    Task,
    TimeEntry,
    UserPreferences,
    default_tasks,
)
from timeflow.domain.tasks import TaskRegistry
from timeflow.infra.config import Settings, get_settings
from timeflow.infra.db import init_db
from timeflow.infra.repository import BaseSnapshotStore, KeyValueRepository, SnapshotRepository
from timeflow.services.analytics_service import (
    AnalyticsService,
    PeriodReport,
    PeriodStats,
    compute_stats,
    entries_for_period,
    with_live_session,
)
from timeflow.services.calendar_service import CalendarService
from timeflow.utils import format_clock

logger = logging.getLogger(__name__)

TickListener = Callable[[str, int], None]  # (formatted_time, elapsed_seconds)


class TrackerService:
    """
    The time tracking engine. Manages state but knows nothing about the UI.

    Session transitions are permissive: calling them in an unexpected order
    never raises, it only skips closing a session that is not open.
    """

    def __init__(self, store: BaseSnapshotStore,
                 clock: Callable[[], datetime.datetime] = datetime.datetime.now,
                 preferences: Optional[UserPreferences] = None):
        self.store = store
        self.clock = clock
        self.preferences = preferences or UserPreferences()

        self.tasks = TaskRegistry()
        self.entries = EntryStore()
        self.session: Optional[ActiveSession] = None
        self.is_loaded = False

        # Display clock, only running while a session is open
        self._tick_task: Optional[asyncio.Task] = None
        self._tick_listeners: List[TickListener] = []

    async def __aenter__(self) -> "TrackerService":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self):
        """
        Restore state from the store.

        Missing or unreadable data starts a fresh tracker with the example
        tasks. Unreadable data is left in the store untouched until the next
        mutation is saved. A restored active session resumes the display clock.
        """
        snapshot = None
        load_failed = False
        try:
            snapshot = await self.store.load()
        except Exception as e:
            load_failed = True
            logger.warning(f"Failed to load tracker data, starting fresh: {e}")

        if snapshot is None:
            seed = default_tasks() if self.preferences.seed_default_tasks else []
            self.tasks = TaskRegistry(seed)
            self.entries = EntryStore()
            self.session = None
            logger.info(f"First run, seeded {len(seed)} tasks")
        else:
            self.tasks = TaskRegistry(snapshot.tasks)
            self.entries = EntryStore(snapshot.entries)
            self.session = snapshot.active_session
            logger.info(f"Loaded {len(self.tasks)} tasks and {len(self.entries)} entries")

        self.is_loaded = True
        if self.session is not None:
            self._start_ticker()
        if not load_failed:
            await self._persist()

    async def close(self):
        """Stop the display clock and release the store. State is already persisted."""
        await self._stop_ticker()
        await self.store.close()

    def snapshot(self) -> Snapshot:
        return Snapshot(
            tasks=self.tasks.to_list(),
            entries=self.entries.to_list(),
            active_session=self.session,
        )

    async def _persist(self):
        """Save the whole snapshot; failures are logged and ignored"""
        if not self.is_loaded:
            return
        try:
            await self.store.save(self.snapshot())
        except Exception as e:
            logger.error(f"Failed to save tracker data: {e}")

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return machine.status(self.session)

    @property
    def is_tracking(self) -> bool:
        return self.session is not None

    @property
    def work_start_time(self) -> Optional[datetime.datetime]:
        return self.session.work_start_time if self.session else None

    def elapsed_seconds(self) -> int:
        """Seconds since the open session started (0 when idle)"""
        return machine.elapsed_seconds(self.session, self.clock())

    def _apply(self, transition: machine.Transition) -> Optional[TimeEntry]:
        self.session = transition.session
        if transition.entry is not None:
            self.entries.append(transition.entry)
            logger.debug(f"Entry closed: {transition.entry.task_id} ({transition.entry.duration}s)")
        return transition.entry

    async def start_work(self, task_id: str):
        """
        Start tracking time for a task.

        Does not close a running session; use switch_task for that.
        """
        self._apply(machine.start_work(self.session, task_id, self.clock()))
        self._start_ticker()
        await self._persist()

    async def switch_task(self, task_id: str) -> Optional[TimeEntry]:
        """
        Close the running session and continue on another task.

        The work start of the day is kept.
        """
        now = self.clock()
        entry = machine.close_session(self.session, now) if self.session else None
        opened = machine.start_work(self.session, task_id, now)
        self._apply(opened._replace(entry=entry))
        self._start_ticker()
        await self._persist()
        return entry

    async def start_break(self) -> Optional[TimeEntry]:
        """Close the running work session and go on break"""
        entry = self._apply(machine.start_break(self.session, self.clock()))
        self._start_ticker()
        await self._persist()
        return entry

    async def end_break(self, task_id: str) -> Optional[TimeEntry]:
        """Close the running break and resume work on a task"""
        entry = self._apply(machine.end_break(self.session, task_id, self.clock()))
        self._start_ticker()
        await self._persist()
        return entry

    async def finish_work(self) -> Optional[TimeEntry]:
        """End the working day"""
        entry = self._apply(machine.finish_work(self.session, self.clock()))
        await self._stop_ticker()
        await self._persist()
        return entry

    # ------------------------------------------------------------------
    # Display clock
    # ------------------------------------------------------------------

    def add_tick_listener(self, listener: TickListener):
        if listener not in self._tick_listeners:
            self._tick_listeners.append(listener)

    def remove_tick_listener(self, listener: TickListener):
        if listener in self._tick_listeners:
            self._tick_listeners.remove(listener)

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def _start_ticker(self):
        if self.is_ticking:
            return
        self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())

    async def _stop_ticker(self):
        task, self._tick_task = self._tick_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _tick_loop(self):
        while self.session is not None:
            await asyncio.sleep(self.preferences.tick_interval_seconds)
            self._on_tick()

    def _on_tick(self):
        """Called every interval to refresh the running clock"""
        if self.session is None:
            return

        seconds = self.elapsed_seconds()
        time_str = format_clock(seconds)
        for listener in list(self._tick_listeners):
            try:
                listener(time_str, seconds)
            except Exception:
                logger.exception("Tick listener failed")

    # ------------------------------------------------------------------
    # Tasks and entries
    # ------------------------------------------------------------------

    async def add_task(self, name: str, color: Optional[str] = None) -> Optional[Task]:
        """Create a task. Blank or over-long names are ignored."""
        task = self.tasks.add(name, color)
        if task is not None:
            await self._persist()
        return task

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task. Its historical entries are kept as they are."""
        removed = self.tasks.delete(task_id)
        if removed:
            await self._persist()
        return removed

    async def edit_entry(self, entry_id: str, start_clock: str, end_clock: str,
                         task_id: str) -> Optional[TimeEntry]:
        """
        Edit an entry's start/end clock times and task.

        Raises:
            ValueError: if a clock value is malformed (nothing is changed)
        """
        entry = self.entries.edit(entry_id, start_clock, end_clock, task_id)
        if entry is not None:
            await self._persist()
        return entry

    async def delete_entry(self, entry_id: str) -> bool:
        removed = self.entries.delete(entry_id)
        if removed:
            await self._persist()
        return removed

    def entries_for_date(self, day: datetime.date) -> List[TimeEntry]:
        return self.entries.for_date(day)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def report(self, selected_date: Optional[datetime.date] = None,
               kind: Optional[PeriodKind] = None) -> PeriodReport:
        """Statistics of the period containing selected_date (default: today)"""
        selected_date = selected_date or self.clock().date()
        kind = kind or self.preferences.default_period
        return AnalyticsService(self.entries, self.tasks).build_report(selected_date, kind)

    def live_stats(self, day: Optional[datetime.date] = None) -> PeriodStats:
        """Today's stats including the time of the still running session"""
        day = day or self.clock().date()
        stats = compute_stats(entries_for_period(day, PeriodKind.DAY, self.entries))
        return with_live_session(stats, self.session, self.elapsed_seconds())

    def calendar(self) -> CalendarService:
        return CalendarService(
            today=lambda: self.clock().date(),
            has_entries=self.entries.has_entries,
        )


async def create_tracker(settings: Optional[Settings] = None) -> TrackerService:
    """
    Build a loaded tracker backed by the configured database.

    Args:
        settings: Settings to use (defaults to the global settings)

    Returns:
        TrackerService with state restored from storage. Closing it
        disposes the database engine.
    """
    settings = settings or get_settings()
    engine = await init_db(settings.get_db_url(create_dirs=True))
    store = SnapshotRepository(
        KeyValueRepository(engine=engine, owns_engine=True),
        storage_key=settings.storage_key,
    )
    tracker = TrackerService(store, preferences=settings.preferences)
    await tracker.load()
    return tracker
