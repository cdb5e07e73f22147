"""
Tests for the Tracker Service: session flow, persistence and the display clock.
"""

import asyncio
import datetime
import json
from typing import List, Optional
import pytest

from timeflow.domain.models import (
    BREAK_TASK_ID,
    ActiveSession,
    PeriodKind,
    SessionStatus,
    Snapshot,
    Task,
    UserPreferences,
)
from timeflow.infra.repository import BaseSnapshotStore, KeyValueRepository, SnapshotRepository
from timeflow.infra.config import Settings
from timeflow.services.tracker_service import TrackerService, create_tracker


class MemoryStore(BaseSnapshotStore):
    """Keeps every saved snapshot in a list"""

    def __init__(self, initial: Optional[Snapshot] = None):
        self.initial = initial
        self.saved: List[Snapshot] = []

    async def load(self) -> Optional[Snapshot]:
        return self.initial

    async def save(self, snapshot: Snapshot) -> None:
        self.saved.append(snapshot)


class BrokenStore(BaseSnapshotStore):
    """Fails on every call"""

    async def load(self) -> Optional[Snapshot]:
        raise OSError("storage unavailable")

    async def save(self, snapshot: Snapshot) -> None:
        raise OSError("storage unavailable")


@pytest.fixture
def fast_prefs():
    return UserPreferences(tick_interval_seconds=0.01)


class TestLoading:

    @pytest.mark.asyncio
    async def test_first_run_seeds_default_tasks(self, clock):
        store = MemoryStore()
        tracker = TrackerService(store, clock=clock)
        await tracker.load()

        assert [t.name for t in tracker.tasks] == ["Development", "Meetings", "Admin"]
        assert tracker.status == SessionStatus.IDLE
        assert len(store.saved) == 1
        await tracker.close()

    @pytest.mark.asyncio
    async def test_seeding_can_be_disabled(self, clock):
        tracker = TrackerService(MemoryStore(), clock=clock,
                                 preferences=UserPreferences(seed_default_tasks=False))
        await tracker.load()

        assert len(tracker.tasks) == 0

    @pytest.mark.asyncio
    async def test_restores_active_session(self, clock):
        started = clock.now - datetime.timedelta(minutes=10)
        snapshot = Snapshot(
            tasks=[Task(id="1", name="Development")],
            active_session=ActiveSession(task_id="1", session_start_time=started,
                                         work_start_time=started),
        )

        async with TrackerService(MemoryStore(snapshot), clock=clock) as tracker:
            assert tracker.status == SessionStatus.WORKING
            assert tracker.work_start_time == started
            assert tracker.elapsed_seconds() == 600
            assert tracker.is_ticking

        assert not tracker.is_ticking

    @pytest.mark.asyncio
    async def test_load_failure_falls_back_to_defaults(self, clock):
        tracker = TrackerService(BrokenStore(), clock=clock)
        await tracker.load()

        assert len(tracker.tasks) == 3
        assert len(tracker.entries) == 0

    @pytest.mark.asyncio
    async def test_unreadable_snapshot_is_not_overwritten_on_load(self, db_session, clock):
        kv_repo = KeyValueRepository(session=db_session)
        await kv_repo.set("timetracker-data", "{not json")

        tracker = TrackerService(SnapshotRepository(kv_repo), clock=clock)
        await tracker.load()

        assert len(tracker.tasks) == 3
        assert await kv_repo.get("timetracker-data") == "{not json"

    @pytest.mark.asyncio
    async def test_loads_web_app_snapshot(self, db_session, clock):
        kv_repo = KeyValueRepository(session=db_session)
        await kv_repo.set("timetracker-data", json.dumps({
            "tasks": [{"id": "1", "name": "Development", "color": "#635BFF"}],
            "entries": [{
                "id": "1760864400000", "taskId": "1", "isBreak": False,
                "startTime": "2026-10-19T07:00:00.000Z", "endTime": "2026-10-19T07:25:00.000Z",
                "duration": 1500, "date": "2026-10-19",
            }],
            "activeSession": {
                "task": "1", "isBreak": True,
                "startTime": "2026-10-19T07:25:00.000Z", "workStartTime": "2026-10-19T07:00:00.000Z",
            },
        }))

        tracker = TrackerService(SnapshotRepository(kv_repo), clock=clock)
        await tracker.load()

        assert [e.id for e in tracker.entries] == ["1760864400000"]
        assert tracker.status == SessionStatus.ON_BREAK
        assert tracker.session.task_id == "1"
        await tracker.close()

        stored = json.loads(await kv_repo.get("timetracker-data"))
        assert len(stored["entries"]) == 1
        assert stored["activeSession"]["isBreak"] is True


class TestSessionFlow:

    @pytest.mark.asyncio
    async def test_work_break_work_scenario(self, clock):
        """Start A, break after 1500s, resume A at 1800s, end the day at 5400s."""
        store = MemoryStore()
        tracker = TrackerService(store, clock=clock)
        await tracker.load()
        t0 = clock.now

        await tracker.start_work("1")
        assert tracker.work_start_time == t0

        clock.advance(1500)
        await tracker.start_break()
        assert tracker.status == SessionStatus.ON_BREAK
        assert tracker.work_start_time == t0

        clock.advance(300)
        await tracker.end_break("1")
        assert tracker.status == SessionStatus.WORKING
        assert tracker.work_start_time == t0

        clock.advance(3600)
        await tracker.finish_work()

        entries = tracker.entries.to_list()
        assert [(e.task_id, e.is_break, e.duration) for e in entries] == [
            ("1", False, 1500),
            (BREAK_TASK_ID, True, 300),
            ("1", False, 3600),
        ]
        assert sum(e.duration for e in entries) == 5400
        assert tracker.status == SessionStatus.IDLE
        assert tracker.work_start_time is None
        assert not tracker.is_ticking

        # One save on load plus one per transition
        assert len(store.saved) == 5
        assert store.saved[-1].active_session is None
        assert len(store.saved[-1].entries) == 3

    @pytest.mark.asyncio
    async def test_switch_task_closes_running_entry(self, clock):
        tracker = TrackerService(MemoryStore(), clock=clock)
        await tracker.load()
        t0 = clock.now

        await tracker.start_work("1")
        clock.advance(900)
        entry = await tracker.switch_task("2")

        assert entry.task_id == "1"
        assert entry.duration == 900
        assert tracker.session.task_id == "2"
        assert tracker.work_start_time == t0
        await tracker.close()

    @pytest.mark.asyncio
    async def test_out_of_order_calls_do_not_raise(self, clock):
        tracker = TrackerService(MemoryStore(), clock=clock)
        await tracker.load()

        assert await tracker.finish_work() is None
        assert await tracker.end_break("1") is None
        assert tracker.status == SessionStatus.WORKING
        await tracker.finish_work()
        assert len(tracker.entries) == 1

    @pytest.mark.asyncio
    async def test_save_failures_keep_state(self, clock):
        tracker = TrackerService(BrokenStore(), clock=clock)
        await tracker.load()

        await tracker.start_work("1")
        clock.advance(60)
        entry = await tracker.start_break()

        assert entry.duration == 60
        assert tracker.status == SessionStatus.ON_BREAK
        assert len(tracker.entries) == 1
        await tracker.close()

    @pytest.mark.asyncio
    async def test_live_stats_include_running_session(self, clock):
        tracker = TrackerService(MemoryStore(), clock=clock)
        await tracker.load()

        await tracker.start_work("1")
        clock.advance(600)
        await tracker.start_break()
        clock.advance(120)

        live = tracker.live_stats()
        assert live.total_work == 600
        assert live.total_break == 120
        assert tracker.report().stats.total_break == 0
        await tracker.close()


class TestTasksAndEntries:

    @pytest.mark.asyncio
    async def test_deleted_task_keeps_entries(self, clock):
        tracker = TrackerService(MemoryStore(), clock=clock)
        await tracker.load()

        task = await tracker.add_task("Research", "#8B5CF6")
        await tracker.start_work(task.id)
        clock.advance(1200)
        await tracker.finish_work()

        assert await tracker.delete_task(task.id) is True
        assert len(tracker.entries) == 1

        report = tracker.report(kind=PeriodKind.DAY)
        assert [s.name for s in report.tasks] == ["Unknown task"]
        assert report.tasks[0].seconds == 1200

    @pytest.mark.asyncio
    async def test_blank_task_is_not_added(self, clock):
        store = MemoryStore()
        tracker = TrackerService(store, clock=clock)
        await tracker.load()

        assert await tracker.add_task("   ") is None
        assert len(store.saved) == 1

    @pytest.mark.asyncio
    async def test_too_long_task_name_is_not_added(self, clock):
        store = MemoryStore()
        tracker = TrackerService(store, clock=clock)
        await tracker.load()

        assert await tracker.add_task("x" * 201) is None
        assert len(tracker.tasks) == 3
        assert len(store.saved) == 1

    @pytest.mark.asyncio
    async def test_edit_and_delete_entry(self, clock):
        store = MemoryStore()
        tracker = TrackerService(store, clock=clock)
        await tracker.load()

        await tracker.start_work("1")
        clock.advance(1800)
        entry = await tracker.finish_work()

        edited = await tracker.edit_entry(entry.id, "08:00", "07:00", "2")
        assert edited.duration == 0
        assert store.saved[-1].entries[0].task_id == "2"

        with pytest.raises(ValueError):
            await tracker.edit_entry(entry.id, "xx", "09:00", "1")

        saves = len(store.saved)
        assert await tracker.delete_entry("missing") is False
        assert len(store.saved) == saves

        assert await tracker.delete_entry(entry.id) is True
        assert tracker.entries_for_date(clock.now.date()) == []

    @pytest.mark.asyncio
    async def test_calendar_marks_tracked_days(self, clock):
        tracker = TrackerService(MemoryStore(), clock=clock)
        await tracker.load()

        await tracker.start_work("1")
        clock.advance(60)
        await tracker.finish_work()

        grid = tracker.calendar().month_grid(clock.now.date())
        tracked = [d.date for d in grid if d.has_entries]
        assert tracked == [datetime.date(2026, 10, 19)]


class TestDisplayClock:

    @pytest.mark.asyncio
    async def test_listeners_receive_elapsed_time(self, clock, fast_prefs):
        ticks = []
        tracker = TrackerService(MemoryStore(), clock=clock, preferences=fast_prefs)
        tracker.add_tick_listener(lambda text, seconds: ticks.append((text, seconds)))
        await tracker.load()

        await tracker.start_work("1")
        clock.advance(65)
        await asyncio.sleep(0.05)

        assert ticks
        assert ticks[-1] == ("00:01:05", 65)
        await tracker.finish_work()
        assert not tracker.is_ticking

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_clock(self, clock, fast_prefs):
        ticks = []

        def broken(text, seconds):
            raise RuntimeError("listener bug")

        tracker = TrackerService(MemoryStore(), clock=clock, preferences=fast_prefs)
        tracker.add_tick_listener(broken)
        tracker.add_tick_listener(lambda text, seconds: ticks.append(seconds))
        await tracker.load()

        await tracker.start_work("1")
        await asyncio.sleep(0.05)

        assert len(ticks) >= 2
        assert tracker.is_ticking
        await tracker.close()
        assert not tracker.is_ticking

    @pytest.mark.asyncio
    async def test_clock_not_started_while_idle(self, clock, fast_prefs):
        tracker = TrackerService(MemoryStore(), clock=clock, preferences=fast_prefs)
        await tracker.load()

        assert not tracker.is_ticking
        assert tracker.elapsed_seconds() == 0


@pytest.mark.asyncio
async def test_state_survives_restart(db_session, clock):
    """Snapshot saved through the database restores the same state."""
    store = SnapshotRepository(KeyValueRepository(session=db_session))

    tracker = TrackerService(store, clock=clock)
    await tracker.load()
    await tracker.start_work("2")
    clock.advance(300)
    await tracker.start_break()
    await tracker.close()

    restored = TrackerService(store, clock=clock)
    await restored.load()

    assert restored.status == SessionStatus.ON_BREAK
    assert [t.id for t in restored.tasks] == ["1", "2", "3"]
    assert restored.entries.to_list() == tracker.entries.to_list()
    assert restored.work_start_time == tracker.work_start_time
    await restored.close()


@pytest.mark.asyncio
async def test_create_tracker_from_settings(tmp_path):
    settings = Settings(
        config_dir=tmp_path / "config",
        data_dir=tmp_path / "data",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}",
    )

    tracker = await create_tracker(settings)
    await tracker.start_work("3")

    again = await create_tracker(settings)
    assert again.status == SessionStatus.WORKING
    assert again.session.task_id == "3"

    await tracker.close()
    await again.close()
    assert tracker.store.kv_repo.engine is None
    assert again.store.kv_repo.engine is None
