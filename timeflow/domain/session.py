"""
Session state machine.

The tracked state is a tagged union derived from ``Optional[ActiveSession]``:

    None                          -> Idle
    ActiveSession(is_break=False) -> Working(task_id)
    ActiveSession(is_break=True)  -> OnBreak

Every transition is a pure, total function of (session, arguments, now) that
returns the next session together with the entry it closed, if any.
Transitions never raise: a call from an unexpected state simply skips the
closing half and performs the opening half.
"""

import math
from datetime import datetime
from typing import NamedTuple, Optional

from timeflow.domain.models import (
    BREAK_TASK_ID,
    ActiveSession,
    SessionStatus,
    TimeEntry,
)
from timeflow.utils import date_key


class Transition(NamedTuple):
    session: Optional[ActiveSession]
    entry: Optional[TimeEntry] = None


def status(session: Optional[ActiveSession]) -> SessionStatus:
    if session is None:
        return SessionStatus.IDLE
    return session.status


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, never negative"""
    return max(0, math.floor((end - start).total_seconds()))


def elapsed_seconds(session: Optional[ActiveSession], now: datetime) -> int:
    """Elapsed time of the open session (0 when idle)"""
    if session is None:
        return 0
    return seconds_between(session.session_start_time, now)


def close_session(session: ActiveSession, now: datetime) -> TimeEntry:
    """Turn the open session into a finished entry ending at ``now``"""
    return TimeEntry(
        task_id=BREAK_TASK_ID if session.is_break else session.task_id,
        is_break=session.is_break,
        start_time=session.session_start_time,
        end_time=now,
        duration=seconds_between(session.session_start_time, now),
        date=date_key(session.session_start_time),
    )


def start_work(session: Optional[ActiveSession], task_id: str, now: datetime) -> Transition:
    """
    Open a work session on ``task_id``.

    Does not close a running session; callers switching tasks close it first.
    The work start of the day is stamped only if none exists yet.
    """
    work_start = session.work_start_time if session and session.work_start_time else now
    return Transition(ActiveSession(
        task_id=task_id,
        is_break=False,
        session_start_time=now,
        work_start_time=work_start,
    ))


def start_break(session: Optional[ActiveSession], now: datetime) -> Transition:
    """Close the running work session (if any) and go on break"""
    entry = None
    if session is not None and not session.is_break:
        entry = close_session(session, now)

    return Transition(ActiveSession(
        task_id=BREAK_TASK_ID,
        is_break=True,
        session_start_time=now,
        work_start_time=session.work_start_time if session else None,
    ), entry)


def end_break(session: Optional[ActiveSession], task_id: str, now: datetime) -> Transition:
    """Close the running break (if any) and resume work on ``task_id``"""
    entry = None
    if session is not None and session.is_break:
        entry = close_session(session, now)

    return Transition(start_work(session, task_id, now).session, entry)


def finish_work(session: Optional[ActiveSession], now: datetime) -> Transition:
    """End the day: close whatever is open and return to idle"""
    if session is None:
        return Transition(None)
    return Transition(None, close_session(session, now))
