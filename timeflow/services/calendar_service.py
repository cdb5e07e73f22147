"""
Calendar Service - month grid, period labels and period navigation.

Architecture Decision: Separate from analytics
Date arithmetic for browsing periods has nothing to do with summing entries,
so it lives here and stays free of any entry aggregation.
"""

import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel

from timeflow.domain.models import PeriodKind
from timeflow.utils import add_months, days_in_month, shift_period, start_of_week

GRID_SIZE = 42  # Six weeks of seven days


class CalendarDay(BaseModel):
    date: datetime.date
    is_current_month: bool
    is_today: bool = False
    is_selected: bool = False
    has_entries: bool = False


class CalendarService:
    """
    Handles calendar browsing logic.

    Weeks start on Sunday. Labels follow US English conventions.
    """

    def __init__(self, today: Optional[Callable[[], datetime.date]] = None,
                 has_entries: Optional[Callable[[datetime.date], bool]] = None):
        """
        Args:
            today: Returns the current date (defaults to date.today)
            has_entries: Tells whether a day has tracked time
        """
        self.today = today or datetime.date.today
        self.has_entries = has_entries or (lambda day: False)

    def month_grid(self, month: datetime.date,
                   selected: Optional[datetime.date] = None) -> List[CalendarDay]:
        """
        Build the 6x7 grid for a month view.

        The grid starts on the Sunday on or before the first of the month and
        is padded with days of the neighbouring months.

        Args:
            month: Any day within the month to show
            selected: Currently selected day, flagged in the grid

        Returns:
            42 CalendarDay cells
        """
        first = datetime.date(month.year, month.month, 1)
        grid_start = start_of_week(first)
        today = self.today()

        days = []
        for offset in range(GRID_SIZE):
            day = grid_start + datetime.timedelta(days=offset)
            days.append(CalendarDay(
                date=day,
                is_current_month=(day.year, day.month) == (first.year, first.month),
                is_today=day == today,
                is_selected=selected is not None and day == selected,
                has_entries=self.has_entries(day),
            ))
        return days

    @staticmethod
    def shift_month(month: datetime.date, direction: int) -> datetime.date:
        """First day of the month ``direction`` months away"""
        return add_months(datetime.date(month.year, month.month, 1), direction)

    @staticmethod
    def navigate(selected_date: datetime.date, kind: PeriodKind, direction: int) -> datetime.date:
        """Move the selection one period forward (1) or back (-1)"""
        return shift_period(selected_date, kind, direction)

    @staticmethod
    def period_label(selected_date: datetime.date, kind: PeriodKind) -> str:
        """
        Human readable name of the period.

        Examples: "Monday, Oct 19", "Oct 18 - Oct 24", "October 2026"
        """
        if kind == PeriodKind.DAY:
            return f"{selected_date:%A}, {selected_date:%b} {selected_date.day}"
        if kind == PeriodKind.WEEK:
            start = start_of_week(selected_date)
            end = start + datetime.timedelta(days=6)
            return f"{start:%b} {start.day} - {end:%b} {end.day}"
        return f"{selected_date:%B} {selected_date.year}"

    @staticmethod
    def days_in_period(selected_date: datetime.date, kind: PeriodKind) -> int:
        if kind == PeriodKind.WEEK:
            return 7
        if kind == PeriodKind.MONTH:
            return days_in_month(selected_date.year, selected_date.month)
        return 1
