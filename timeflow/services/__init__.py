"""Services layer - Business logic"""

from .analytics_service import AnalyticsService, PeriodReport, PeriodStats
from .calendar_service import CalendarService
from .tracker_service import TrackerService

__all__ = ["AnalyticsService", "PeriodReport", "PeriodStats", "CalendarService", "TrackerService"]
