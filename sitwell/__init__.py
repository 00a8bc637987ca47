"""
SitWell Core Module
Webcam posture tracking, session statistics, achievements and reports.
"""

from .landmarks import Landmark, LandmarkSnapshot, landmarks_from_mediapipe, build_snapshot
from .classifier import PostureClassifier, ClassificationResult, IssueTag, classify
from .settings import Settings, merge_settings, settings_from_dict, reset_settings
from .session import Session, local_date
from .storage import HistoryStorage, HistoryStore, export_history, export_filename
from .achievements import Achievement, AchievementEngine, AchievementRule, RULES
from .reports import (
    ReportAggregator,
    DailyReport,
    WeeklyReport,
    NoDataReport,
    DailyTrend,
    WeeklyTrend,
    daily_report,
    weekly_report
)
from .events import IssuesRaised, IssuesCleared, AlertEvent, SessionPersisted, AchievementEvent
from .event_logger import EventLogger
from .notifications import NotificationSink, NullSink, CompositeSink, ConsoleSink, DesktopNotifier
from .tracker import SessionTracker, TrackerState, InvalidTransition, TickResult, StopResult
from .app_context import AppContext
from .performance_config import PerformanceConfig
from .status_bus import StatusBus, read_status

__all__ = [
    "Landmark",
    "LandmarkSnapshot",
    "landmarks_from_mediapipe",
    "build_snapshot",
    "PostureClassifier",
    "ClassificationResult",
    "IssueTag",
    "classify",
    "Settings",
    "merge_settings",
    "settings_from_dict",
    "reset_settings",
    "Session",
    "local_date",
    "HistoryStorage",
    "HistoryStore",
    "export_history",
    "export_filename",
    "Achievement",
    "AchievementEngine",
    "AchievementRule",
    "RULES",
    "ReportAggregator",
    "DailyReport",
    "WeeklyReport",
    "NoDataReport",
    "DailyTrend",
    "WeeklyTrend",
    "daily_report",
    "weekly_report",
    "IssuesRaised",
    "IssuesCleared",
    "AlertEvent",
    "SessionPersisted",
    "AchievementEvent",
    "EventLogger",
    "NotificationSink",
    "NullSink",
    "CompositeSink",
    "ConsoleSink",
    "DesktopNotifier",
    "SessionTracker",
    "TrackerState",
    "InvalidTransition",
    "TickResult",
    "StopResult",
    "AppContext",
    "PerformanceConfig",
    "StatusBus",
    "read_status"
]
