"""
Application context: the one place where collaborators are wired together.

Constructed once by the runner or the dashboard and passed explicitly.
"""

import time
from pathlib import Path
from typing import Optional, Dict, Any, Callable

from .achievements import AchievementEngine, unlocked_sorted
from .classifier import PostureClassifier
from .event_logger import EventLogger
from .notifications import NotificationSink, NullSink
from .reports import ReportAggregator
from .session import local_date
from .settings import Settings, merge_settings, reset_settings
from .storage import HistoryStorage, HistoryStore, export_history
from .tracker import SessionTracker


class AppContext:
    """
    Holds settings, storage, classifier, achievement engine, reports and the
    notification sink.
    """

    def __init__(
        self,
        storage: HistoryStorage,
        sink: Optional[NotificationSink] = None,
        event_logger: Optional[EventLogger] = None,
        clock: Callable[[], float] = time.time
    ):
        self.storage = storage
        self.sink = sink or NullSink()
        self.event_logger = event_logger
        self.clock = clock

        self.settings: Settings = storage.load().settings
        self.classifier = PostureClassifier(self.settings)
        self.achievement_engine = AchievementEngine()
        self.reports = ReportAggregator(storage)
        self.tracker: Optional[SessionTracker] = None

    @classmethod
    def create(cls, storage_dir: str = "./storage", sink: Optional[NotificationSink] = None) -> 'AppContext':
        """Build a context backed by files under storage_dir."""
        storage = HistoryStorage(storage_dir)
        event_logger = EventLogger(str(Path(storage_dir) / "events.jsonl"))
        return cls(storage, sink=sink, event_logger=event_logger)

    def today(self) -> str:
        return local_date(self.clock())

    def new_tracker(self) -> SessionTracker:
        """Fresh tracker for a new session (the previous one must be stopped)."""
        self.tracker = SessionTracker(
            storage=self.storage,
            settings=self.settings,
            classifier=self.classifier,
            achievement_engine=self.achievement_engine,
            sink=self.sink,
            event_logger=self.event_logger,
            clock=self.clock
        )
        return self.tracker

    # Settings

    def update_settings(self, updates: Dict[str, Any]) -> Settings:
        """Merge updates over current settings, persist, and apply."""
        return self._apply_settings(merge_settings(self.settings, updates))

    def reset_settings(self) -> Settings:
        return self._apply_settings(reset_settings())

    def _apply_settings(self, settings: Settings) -> Settings:
        self.settings = settings
        if not self.storage.save_settings(settings):
            print("WARNING: Settings applied but not saved")
        if self.tracker:
            self.tracker.update_settings(settings)
        else:
            self.classifier.update_settings(settings)
        return settings

    # Reports and history

    def history(self) -> HistoryStore:
        return self.storage.load()

    def daily_report(self):
        return self.reports.daily(self.today())

    def weekly_report(self):
        return self.reports.weekly(self.clock())

    def achievements(self):
        return unlocked_sorted(self.history())

    def export(self, directory: str = ".") -> Path:
        """Write posture-data-<today>.json into directory."""
        return export_history(self.history(), directory, self.today())

    def clear_data(self) -> bool:
        """Purge history and event log; settings return to defaults."""
        cleared = self.storage.clear()
        if cleared:
            self._apply_settings(reset_settings())
        if self.event_logger:
            self.event_logger.purge_logs()
        return cleared
