"""
Session tracker: the per-run state machine.

States: IDLE -> DETECTING <-> PAUSED -> STOPPED (terminal)

Each tick classifies one landmark snapshot and updates the session counters.
Bad ticks raise a debounced alert; the session is snapshotted to storage every
5 seconds while running, and once more (synchronously) when stopped, after
which achievements are evaluated against the full history.

All mutation happens under one lock so ticks never interleave. Notification
sinks are called after the lock is released.

PRIVACY: Only processes landmarks and counters, never frames.
"""

import time
import threading
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Tuple, Callable, Any, Dict

from .achievements import Achievement, AchievementEngine
from .classifier import PostureClassifier, ClassificationResult
from .events import IssuesRaised, IssuesCleared, AlertEvent, SessionPersisted, AchievementEvent
from .event_logger import EventLogger
from .landmarks import LandmarkSnapshot
from .notifications import NotificationSink, NullSink
from .reports import live_ratio
from .session import Session
from .settings import Settings
from .storage import HistoryStorage


SNAPSHOT_INTERVAL_SEC = 5.0
FINAL_PERSIST_ATTEMPTS = 3


class TrackerState(Enum):
    """Tracker lifecycle states."""
    IDLE = "idle"
    DETECTING = "detecting"
    PAUSED = "paused"
    STOPPED = "stopped"


class InvalidTransition(RuntimeError):
    """Requested a lifecycle transition the current state does not allow."""


@dataclass(frozen=True)
class TickResult:
    """Outcome of one tick: resulting state plus side effects."""
    state: TrackerState
    classification: Optional[ClassificationResult] = None
    effects: Tuple[Any, ...] = ()

    @property
    def processed(self) -> bool:
        return self.classification is not None


@dataclass
class StopResult:
    """Final session and the achievements it unlocked."""
    session: Session
    unlocked: List[Achievement] = field(default_factory=list)
    persisted: bool = True


class SessionTracker:
    """
    Stateful accumulator for one monitoring session.

    A tracker runs at most one session; construct a new tracker to detect
    again after stop().
    """

    def __init__(
        self,
        storage: HistoryStorage,
        settings: Optional[Settings] = None,
        classifier: Optional[PostureClassifier] = None,
        achievement_engine: Optional[AchievementEngine] = None,
        sink: Optional[NotificationSink] = None,
        event_logger: Optional[EventLogger] = None,
        clock: Callable[[], float] = time.time,
        snapshot_interval_sec: float = SNAPSHOT_INTERVAL_SEC
    ):
        """
        Initialize tracker.

        Args:
            storage: Persistence gateway for history
            settings: Current settings (alert frequency, thresholds)
            classifier: Posture classifier (built from settings if None)
            achievement_engine: Rule evaluator run on stop()
            sink: Receiver for issues, alerts and unlocks
            event_logger: Optional JSONL event log
            clock: Wall-clock source (Unix seconds)
            snapshot_interval_sec: Periodic persistence interval
        """
        self.storage = storage
        self.settings = settings or Settings()
        self.classifier = classifier or PostureClassifier(self.settings)
        self.achievement_engine = achievement_engine or AchievementEngine()
        self.sink = sink or NullSink()
        self.event_logger = event_logger
        self.clock = clock
        self.snapshot_interval_sec = snapshot_interval_sec

        self._lock = threading.Lock()
        self._state = TrackerState.IDLE
        self._session: Optional[Session] = None
        self._current_issues: Tuple[str, ...] = ()
        self._last_persist_at: Optional[float] = None
        self._persist_failures = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> TrackerState:
        return self._state

    def start(self) -> Session:
        """
        IDLE -> DETECTING. Creates the session.

        Returns:
            Copy of the new session
        """
        with self._lock:
            if self._state != TrackerState.IDLE:
                raise InvalidTransition(f"cannot start from {self._state.value}")

            self._session = Session.begin(self.clock())
            self._state = TrackerState.DETECTING
            session = self._session.copy()

        print(f"[TRACKER] Session {session.id} started ({session.date})")
        self._log_session("session_started", session)
        return session

    def pause(self):
        """DETECTING -> PAUSED. Ticks are dropped while paused."""
        with self._lock:
            if self._state != TrackerState.DETECTING:
                raise InvalidTransition(f"cannot pause from {self._state.value}")
            self._state = TrackerState.PAUSED
            session = self._session.copy()
        self._log_session("session_paused", session)

    def resume(self):
        """PAUSED -> DETECTING."""
        with self._lock:
            if self._state != TrackerState.PAUSED:
                raise InvalidTransition(f"cannot resume from {self._state.value}")
            self._state = TrackerState.DETECTING
            session = self._session.copy()
        self._log_session("session_resumed", session)

    def toggle_pause(self) -> TrackerState:
        """Pause if detecting, resume if paused."""
        if self._state == TrackerState.DETECTING:
            self.pause()
        else:
            self.resume()
        return self._state

    def update_settings(self, settings: Settings):
        """Apply new settings (alert frequency and thresholds) to later ticks."""
        with self._lock:
            self.settings = settings
            self.classifier.update_settings(settings)

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def tick(self, snapshot: Optional[LandmarkSnapshot]) -> TickResult:
        """
        Process one landmark snapshot.

        Never raises for bad input; missing landmarks are handled by the
        classifier. Ticks outside DETECTING are dropped.

        Returns:
            TickResult with classification and effects (empty if dropped)
        """
        with self._lock:
            if self._state != TrackerState.DETECTING:
                return TickResult(state=self._state)

            now = self.clock()
            result = self.classifier.classify(snapshot)
            effects = self._apply(result, now)

            persisted = self._persist_if_due(now)
            if persisted:
                effects.append(persisted)

            state = self._state

        self._dispatch(effects)
        return TickResult(state=state, classification=result, effects=tuple(effects))

    def _apply(self, result: ClassificationResult, now: float) -> List[Any]:
        """Update counters for one classified tick (lock held)."""
        session = self._session
        effects: List[Any] = []

        if result.is_good:
            session.good_ticks += 1
            session.continuous_good += 1
            session.max_continuous_good = max(session.max_continuous_good, session.continuous_good)
            self._current_issues = ()
            effects.append(IssuesCleared())
            return effects

        session.bad_ticks += 1
        session.continuous_good = 0

        tags = tuple(tag.value for tag in result.issues)
        labels = tuple(result.labels())
        self._current_issues = labels
        effects.append(IssuesRaised(issues=tags, labels=labels))

        # Debounce on wall clock, independent of tick rate
        alert_spacing = self.settings.alert_frequency
        if session.last_alert_time is None or now - session.last_alert_time >= alert_spacing:
            session.alerts += 1
            session.last_alert_time = now
            effects.append(AlertEvent(
                timestamp=now,
                session_id=session.id,
                issues=tags,
                labels=labels,
                alert_count=session.alerts
            ))

        return effects

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def maybe_persist(self) -> bool:
        """
        Snapshot the session if the interval has elapsed.

        Safe to call from a timer; does nothing outside DETECTING/PAUSED.

        Returns:
            True if a snapshot was written
        """
        with self._lock:
            if self._state not in (TrackerState.DETECTING, TrackerState.PAUSED):
                return False
            persisted = self._persist_if_due(self.clock())
        return persisted is not None

    def _persist_if_due(self, now: float) -> Optional[SessionPersisted]:
        """Write a snapshot if due (lock held). Failures retry next interval."""
        if self._last_persist_at is not None and now - self._last_persist_at < self.snapshot_interval_sec:
            return None

        self._session.end_time = now
        if not self.storage.upsert_session(self._session):
            self._persist_failures += 1
            print(f"ERROR: [TRACKER] Snapshot of session {self._session.id} failed, retrying next interval")
            if self.event_logger:
                self.event_logger.log_persist_failed(self._session.id, final=False)
            return None

        self._last_persist_at = now
        return SessionPersisted(session_id=self._session.id)

    def stop(self) -> StopResult:
        """
        DETECTING/PAUSED -> STOPPED.

        Persists the final snapshot before the state changes, then evaluates
        achievements over the stored history and appends any unlocks.

        Returns:
            StopResult with the final session and newly unlocked achievements
        """
        with self._lock:
            if self._state not in (TrackerState.DETECTING, TrackerState.PAUSED):
                raise InvalidTransition(f"cannot stop from {self._state.value}")

            now = self.clock()
            session = self._session
            session.end_time = now

            persisted = False
            for _ in range(FINAL_PERSIST_ATTEMPTS):
                if self.storage.upsert_session(session):
                    persisted = True
                    break
            if not persisted:
                print(f"ERROR: [TRACKER] Final snapshot of session {session.id} failed")
                if self.event_logger:
                    self.event_logger.log_persist_failed(session.id, final=True)

            self._state = TrackerState.STOPPED
            self._current_issues = ()
            final = session.copy()

            unlocked = self._evaluate_achievements(final, now)

        self._log_session("session_stopped", final)
        for achievement in unlocked:
            print(f"[TRACKER] Achievement unlocked: {achievement.name}")
            if self.event_logger:
                self.event_logger.log_achievement(achievement.key, achievement.name, final.id)
        self._dispatch([
            AchievementEvent(key=a.key, name=a.name, unlocked_at=a.unlocked_at)
            for a in unlocked
        ])

        return StopResult(session=final, unlocked=unlocked, persisted=persisted)

    def _evaluate_achievements(self, session: Session, now: float) -> List[Achievement]:
        """Run the rule set over stored history (lock held)."""
        history = self.storage.load()
        if not any(s.id == session.id for s in history.sessions):
            # Final persist failed; still judge this session in memory
            history.sessions.append(session.copy())

        unlocked = self.achievement_engine.evaluate(
            session,
            history,
            history.sessions_on(session.date),
            now=datetime.fromtimestamp(now)
        )
        if unlocked and not self.storage.append_achievements(unlocked):
            print("ERROR: [TRACKER] Failed to save unlocked achievements")
        return unlocked

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def snapshot(self) -> Optional[Session]:
        """Copy of the current session (None before start)."""
        with self._lock:
            return self._session.copy() if self._session else None

    def get_status(self) -> Dict[str, Any]:
        """
        Read-only status for display refresh.

        Returns:
            Dictionary with state, counters and current issues
        """
        with self._lock:
            session = self._session.copy() if self._session else None
            issues = list(self._current_issues)
            state = self._state
            failures = self._persist_failures

        status: Dict[str, Any] = {
            "state": state.value,
            "issues": issues,
            "persist_failures": failures,
            "session": session.to_dict() if session else None,
            "elapsed_sec": 0.0,
            "good_ratio": live_ratio(session)
        }
        if session:
            status["elapsed_sec"] = max(0.0, self.clock() - session.start_time)
        return status

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _dispatch(self, effects: List[Any]):
        """Deliver effects to the sink (lock not held)."""
        for effect in effects:
            if isinstance(effect, IssuesRaised):
                self.sink.on_issues(effect.labels)
            elif isinstance(effect, IssuesCleared):
                self.sink.on_issues_cleared()
            elif isinstance(effect, AlertEvent):
                if self.event_logger:
                    self.event_logger.log_alert(effect.session_id, list(effect.issues), effect.alert_count)
                self.sink.on_alert(effect)
            elif isinstance(effect, AchievementEvent):
                self.sink.on_achievement(effect)

    def _log_session(self, event_type: str, session: Session):
        if self.event_logger:
            self.event_logger.log_session(event_type, session.id, {
                "good_ticks": session.good_ticks,
                "bad_ticks": session.bad_ticks,
                "alerts": session.alerts,
                "max_continuous_good": session.max_continuous_good
            })
