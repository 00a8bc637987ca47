"""
Achievement rules evaluated over session history.

Rules are checked in a fixed order after each session ends. A key that is
already unlocked is never unlocked again, so evaluating the same history
twice is harmless.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable, Iterable, Tuple


FOCUS_STREAK_TICKS = 15 * 60  # 15 minutes at one tick per second
DAILY_ALERT_LIMIT = 10
STREAK_DAYS = 3
STREAK_MIN_RATIO = 0.7
PERFECT_DAY_MIN_RATIO = 0.8


@dataclass(frozen=True)
class Achievement:
    """An unlocked milestone."""
    key: str
    name: str
    unlocked_at: str  # ISO timestamp

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Achievement':
        """Create from dictionary (older records used 'date' for unlocked_at)."""
        return cls(
            key=str(data["key"]),
            name=str(data.get("name", data["key"])),
            unlocked_at=str(data.get("unlocked_at") or data.get("date") or "")
        )


@dataclass(frozen=True)
class AchievementRule:
    """A rule unlocking `key` when `check` holds."""
    key: str
    name: str
    description: str
    check: Callable[..., bool]


def _focus_streak(latest, history_sessions, todays_sessions) -> bool:
    return latest.max_continuous_good >= FOCUS_STREAK_TICKS


def _few_alerts_today(latest, history_sessions, todays_sessions) -> bool:
    # Can fire before the day is over; the unlock stays even if later exceeded
    return sum(s.alerts for s in todays_sessions) < DAILY_ALERT_LIMIT


def _three_good_days(latest, history_sessions, todays_sessions) -> bool:
    dates = sorted({s.date for s in history_sessions}, reverse=True)[:STREAK_DAYS]
    if len(dates) < STREAK_DAYS:
        return False

    window = [s for s in history_sessions if s.date in dates]
    for session in window:
        ratio = session.good_ratio()
        if ratio is None or ratio <= STREAK_MIN_RATIO:
            return False
    return True


def _perfect_day(latest, history_sessions, todays_sessions) -> bool:
    good = sum(s.good_ticks for s in todays_sessions)
    total = sum(s.total_ticks for s in todays_sessions)
    return total > 0 and good / total > PERFECT_DAY_MIN_RATIO


RULES: Tuple[AchievementRule, ...] = (
    AchievementRule(
        key="连续良好时间15分钟",
        name="专注力冠军",
        description="Keep good posture for 15 minutes in a row",
        check=_focus_streak
    ),
    AchievementRule(
        key="单日提醒次数<10",
        name="自律之星",
        description="Fewer than 10 alerts in a day",
        check=_few_alerts_today
    ),
    AchievementRule(
        key="连续3天良好率>70%",
        name="坐姿小达人",
        description="Every session above 70% good over your last 3 active days",
        check=_three_good_days
    ),
    AchievementRule(
        key="单日良好率>80%",
        name="完美坐姿日",
        description="More than 80% good posture across a day",
        check=_perfect_day
    ),
)


class AchievementEngine:
    """
    Rule evaluator.

    evaluate() is pure: it returns newly unlocked achievements and leaves the
    history untouched. unlock_into() appends them to a history store.
    """

    def __init__(self, rules: Iterable[AchievementRule] = RULES):
        self.rules = tuple(rules)

    def evaluate(
        self,
        latest_session,
        history,
        todays_sessions: Optional[List] = None,
        now: Optional[datetime] = None
    ) -> List[Achievement]:
        """
        Evaluate all rules in order.

        Args:
            latest_session: Session that just finished
            history: HistoryStore (sessions + already unlocked achievements)
            todays_sessions: Sessions for the latest session's day
                (derived from history if None)
            now: Unlock time (defaults to current time)

        Returns:
            Newly unlocked achievements, in rule order
        """
        if todays_sessions is None:
            todays_sessions = history.sessions_on(latest_session.date)

        unlocked_at = (now or datetime.now()).isoformat()
        known = history.achievement_keys()
        unlocked: List[Achievement] = []

        for rule in self.rules:
            if rule.key in known:
                continue
            if rule.check(latest_session, history.sessions, todays_sessions):
                unlocked.append(Achievement(key=rule.key, name=rule.name, unlocked_at=unlocked_at))
                known.add(rule.key)

        return unlocked

    def unlock_into(self, history, achievements: List[Achievement]) -> List[Achievement]:
        """Append achievements not already present; returns those appended."""
        known = history.achievement_keys()
        appended = []
        for achievement in achievements:
            if achievement.key in known:
                continue
            history.achievements.append(achievement)
            known.add(achievement.key)
            appended.append(achievement)
        return appended

    def catalog(self) -> List[Dict[str, str]]:
        """Every achievement that can be unlocked."""
        return [
            {"key": r.key, "name": r.name, "description": r.description}
            for r in self.rules
        ]


def unlocked_sorted(history) -> List[Achievement]:
    """Unlocked achievements, newest first."""
    return sorted(history.achievements, key=lambda a: a.unlocked_at, reverse=True)
