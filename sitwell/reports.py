"""
Daily and weekly posture reports built from session history.

All functions are pure over a list of sessions. Minutes are derived from
ticks (one tick per second). Percentages round half up.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple, Union

import numpy as np

from .session import Session


class DailyTrend(Enum):
    """First vs last session of the day."""
    STRONG_IMPROVEMENT = "strong_improvement"
    IMPROVEMENT = "improvement"
    REGRESSION = "regression"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


class WeeklyTrend(Enum):
    """Week-level verdict."""
    UPWARD_STREAK = "upward_streak"
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs_improvement"
    INSUFFICIENT_DATA = "insufficient_data"


TREND_MESSAGES = {
    DailyTrend.STRONG_IMPROVEMENT: "Good-posture time rose sharply. Great progress!",
    DailyTrend.IMPROVEMENT: "Good-posture time is up. Keep going!",
    DailyTrend.REGRESSION: "Good-posture time dropped. Watch your posture!",
    DailyTrend.STABLE: "Posture is holding steady. Keep it up!",
    DailyTrend.INSUFFICIENT_DATA: "Not enough data yet. Keep studying to see a trend.",
    WeeklyTrend.UPWARD_STREAK: "Good-posture ratio has risen 3 days in a row. Fantastic!",
    WeeklyTrend.EXCELLENT: "Excellent week. Keep the good habits!",
    WeeklyTrend.GOOD: "Good week, with room to improve.",
    WeeklyTrend.NEEDS_IMPROVEMENT: "Your posture needs more attention this week.",
    WeeklyTrend.INSUFFICIENT_DATA: "Not enough data yet. Keep studying.",
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values."""
    return int(math.floor(value + 0.5))


def ratio_percent(good: float, bad: float) -> int:
    """Good share as a whole percentage, 0 when there is no data."""
    total = good + bad
    if total <= 0:
        return 0
    return round_half_up(good / total * 100)


@dataclass
class NoDataReport:
    """Explicit empty result."""
    kind: str  # "daily" or "weekly"
    has_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DailyReport:
    date: str
    session_count: int
    total_minutes: float
    good_minutes: float
    bad_minutes: float
    good_ticks: int
    bad_ticks: int
    alerts: int
    max_continuous_minutes: float
    good_ratio: int  # percent
    trend: DailyTrend
    has_data: bool = True

    @property
    def trend_message(self) -> str:
        return TREND_MESSAGES[self.trend]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["trend"] = self.trend.value
        data["trend_message"] = self.trend_message
        return data


@dataclass
class DayStat:
    date: str
    good_minutes: float
    bad_minutes: float
    ratio: int  # percent

    @property
    def total_minutes(self) -> float:
        return self.good_minutes + self.bad_minutes


@dataclass
class WeeklyReport:
    days: List[DayStat]
    day_count: int
    average_ratio: int  # percent
    trend: WeeklyTrend
    has_data: bool = True

    @property
    def trend_message(self) -> str:
        return TREND_MESSAGES[self.trend]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "days": [asdict(d) for d in self.days],
            "day_count": self.day_count,
            "average_ratio": self.average_ratio,
            "trend": self.trend.value,
            "trend_message": self.trend_message,
            "has_data": self.has_data
        }


def daily_trend(sessions: List[Session]) -> DailyTrend:
    """
    Compare the chronologically first and last sessions.

    Args:
        sessions: Sessions of one day (any order)
    """
    if len(sessions) < 2:
        return DailyTrend.INSUFFICIENT_DATA

    ordered = sorted(sessions, key=lambda s: s.start_time)
    first_good = ordered[0].good_ticks
    last_good = ordered[-1].good_ticks

    if last_good > first_good * 1.2:
        return DailyTrend.STRONG_IMPROVEMENT
    elif last_good > first_good:
        return DailyTrend.IMPROVEMENT
    elif last_good < first_good:
        return DailyTrend.REGRESSION
    return DailyTrend.STABLE


def daily_report(sessions: List[Session], today: str) -> Union[DailyReport, NoDataReport]:
    """
    Summarize today's sessions.

    Args:
        sessions: Full session history
        today: Calendar day (YYYY-MM-DD)

    Returns:
        DailyReport, or NoDataReport if nothing was recorded today
    """
    todays = [s for s in sessions if s.date == today]
    if not todays:
        return NoDataReport(kind="daily")

    good_ticks = sum(s.good_ticks for s in todays)
    bad_ticks = sum(s.bad_ticks for s in todays)

    return DailyReport(
        date=today,
        session_count=len(todays),
        total_minutes=sum(s.elapsed_seconds() for s in todays) / 60,
        good_minutes=good_ticks / 60,
        bad_minutes=bad_ticks / 60,
        good_ticks=good_ticks,
        bad_ticks=bad_ticks,
        alerts=sum(s.alerts for s in todays),
        max_continuous_minutes=max(s.max_continuous_good for s in todays) / 60,
        good_ratio=ratio_percent(good_ticks, bad_ticks),
        trend=daily_trend(todays)
    )


def recent_sessions(sessions: List[Session], now: float, days: int = 7) -> List[Session]:
    """Sessions started within the trailing `days` days."""
    cutoff = now - days * 24 * 60 * 60
    return [s for s in sessions if s.start_time >= cutoff]


def group_by_day(sessions: List[Session]) -> List[DayStat]:
    """Per-day good/bad minutes and ratio, sorted by date ascending."""
    grouped: Dict[str, List[int]] = {}
    for session in sessions:
        totals = grouped.setdefault(session.date, [0, 0])
        totals[0] += session.good_ticks
        totals[1] += session.bad_ticks

    return [
        DayStat(
            date=date,
            good_minutes=good / 60,
            bad_minutes=bad / 60,
            ratio=ratio_percent(good, bad)
        )
        for date, (good, bad) in sorted(grouped.items())
    ]


def weekly_trend(days: List[DayStat], average_ratio: int) -> WeeklyTrend:
    """Upward 3-day streak wins; otherwise bucket the average."""
    if len(days) < 3:
        return WeeklyTrend.INSUFFICIENT_DATA

    a, b, c = [d.ratio for d in days[-3:]]
    if a < b < c:
        return WeeklyTrend.UPWARD_STREAK

    if average_ratio >= 70:
        return WeeklyTrend.EXCELLENT
    elif average_ratio >= 50:
        return WeeklyTrend.GOOD
    return WeeklyTrend.NEEDS_IMPROVEMENT


def weekly_report(sessions: List[Session], now: float) -> Union[WeeklyReport, NoDataReport]:
    """
    Summarize the trailing 7 days.

    Args:
        sessions: Full session history
        now: Current Unix time

    Returns:
        WeeklyReport, or NoDataReport if no session falls in the window
    """
    window = recent_sessions(sessions, now, days=7)
    if not window:
        return NoDataReport(kind="weekly")

    days = group_by_day(window)
    average_ratio = round_half_up(float(np.mean([d.ratio for d in days])))

    return WeeklyReport(
        days=days,
        day_count=len(days),
        average_ratio=average_ratio,
        trend=weekly_trend(days, average_ratio)
    )


def _short_label(date: str) -> str:
    parsed = datetime.strptime(date, "%Y-%m-%d")
    return f"{parsed.month}/{parsed.day}"


def trend_series(sessions: List[Session], now: float, days: int = 7) -> Tuple[List[str], List[int]]:
    """
    Chart-ready daily good ratios.

    Returns:
        (labels like "3/14", ratios in percent), oldest first
    """
    stats = group_by_day(recent_sessions(sessions, now, days=days))
    return [_short_label(d.date) for d in stats], [d.ratio for d in stats]


def posture_split(sessions: List[Session], today: str) -> Tuple[List[str], List[int]]:
    """
    Chart-ready good vs bad minutes for today.

    Returns:
        (["Good posture", "Poor posture"], [good_minutes, bad_minutes])
    """
    todays = [s for s in sessions if s.date == today]
    good = round_half_up(sum(s.good_ticks for s in todays) / 60)
    bad = round_half_up(sum(s.bad_ticks for s in todays) / 60)
    return ["Good posture", "Poor posture"], [good, bad]


def live_ratio(session: Optional[Session]) -> Optional[int]:
    """Current session good ratio in percent, None before the first tick."""
    if session is None or session.total_ticks == 0:
        return None
    return ratio_percent(session.good_ticks, session.bad_ticks)


class ReportAggregator:
    """Report builder bound to a history source."""

    def __init__(self, storage):
        self.storage = storage

    def daily(self, today: Optional[str] = None):
        today = today or datetime.now().date().isoformat()
        return daily_report(self.storage.load().sessions, today)

    def weekly(self, now: Optional[float] = None):
        now = now if now is not None else datetime.now().timestamp()
        return weekly_report(self.storage.load().sessions, now)

    def trend(self, now: Optional[float] = None, days: int = 7):
        now = now if now is not None else datetime.now().timestamp()
        return trend_series(self.storage.load().sessions, now, days=days)

    def split(self, today: Optional[str] = None):
        today = today or datetime.now().date().isoformat()
        return posture_split(self.storage.load().sessions, today)
