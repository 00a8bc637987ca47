"""Achievement rule tests."""

from datetime import datetime, timedelta

from sitwell.achievements import Achievement, AchievementEngine, RULES, unlocked_sorted
from sitwell.session import Session
from sitwell.storage import HistoryStore

FOCUS = "连续良好时间15分钟"
FEW_ALERTS = "单日提醒次数<10"
THREE_DAYS = "连续3天良好率>70%"
PERFECT_DAY = "单日良好率>80%"

DAY_ONE = datetime(2024, 3, 12, 9, 0, 0)


def make_session(day_offset=0, good=0, bad=0, alerts=0, max_streak=0, minute=0):
    start = (DAY_ONE + timedelta(days=day_offset, minutes=minute)).timestamp()
    session = Session.begin(start)
    session.good_ticks = good
    session.bad_ticks = bad
    session.alerts = alerts
    session.max_continuous_good = max_streak
    session.end_time = start + good + bad
    return session


def evaluate(latest, sessions, achievements=None):
    history = HistoryStore(sessions=list(sessions), achievements=list(achievements or []))
    return [a.key for a in AchievementEngine().evaluate(latest, history, now=DAY_ONE)]


def test_rule_catalog():
    assert [r.key for r in RULES] == [FOCUS, FEW_ALERTS, THREE_DAYS, PERFECT_DAY]
    assert [r["name"] for r in AchievementEngine().catalog()] == ["专注力冠军", "自律之星", "坐姿小达人", "完美坐姿日"]


def test_focus_streak_threshold():
    long_streak = make_session(good=901, max_streak=901, alerts=20)
    assert FOCUS in evaluate(long_streak, [long_streak])

    exactly = make_session(good=900, max_streak=900, alerts=20)
    assert FOCUS in evaluate(exactly, [exactly])

    short = make_session(good=899, max_streak=899, alerts=20)
    assert FOCUS not in evaluate(short, [short])


def test_unlocked_achievement_is_not_repeated():
    session = make_session(good=901, max_streak=901, alerts=20)
    known = [Achievement(key=FOCUS, name="专注力冠军", unlocked_at=DAY_ONE.isoformat())]
    assert FOCUS not in evaluate(session, [session], known)


def test_few_alerts_sums_the_whole_day():
    morning = make_session(good=100, bad=100, alerts=6)
    afternoon = make_session(good=100, bad=100, alerts=3, minute=300)
    assert FEW_ALERTS in evaluate(afternoon, [morning, afternoon])

    busy = make_session(good=100, bad=100, alerts=4, minute=300)
    assert FEW_ALERTS not in evaluate(busy, [morning, busy])


def test_three_good_days():
    sessions = [
        make_session(day_offset=0, good=80, bad=20, alerts=20),
        make_session(day_offset=1, good=75, bad=25, alerts=20),
        make_session(day_offset=2, good=71, bad=29, alerts=20),
    ]
    assert THREE_DAYS in evaluate(sessions[-1], sessions)


def test_three_good_days_needs_every_session_above_threshold():
    sessions = [
        make_session(day_offset=0, good=80, bad=20, alerts=20),
        make_session(day_offset=1, good=70, bad=30, alerts=20),
        make_session(day_offset=2, good=90, bad=10, alerts=20),
    ]
    # 70% is not above 70%
    assert THREE_DAYS not in evaluate(sessions[-1], sessions)


def test_three_good_days_uses_latest_three_dates():
    sessions = [
        make_session(day_offset=0, good=10, bad=90, alerts=20),
        make_session(day_offset=1, good=80, bad=20, alerts=20),
        make_session(day_offset=2, good=80, bad=20, alerts=20),
        make_session(day_offset=3, good=80, bad=20, alerts=20),
    ]
    assert THREE_DAYS in evaluate(sessions[-1], sessions)


def test_three_good_days_needs_three_dates():
    sessions = [
        make_session(day_offset=0, good=90, bad=10, alerts=20),
        make_session(day_offset=1, good=90, bad=10, alerts=20),
    ]
    assert THREE_DAYS not in evaluate(sessions[-1], sessions)


def test_perfect_day():
    first = make_session(good=90, bad=10, alerts=20)
    second = make_session(good=70, bad=30, alerts=20, minute=120)
    # 160 / 200 = 80%, not above
    assert PERFECT_DAY not in evaluate(second, [first, second])

    third = make_session(good=10, bad=0, alerts=20, minute=240)
    assert PERFECT_DAY in evaluate(third, [first, second, third])


def test_empty_day_does_not_unlock_perfect_day():
    empty = make_session(alerts=20)
    assert evaluate(empty, [empty]) == []


def test_evaluate_leaves_history_untouched():
    session = make_session(good=1000, max_streak=1000)
    history = HistoryStore(sessions=[session])
    unlocked = AchievementEngine().evaluate(session, history, now=DAY_ONE)

    assert [a.key for a in unlocked] == [FOCUS, FEW_ALERTS, PERFECT_DAY]
    assert history.achievements == []

    engine = AchievementEngine()
    assert engine.unlock_into(history, unlocked) == unlocked
    assert engine.unlock_into(history, unlocked) == []
    assert engine.evaluate(session, history, now=DAY_ONE) == []


def test_unlocked_sorted_newest_first():
    history = HistoryStore(achievements=[
        Achievement(key=FOCUS, name="a", unlocked_at="2024-03-12T09:00:00"),
        Achievement(key=PERFECT_DAY, name="b", unlocked_at="2024-03-14T09:00:00"),
    ])
    assert [a.key for a in unlocked_sorted(history)] == [PERFECT_DAY, FOCUS]


def test_legacy_date_field():
    achievement = Achievement.from_dict({"key": FOCUS, "name": "专注力冠军", "date": "2024-03-12"})
    assert achievement.unlocked_at == "2024-03-12"
