"""Session tracker tests: counters, debounce, lifecycle and persistence."""

import pytest

from sitwell.achievements import AchievementEngine
from sitwell.events import AlertEvent, IssuesRaised, IssuesCleared, SessionPersisted
from sitwell.settings import Settings
from sitwell.storage import HistoryStorage
from sitwell.tracker import SessionTracker, TrackerState, InvalidTransition

from conftest import good_pose, forward_pose


class FlakyStorage(HistoryStorage):
    """Fails the next `failures` session writes."""

    def __init__(self, storage_dir, failures=0):
        super().__init__(storage_dir)
        self.failures = failures
        self.attempts = 0

    def upsert_session(self, session):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            return False
        return super().upsert_session(session)


def make_tracker(storage, clock, sink, settings=None):
    return SessionTracker(
        storage=storage,
        settings=settings or Settings(),
        achievement_engine=AchievementEngine(),
        sink=sink,
        clock=clock
    )


def run_ticks(tracker, clock, poses):
    results = []
    for pose in poses:
        results.append(tracker.tick(pose))
        clock.advance(1)
    return results


def test_counters_and_streaks(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()

    run_ticks(tracker, clock, [good_pose(), good_pose(), forward_pose(), good_pose()])

    session = tracker.snapshot()
    assert session.good_ticks == 3
    assert session.bad_ticks == 1
    assert session.continuous_good == 1
    assert session.max_continuous_good == 2
    assert session.alerts == 1


def test_max_streak_never_decreases(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()

    best = 0
    for pose in [good_pose()] * 4 + [forward_pose()] + [good_pose()] * 2 + [forward_pose()]:
        tracker.tick(pose)
        clock.advance(1)
        session = tracker.snapshot()
        assert session.max_continuous_good >= best
        assert session.continuous_good <= session.max_continuous_good
        best = session.max_continuous_good

    assert best == 4


def test_alerts_are_debounced_on_wall_clock(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink, Settings(alert_frequency=10))
    tracker.start()
    started = clock()

    run_ticks(tracker, clock, [forward_pose()] * 25)

    session = tracker.snapshot()
    elapsed = (clock() - 1) - started
    assert session.alerts == 3
    assert session.alerts <= elapsed // 10 + 1
    assert [a.alert_count for a in sink.alerts] == [1, 2, 3]
    assert all(isinstance(a, AlertEvent) for a in sink.alerts)


def test_zero_alert_frequency_alerts_every_bad_tick(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink, Settings(alert_frequency=0))
    tracker.start()

    run_ticks(tracker, clock, [forward_pose()] * 4)

    assert tracker.snapshot().alerts == 4


def test_tick_effects_and_sink_order(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()

    bad = tracker.tick(forward_pose())
    assert bad.processed
    assert isinstance(bad.effects[0], IssuesRaised)
    assert bad.effects[0].labels == ("Head forward",)
    assert isinstance(bad.effects[1], AlertEvent)
    assert isinstance(bad.effects[-1], SessionPersisted)

    clock.advance(1)
    good = tracker.tick(good_pose())
    assert isinstance(good.effects[0], IssuesCleared)

    assert sink.issues == [["Head forward"]]
    assert sink.cleared == 1
    assert len(sink.alerts) == 1


def test_paused_ticks_are_dropped(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    run_ticks(tracker, clock, [good_pose()] * 3)

    tracker.pause()
    results = run_ticks(tracker, clock, [forward_pose()] * 5)
    assert not any(r.processed for r in results)
    assert all(r.state == TrackerState.PAUSED for r in results)

    tracker.resume()
    run_ticks(tracker, clock, [good_pose()])

    session = tracker.snapshot()
    assert session.good_ticks == 4
    assert session.bad_ticks == 0
    assert session.continuous_good == 4


def test_toggle_pause(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    assert tracker.toggle_pause() == TrackerState.PAUSED
    assert tracker.toggle_pause() == TrackerState.DETECTING


def test_ticks_before_start_and_after_stop_are_dropped(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    assert not tracker.tick(good_pose()).processed

    tracker.start()
    tracker.stop()
    result = tracker.tick(good_pose())
    assert not result.processed
    assert result.state == TrackerState.STOPPED


def test_invalid_transitions_raise(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)

    with pytest.raises(InvalidTransition):
        tracker.pause()
    with pytest.raises(InvalidTransition):
        tracker.stop()

    tracker.start()
    with pytest.raises(InvalidTransition):
        tracker.start()
    with pytest.raises(InvalidTransition):
        tracker.resume()

    tracker.stop()
    with pytest.raises(InvalidTransition):
        tracker.start()
    with pytest.raises(InvalidTransition):
        tracker.stop()


def test_snapshot_written_every_five_seconds(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    session = tracker.start()

    # First tick persists immediately
    tracker.tick(good_pose())
    assert storage.load().sessions[0].good_ticks == 1

    for _ in range(4):
        clock.advance(1)
        tracker.tick(good_pose())
    assert storage.load().sessions[0].good_ticks == 1

    clock.advance(1)
    tracker.tick(good_pose())
    stored = storage.load().sessions
    assert len(stored) == 1
    assert stored[0].id == session.id
    assert stored[0].good_ticks == 6


def test_maybe_persist_covers_stalled_ticks(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    assert tracker.maybe_persist()

    clock.advance(2)
    assert not tracker.maybe_persist()

    clock.advance(3)
    assert tracker.maybe_persist()


def test_snapshot_continues_while_paused(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    tracker.tick(forward_pose())
    tracker.pause()

    clock.advance(2)
    assert not tracker.tick(good_pose()).processed
    assert not tracker.maybe_persist()

    clock.advance(3)
    assert tracker.maybe_persist()
    stored = storage.load().sessions[0]
    assert stored.end_time == clock()
    assert stored.bad_ticks == 1
    assert stored.good_ticks == 0


def test_failed_snapshot_retries_next_tick(tmp_path, clock, sink):
    storage = FlakyStorage(str(tmp_path / "storage"), failures=1)
    tracker = make_tracker(storage, clock, sink)
    tracker.start()

    first = tracker.tick(good_pose())
    assert not any(isinstance(e, SessionPersisted) for e in first.effects)
    assert storage.load().sessions == []
    assert tracker.get_status()["persist_failures"] == 1

    clock.advance(1)
    second = tracker.tick(good_pose())
    assert any(isinstance(e, SessionPersisted) for e in second.effects)
    assert storage.load().sessions[0].good_ticks == 2


def test_stop_persists_final_session(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    run_ticks(tracker, clock, [good_pose()] * 3 + [forward_pose()] * 2)

    result = tracker.stop()

    assert result.persisted
    assert tracker.state == TrackerState.STOPPED
    stored = storage.load().sessions
    assert len(stored) == 1
    assert stored[0].to_dict() == result.session.to_dict()
    assert stored[0].end_time == clock()


def test_stop_retries_final_snapshot(tmp_path, clock, sink):
    storage = FlakyStorage(str(tmp_path / "storage"), failures=0)
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    tracker.tick(good_pose())

    storage.failures = 2
    result = tracker.stop()
    assert result.persisted
    assert storage.load().sessions[0].good_ticks == 1


def test_stop_with_storage_down_still_judges_session(tmp_path, clock, sink):
    storage = FlakyStorage(str(tmp_path / "storage"), failures=1000)
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    run_ticks(tracker, clock, [good_pose()] * 5)

    result = tracker.stop()
    assert not result.persisted
    assert tracker.state == TrackerState.STOPPED
    assert "单日良好率>80%" in [a.key for a in result.unlocked]


def test_focus_streak_unlocks_on_stop(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    run_ticks(tracker, clock, [good_pose()] * 901)

    result = tracker.stop()

    keys = [a.key for a in result.unlocked]
    assert "连续良好时间15分钟" in keys
    assert [e.key for e in sink.achievements] == keys
    assert storage.load().achievement_keys() == set(keys)


def test_achievements_unlock_once_across_sessions(storage, clock, sink):
    first = make_tracker(storage, clock, sink)
    first.start()
    run_ticks(first, clock, [good_pose()] * 901)
    unlocked_first = first.stop().unlocked
    assert unlocked_first

    clock.advance(60)
    second = make_tracker(storage, clock, sink)
    second.start()
    run_ticks(second, clock, [good_pose()] * 901)
    assert second.stop().unlocked == []

    stored_keys = [a.key for a in storage.load().achievements]
    assert len(stored_keys) == len(set(stored_keys))


def test_settings_update_applies_to_next_tick(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    tracker.start()
    assert not tracker.tick(forward_pose()).classification.is_good

    tracker.update_settings(Settings(head_threshold=0.5))
    clock.advance(1)
    assert tracker.tick(forward_pose()).classification.is_good


def test_get_status(storage, clock, sink):
    tracker = make_tracker(storage, clock, sink)
    status = tracker.get_status()
    assert status["state"] == "idle"
    assert status["session"] is None
    assert status["good_ratio"] is None

    tracker.start()
    run_ticks(tracker, clock, [good_pose(), good_pose(), good_pose(), forward_pose()])

    status = tracker.get_status()
    assert status["state"] == "detecting"
    assert status["good_ratio"] == 75
    assert status["issues"] == ["Head forward"]
    assert status["elapsed_sec"] == 4
