"""App context and dev runner command tests (no camera)."""

import json

import dev_runner
from sitwell.app_context import AppContext
from sitwell.event_logger import EventLogger
from sitwell.settings import Settings
from sitwell.status_bus import StatusBus, read_status

from conftest import good_pose, forward_pose


def make_context(tmp_path, clock, sink):
    ctx = AppContext.create(str(tmp_path / "storage"), sink=sink)
    ctx.clock = clock
    return ctx


def test_settings_persist_and_reach_running_tracker(tmp_path, clock, sink):
    ctx = make_context(tmp_path, clock, sink)
    tracker = ctx.new_tracker()
    tracker.start()

    ctx.update_settings({"head_threshold": 0.5})
    assert tracker.tick(forward_pose()).classification.is_good

    reloaded = AppContext.create(str(tmp_path / "storage"))
    assert reloaded.settings.head_threshold == 0.5

    ctx.reset_settings()
    assert AppContext.create(str(tmp_path / "storage")).settings == Settings()


def test_session_flows_into_reports_and_export(tmp_path, clock, sink):
    ctx = make_context(tmp_path, clock, sink)
    tracker = ctx.new_tracker()
    tracker.start()
    for pose in [good_pose()] * 3 + [forward_pose()]:
        tracker.tick(pose)
        clock.advance(1)
    tracker.stop()

    daily = ctx.daily_report()
    assert daily.good_ratio == 75
    assert ctx.weekly_report().day_count == 1
    assert ctx.achievements()

    path = ctx.export(str(tmp_path / "exports"))
    assert path.name == f"posture-data-{ctx.today()}.json"
    assert json.loads(path.read_text(encoding="utf-8"))["sessions"][0]["good_ticks"] == 3

    events = [e["event_type"] for e in ctx.event_logger.get_recent_events()]
    assert "session_started" in events
    assert "alert" in events
    assert "session_stopped" in events


def test_clear_data(tmp_path, clock, sink):
    ctx = make_context(tmp_path, clock, sink)
    ctx.update_settings({"flip_camera": False})
    tracker = ctx.new_tracker()
    tracker.start()
    tracker.tick(good_pose())
    tracker.stop()

    assert ctx.clear_data()
    assert ctx.history().sessions == []
    assert ctx.settings == Settings()
    assert ctx.event_logger.get_recent_events() == []


def test_status_bus_publishes_tracker_status(tmp_path, clock, sink):
    ctx = make_context(tmp_path, clock, sink)
    tracker = ctx.new_tracker()
    tracker.start()
    tracker.tick(forward_pose())

    status_file = tmp_path / "storage" / "status.json"
    bus = StatusBus(status_file=str(status_file))
    bus.set_provider(tracker.get_status)
    assert bus.publish_once()

    status = read_status(str(status_file))
    assert status["state"] == "detecting"
    assert status["issues"] == ["Head forward"]
    assert status["session"]["bad_ticks"] == 1
    assert read_status(str(tmp_path / "missing.json")) is None


def test_event_logger_survives_unwritable_path(tmp_path):
    logger = EventLogger(str(tmp_path / "logs" / "events.jsonl"))
    real_path = logger.log_path

    # A directory cannot be appended to
    logger.log_path = tmp_path
    logger.log_event("alert", "1", "test")

    logger.log_path = real_path
    assert logger.get_recent_events() == []


def test_runner_settings_and_report_commands(tmp_path, capsys):
    storage_dir = str(tmp_path / "storage")

    assert dev_runner.main(["--storage", storage_dir, "settings", "--set", "alert_frequency=20", "sound_enabled=false"]) == 0
    printed = json.loads(capsys.readouterr().out)
    assert printed["alert_frequency"] == 20
    assert printed["sound_enabled"] is False

    assert dev_runner.main(["--storage", storage_dir, "report"]) == 0
    assert "No daily data yet" in capsys.readouterr().out

    assert dev_runner.main(["--storage", storage_dir, "report", "--weekly", "--json"]) == 0
    assert json.loads(capsys.readouterr().out) == {"kind": "weekly", "has_data": False}

    assert dev_runner.main(["--storage", storage_dir, "clear"]) == 1
    assert dev_runner.main(["--storage", storage_dir, "clear", "--yes"]) == 0


def test_runner_ignores_infinite_setting(tmp_path, capsys):
    storage_dir = str(tmp_path / "storage")

    assert dev_runner.main(["--storage", storage_dir, "settings", "--set", "alert_frequency=Infinity"]) == 0
    out = capsys.readouterr().out
    assert "WARNING: Ignoring invalid setting alert_frequency" in out
    assert json.loads(out[out.index("{"):])["alert_frequency"] == 10
    assert AppContext.create(storage_dir).settings.alert_frequency == 10


def test_parse_assignments():
    assert dev_runner.parse_assignments(["a=1", "b=true", "c=text", "d=0.2"]) == {
        "a": 1, "b": True, "c": "text", "d": 0.2
    }
