#!/usr/bin/env python3
"""
SitWell Development Runner
Runs a monitoring session from the terminal, and prints reports from history.

Usage:
    python dev_runner.py run [--camera INDEX] [--duration SEC] [--no-notify]
    python dev_runner.py report [--weekly]
    python dev_runner.py achievements
    python dev_runner.py export [--out DIR]
    python dev_runner.py settings [--set KEY=VALUE ...] [--reset]
    python dev_runner.py clear --yes
"""

import argparse
import json
import sys
import time
from pathlib import Path

from sitwell.app_context import AppContext
from sitwell.notifications import CompositeSink, ConsoleSink, DesktopNotifier
from sitwell.performance_config import PerformanceConfig
from sitwell.reports import NoDataReport
from sitwell.status_bus import StatusBus


def format_status_line(status, stats):
    """Format a single line of live status output."""
    session = status.get("session")
    if not session:
        return f"[{status['state'].upper()}] No session"

    ratio = status.get("good_ratio")
    line = (
        f"[{status['state'].upper()}] "
        f"Good: {session['good_ticks']:4d} | "
        f"Bad: {session['bad_ticks']:4d} | "
        f"Ratio: {ratio if ratio is not None else '--':>3}% | "
        f"Streak: {session['continuous_good']:4d}s | "
        f"Alerts: {session['alerts']:3d} | "
        f"FPS: {stats['actual_fps']:4.1f}"
    )
    if status.get("issues"):
        line += f" | {', '.join(status['issues'])}"
    return line


def parse_assignments(pairs):
    """Parse KEY=VALUE pairs; values are decoded as JSON where possible."""
    updates = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"expected KEY=VALUE, got '{pair}'")
        key, raw = pair.split("=", 1)
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        updates[key.strip()] = value
    return updates


def cmd_run(ctx: AppContext, args) -> int:
    # Deferred so report commands work without a camera stack
    from sitwell.pose_loop import PoseLoop

    perf_config = PerformanceConfig.quality() if args.perf_mode == "quality" else PerformanceConfig.lightweight()
    if args.fps is not None:
        perf_config.target_fps = args.fps

    settings = ctx.settings
    sinks = [ConsoleSink()]
    if not args.no_notify:
        sinks.append(DesktopNotifier(sound_enabled=settings.sound_enabled))
    ctx.sink = CompositeSink(sinks)

    print("=" * 80)
    print("SitWell - Posture Session Dev Runner")
    print("=" * 80)
    print(f"Camera: {args.camera} (flip={'on' if settings.flip_camera else 'off'})")
    print(f"Capture: {perf_config}")
    print(f"Thresholds: head={settings.head_threshold}, spine={settings.spine_threshold}")
    print(f"Alert every: {settings.alert_frequency}s while posture is poor")
    print(f"Storage: {args.storage}")
    print()
    print("PRIVACY: No frames are saved. Only landmarks and counters are used.")
    print()
    print("Press Ctrl+C to stop")
    print("=" * 80)
    print()

    tracker = ctx.new_tracker()
    pose_loop = PoseLoop(
        tracker,
        camera_index=args.camera,
        flip_camera=settings.flip_camera,
        perf_config=perf_config
    )

    status_bus = StatusBus(status_file=str(Path(args.storage) / "status.json"), update_interval_sec=1.0)
    status_bus.set_provider(tracker.get_status)

    # Ticks arriving before tracker.start() are dropped
    if not pose_loop.start():
        print(f"Camera failed to start: {pose_loop.start_error}")
        return 1

    tracker.start()
    status_bus.start()
    print("Status bus started (publishing to status.json at 1 Hz)")

    started = time.time()
    last_print = started
    try:
        while True:
            time.sleep(1.0)

            # Periodic snapshot even if the camera stalls
            tracker.maybe_persist()

            now = time.time()
            if now - last_print >= args.interval:
                print(format_status_line(tracker.get_status(), pose_loop.get_stats()))
                last_print = now

            if args.duration and now - started >= args.duration:
                print()
                print(f"Duration of {args.duration:.0f}s reached")
                break
    except KeyboardInterrupt:
        print()

    print("=" * 80)
    print("Stopping session...")
    pose_loop.stop()

    result = tracker.stop()
    status_bus.stop()

    session = result.session
    print()
    print("Session Summary:")
    print(f"  Session: {session.id} ({session.date})")
    print(f"  Good ticks: {session.good_ticks}")
    print(f"  Bad ticks: {session.bad_ticks}")
    print(f"  Longest good streak: {session.max_continuous_good}s")
    print(f"  Alerts: {session.alerts}")
    if not result.persisted:
        print("  WARNING: Final snapshot could not be saved")
    if result.unlocked:
        print()
        print("Achievements unlocked:")
        for achievement in result.unlocked:
            print(f"  {achievement.name} ({achievement.key})")

    final_stats = pose_loop.get_stats()
    print()
    print(f"  Frames: {final_stats['frames_processed']} "
          f"({final_stats['frames_without_pose']} without pose)")
    print(f"  Average FPS: {final_stats['actual_fps']:.2f}")
    print()
    print("Session stopped cleanly.")
    print("=" * 80)
    return 0


def cmd_report(ctx: AppContext, args) -> int:
    report = ctx.weekly_report() if args.weekly else ctx.daily_report()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return 0

    if isinstance(report, NoDataReport):
        print(f"No {report.kind} data yet. Run a session first.")
        return 0

    if args.weekly:
        print("Weekly Report")
        print(f"  Days with data: {report.day_count}")
        print(f"  Average good ratio: {report.average_ratio}%")
        for day in report.days:
            print(f"    {day.date}: {day.ratio:3d}% "
                  f"(good {day.good_minutes:.1f}m, poor {day.bad_minutes:.1f}m)")
    else:
        print(f"Daily Report ({report.date})")
        print(f"  Sessions: {report.session_count}")
        print(f"  Total time: {report.total_minutes:.1f}m")
        print(f"  Good time: {report.good_minutes:.1f}m")
        print(f"  Poor time: {report.bad_minutes:.1f}m")
        print(f"  Longest streak: {report.max_continuous_minutes:.1f}m")
        print(f"  Alerts: {report.alerts}")
        print(f"  Good ratio: {report.good_ratio}%")
    print(f"  Trend: {report.trend_message}")
    return 0


def cmd_achievements(ctx: AppContext, args) -> int:
    unlocked = {a.key: a for a in ctx.achievements()}
    for rule in ctx.achievement_engine.catalog():
        achievement = unlocked.get(rule["key"])
        mark = "✓" if achievement else "✗"
        when = f"  (unlocked {achievement.unlocked_at})" if achievement else ""
        print(f"  {mark} {rule['name']}: {rule['description']}{when}")
    return 0


def cmd_export(ctx: AppContext, args) -> int:
    try:
        path = ctx.export(args.out)
    except OSError as e:
        print(f"ERROR: Export failed: {e}")
        return 1
    print(f"Exported history to {path}")
    return 0


def cmd_settings(ctx: AppContext, args) -> int:
    if args.reset:
        settings = ctx.reset_settings()
    elif args.set:
        try:
            updates = parse_assignments(args.set)
        except ValueError as e:
            print(f"ERROR: {e}")
            return 1
        settings = ctx.update_settings(updates)
    else:
        settings = ctx.settings
    print(json.dumps(settings.to_dict(), indent=2))
    return 0


def cmd_clear(ctx: AppContext, args) -> int:
    if not args.yes:
        print("Refusing to clear history without --yes")
        return 1
    if not ctx.clear_data():
        print("ERROR: Failed to clear history")
        return 1
    print("History, achievements and settings cleared.")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="SitWell Dev Runner")
    parser.add_argument("--storage", type=str, default="./storage", help="Storage directory (default: ./storage)")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run a monitoring session")
    run.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    run.add_argument("--fps", type=float, help="Override target FPS (one tick per frame)")
    run.add_argument("--perf-mode", type=str, choices=["lightweight", "quality"],
                     default="lightweight", help="Capture preset (default: lightweight)")
    run.add_argument("--interval", type=float, default=2.0, help="Print interval in seconds (default: 2.0)")
    run.add_argument("--duration", type=float, help="Stop automatically after this many seconds")
    run.add_argument("--no-notify", action="store_true", help="Console output only, no desktop notifications")
    run.set_defaults(func=cmd_run)

    report = sub.add_parser("report", help="Print today's or this week's report")
    report.add_argument("--weekly", action="store_true", help="Weekly report instead of daily")
    report.add_argument("--json", action="store_true", help="Print as JSON")
    report.set_defaults(func=cmd_report)

    achievements = sub.add_parser("achievements", help="List achievements")
    achievements.set_defaults(func=cmd_achievements)

    export = sub.add_parser("export", help="Export history to posture-data-<date>.json")
    export.add_argument("--out", type=str, default=".", help="Output directory (default: .)")
    export.set_defaults(func=cmd_export)

    settings = sub.add_parser("settings", help="Show or change settings")
    settings.add_argument("--set", nargs="+", metavar="KEY=VALUE", help="Update settings")
    settings.add_argument("--reset", action="store_true", help="Restore default settings")
    settings.set_defaults(func=cmd_settings)

    clear = sub.add_parser("clear", help="Delete all history")
    clear.add_argument("--yes", action="store_true", help="Confirm deletion")
    clear.set_defaults(func=cmd_clear)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    ctx = AppContext.create(storage_dir=args.storage)
    return args.func(ctx, args)


if __name__ == "__main__":
    sys.exit(main())
