"""
Notification sinks for alerts and achievement unlocks.

The tracker never plays sounds or draws anything itself. It hands events to a
NotificationSink supplied by the caller. DesktopNotifier posts native
notifications via terminal-notifier (falling back to osascript on macOS).

PRIVACY: No frames, only text notifications.
"""

import sys
import subprocess
from typing import Optional, List, Sequence

from .events import AlertEvent, AchievementEvent


class NotificationSink:
    """
    Receiver for tracker output.

    All methods are no-ops; subclasses override what they present.
    """

    def on_issues(self, labels: Sequence[str]):
        """Issues for the current bad tick."""

    def on_issues_cleared(self):
        """Current tick is good; clear any displayed issues."""

    def on_alert(self, event: AlertEvent):
        """Debounced alert (sound + haptic downstream)."""

    def on_achievement(self, event: AchievementEvent):
        """Achievement unlocked."""


class NullSink(NotificationSink):
    """Sink that drops everything."""


class CompositeSink(NotificationSink):
    """Fan out to several sinks in order."""

    def __init__(self, sinks: List[NotificationSink]):
        self.sinks = list(sinks)

    def on_issues(self, labels):
        for sink in self.sinks:
            sink.on_issues(labels)

    def on_issues_cleared(self):
        for sink in self.sinks:
            sink.on_issues_cleared()

    def on_alert(self, event):
        for sink in self.sinks:
            sink.on_alert(event)

    def on_achievement(self, event):
        for sink in self.sinks:
            sink.on_achievement(event)


class ConsoleSink(NotificationSink):
    """Prints alerts and unlocks to stdout (dev runner)."""

    def on_alert(self, event: AlertEvent):
        print(f"  [ALERT #{event.alert_count}] {', '.join(event.labels) or 'Posture issue'}")

    def on_achievement(self, event: AchievementEvent):
        print(f"  [ACHIEVEMENT] Unlocked: {event.name} ({event.key})")


class DesktopNotifier(NotificationSink):
    """
    Native desktop notifications.

    Posts alerts and unlocks with terminal-notifier when available, otherwise
    via osascript. Sound is attached only when sound is enabled.
    """

    def __init__(self, app_name: str = "SitWell", sound_enabled: bool = True):
        """
        Initialize desktop notifier.

        Args:
            app_name: Application name for notifications
            sound_enabled: Attach the default sound to notifications
        """
        self.app_name = app_name
        self.sound_enabled = sound_enabled

    def on_alert(self, event: AlertEvent):
        message = ", ".join(event.labels) or "Check your posture"
        self.post(title="Posture Check", message=message, subtitle=f"Alert #{event.alert_count}")

    def on_achievement(self, event: AchievementEvent):
        self.post(title="Achievement unlocked", message=event.name, subtitle=event.key)

    def post(self, title: str, message: str, subtitle: Optional[str] = None) -> bool:
        """
        Post a notification without blocking the caller.

        Returns:
            True if posted successfully
        """
        cmd = ["terminal-notifier", "-title", title, "-message", message]
        if subtitle:
            cmd.extend(["-subtitle", subtitle])
        if self.sound_enabled:
            cmd.extend(["-sound", "default"])

        try:
            # Use Popen to make it non-blocking
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True
            )

            # Give it 0.1 seconds to detect immediate failures
            try:
                _, stderr = proc.communicate(timeout=0.1)
                if stderr:
                    print(f"  [NOTIFICATION] Warning: {stderr.strip()}")
            except subprocess.TimeoutExpired:
                # Still running - notification was handed off
                pass

        except FileNotFoundError:
            return self._post_via_osascript(title, message, subtitle)
        except OSError as e:
            print(f"  [NOTIFICATION] Error: {e}")
            return False

        return True

    def _post_via_osascript(self, title: str, message: str, subtitle: Optional[str] = None) -> bool:
        """Fallback when terminal-notifier is not installed (macOS only)."""
        if sys.platform != "darwin":
            print(f"  [NOTIFICATION] {title}: {message}")
            return False

        script = f'display notification "{message}" with title "{title}"'
        if subtitle:
            script += f' subtitle "{subtitle}"'
        if self.sound_enabled:
            script += ' sound name "default"'

        try:
            subprocess.run(["osascript", "-e", script], capture_output=True, timeout=2.0)
        except (subprocess.TimeoutExpired, FileNotFoundError):
            print("WARNING: Could not post notification (osascript failed)")
            return False

        return True
