"""
Status Bus - IPC bridge for live session status.

Publishes the tracker's read-only status to storage/status.json so the
dashboard can refresh without touching the tracker.
PRIVACY: No frames, only counters and state.
"""

import json
import os
import time
import threading
from typing import Optional, Dict, Any, Callable
from pathlib import Path


StatusProvider = Callable[[], Optional[Dict[str, Any]]]


class StatusBus:
    """
    Background publisher that writes status snapshots to a JSON file.

    Thread-safe, atomic writes, best-effort delivery.
    """

    def __init__(
        self,
        status_file: str = "storage/status.json",
        update_interval_sec: float = 1.0
    ):
        """
        Initialize status bus.

        Args:
            status_file: Path to status JSON file
            update_interval_sec: How often to publish (default: 1 Hz)
        """
        self.status_file = Path(status_file)
        self.status_file.parent.mkdir(parents=True, exist_ok=True)

        self.update_interval_sec = update_interval_sec

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._provider: Optional[StatusProvider] = None

        self._error_count = 0
        self._last_error_time = 0.0
        self._backoff_sec = 1.0

    def set_provider(self, provider: StatusProvider):
        """
        Set the callback that provides status dictionaries.

        Args:
            provider: Function returning the current status or None
        """
        self._provider = provider

    def start(self):
        """Start the publisher thread."""
        if self._running:
            return

        if not self._provider:
            raise ValueError("Must set status provider before starting")

        self._running = True
        self._thread = threading.Thread(target=self._publish_loop, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the publisher thread and publish one last status."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        self.publish_once()

    def publish_once(self) -> bool:
        """Write the provider's current status now. Returns True on success."""
        if not self._provider:
            return False
        status = self._provider()
        if status is None:
            return False
        try:
            self.write(status)
        except (OSError, TypeError, ValueError) as e:
            print(f"[STATUS_BUS] Error publishing status: {e}")
            return False
        return True

    def _publish_loop(self):
        """Main publisher loop (runs in background thread)."""
        while self._running:
            try:
                status = self._provider()
                if status is not None:
                    self.write(status)

                    # Reset error tracking on success
                    self._error_count = 0
                    self._backoff_sec = 1.0

                time.sleep(self.update_interval_sec)

            except (OSError, TypeError, ValueError) as e:
                self._error_count += 1
                current_time = time.time()

                # Only log errors occasionally to avoid spam
                if current_time - self._last_error_time > 10.0:
                    print(f"[STATUS_BUS] Error publishing status: {e}")
                    self._last_error_time = current_time

                # Exponential backoff on repeated errors
                if self._error_count > 3:
                    self._backoff_sec = min(self._backoff_sec * 2, 30.0)
                    time.sleep(self._backoff_sec)
                else:
                    time.sleep(self.update_interval_sec)

    def write(self, status: Dict[str, Any]):
        """
        Write status to file atomically.

        Uses temp file + os.replace() to ensure atomic write.
        """
        data = dict(status)
        data["ts_unix"] = time.time()
        json_str = json.dumps(data, indent=2, ensure_ascii=False)

        temp_file = self.status_file.with_suffix('.tmp')
        with open(temp_file, 'w', encoding='utf-8') as f:
            f.write(json_str)

        os.replace(temp_file, self.status_file)


def read_status(status_file: str = "storage/status.json", max_age_sec: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """
    Read the last published status.

    Args:
        status_file: Path to status JSON file
        max_age_sec: Treat older snapshots as stale and return None

    Returns:
        Status dictionary, or None if missing, unreadable or stale
    """
    path = Path(status_file)
    if not path.exists():
        return None

    try:
        with open(path, 'r', encoding='utf-8') as f:
            status = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None

    if max_age_sec is not None:
        ts = status.get("ts_unix", 0)
        if time.time() - ts > max_age_sec:
            return None
    return status
