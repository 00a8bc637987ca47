"""
Event logger for session activity.

Logs session lifecycle, alerts, achievements and persistence failures.
PRIVACY: Only logs counters and text, never frames.
"""

import json
import time
from pathlib import Path
from typing import Dict, Any, Optional, List
from datetime import datetime


class EventLogger:
    """
    Logger for session events.

    Logs to JSONL format (one JSON object per line).
    Privacy-safe: only counters and text, no frames.
    """

    def __init__(self, log_path: Optional[str] = None):
        """
        Initialize event logger.

        Args:
            log_path: Path to log file (default: storage/events.jsonl)
        """
        if log_path is None:
            log_path = "storage/events.jsonl"

        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log_event(
        self,
        event_type: str,
        session_id: Optional[str],
        reason: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """
        Log an event.

        Args:
            event_type: Type of event (session_started, alert, etc.)
            session_id: Session the event belongs to (None for global events)
            reason: Brief reason string
            metadata: Additional metadata (counters, issues, etc.)
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "unix_time": time.time(),
            "event_type": event_type,
            "session_id": session_id,
            "reason": reason,
            "metadata": metadata or {}
        }

        # Append to JSONL file; the log must never break tracking
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False) + "\n")
        except OSError as e:
            print(f"WARNING: Could not write event log: {e}")

    def log_session(self, event_type: str, session_id: str, counters: Dict[str, Any]):
        """Log a session lifecycle event (started/paused/resumed/stopped)."""
        self.log_event(
            event_type=event_type,
            session_id=session_id,
            reason=event_type.replace("_", " "),
            metadata={"counters": counters}
        )

    def log_alert(self, session_id: str, issues: List[str], alert_count: int):
        """Log an alert."""
        self.log_event(
            event_type="alert",
            session_id=session_id,
            reason=", ".join(issues) or "posture issue",
            metadata={"issues": issues, "alert_count": alert_count}
        )

    def log_achievement(self, key: str, name: str, session_id: Optional[str] = None):
        """Log an achievement unlock."""
        self.log_event(
            event_type="achievement_unlocked",
            session_id=session_id,
            reason=name,
            metadata={"key": key}
        )

    def log_persist_failed(self, session_id: str, final: bool):
        """Log a failed session snapshot."""
        self.log_event(
            event_type="persist_failed",
            session_id=session_id,
            reason="final snapshot failed" if final else "periodic snapshot failed",
            metadata={"final": final}
        )

    def get_recent_events(self, limit: int = 100) -> list:
        """
        Get recent events from log.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of event dictionaries
        """
        if not self.log_path.exists():
            return []

        events = []
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    events.append(json.loads(line.strip()))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def purge_logs(self):
        """Delete all logged events (privacy purge)."""
        if self.log_path.exists():
            self.log_path.unlink()
