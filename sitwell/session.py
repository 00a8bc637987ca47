"""
Session record for one monitoring run.

PRIVACY: Only counters and timestamps, never frames.
"""

from dataclasses import dataclass, asdict, replace
from datetime import datetime
from typing import Optional, Dict, Any


_COUNTER_FIELDS = ("good_ticks", "bad_ticks", "alerts", "continuous_good", "max_continuous_good")

def local_date(timestamp: float) -> str:
    """Local calendar day (YYYY-MM-DD) for a Unix timestamp."""
    return datetime.fromtimestamp(timestamp).date().isoformat()


@dataclass
class Session:
    """
    Per-session counters.

    Ticks are posture samples; at the default 1 FPS one tick is one second.
    The date is fixed when the session is created.
    """
    id: str
    date: str  # YYYY-MM-DD, local
    start_time: float  # Unix seconds
    end_time: float  # Unix seconds (last snapshot)
    good_ticks: int = 0
    bad_ticks: int = 0
    alerts: int = 0
    continuous_good: int = 0
    max_continuous_good: int = 0
    last_alert_time: Optional[float] = None

    @classmethod
    def begin(cls, now: float) -> 'Session':
        """Create a fresh session starting at `now`."""
        return cls(
            id=str(int(now * 1000)),
            date=local_date(now),
            start_time=now,
            end_time=now
        )

    @property
    def total_ticks(self) -> int:
        return self.good_ticks + self.bad_ticks

    def good_ratio(self) -> Optional[float]:
        """Fraction of ticks classified good, None if no ticks."""
        total = self.total_ticks
        if total == 0:
            return None
        return self.good_ticks / total

    def elapsed_seconds(self) -> float:
        return max(0.0, self.end_time - self.start_time)

    def copy(self) -> 'Session':
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        """
        Create from dictionary, ignoring unknown keys.

        Missing or null counters load as 0. Raises ValueError, TypeError or
        KeyError for records without a string id and date or with unusable
        numbers.
        """
        if not isinstance(data.get("id"), str) or not isinstance(data.get("date"), str):
            raise ValueError("session id and date must be strings")

        start_time = float(data["start_time"])
        end_time = data.get("end_time")
        last_alert_time = data.get("last_alert_time")

        return cls(
            id=data["id"],
            date=data["date"],
            start_time=start_time,
            end_time=float(end_time) if end_time is not None else start_time,
            last_alert_time=float(last_alert_time) if last_alert_time is not None else None,
            **{name: int(data.get(name) or 0) for name in _COUNTER_FIELDS}
        )
