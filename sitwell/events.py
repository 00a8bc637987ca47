"""
Events and tick effects emitted by the session tracker.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Tuple


@dataclass(frozen=True)
class IssuesRaised:
    """A bad tick; issues should be shown to the user."""
    issues: Tuple[str, ...]  # issue tag values, in emission order
    labels: Tuple[str, ...]  # human-readable labels


@dataclass(frozen=True)
class IssuesCleared:
    """A good tick; any displayed issues should be cleared."""


@dataclass(frozen=True)
class AlertEvent:
    """
    Alert side-effect (sound + haptic downstream).

    Only emitted when the debounce window has elapsed.
    """
    timestamp: float
    session_id: str
    issues: Tuple[str, ...]
    labels: Tuple[str, ...]
    alert_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


@dataclass(frozen=True)
class SessionPersisted:
    """A session snapshot reached storage."""
    session_id: str


@dataclass(frozen=True)
class AchievementEvent:
    """An achievement was unlocked."""
    key: str
    name: str
    unlocked_at: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)
