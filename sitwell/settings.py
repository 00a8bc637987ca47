"""
User settings and the merge-over-defaults reducer.

Settings are only ever replaced wholesale: every update goes through
merge_settings(), which starts from the defaults, so missing or unknown keys
always resolve the same way.
"""

import math
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional


DEFAULT_HEAD_THRESHOLD = 0.15
DEFAULT_SPINE_THRESHOLD = 0.08


@dataclass(frozen=True)
class Settings:
    """
    Process-wide settings.

    Durations in minutes, alert frequency in seconds, thresholds in
    normalized image units.
    """
    study_duration: int = 25  # minutes
    break_duration: int = 5  # minutes
    sound_enabled: bool = True
    alert_frequency: int = 10  # seconds between alerts
    flip_camera: bool = True
    calibrated_angle: float = 90.0  # degrees (stored, not used for classification)
    head_threshold: float = DEFAULT_HEAD_THRESHOLD
    spine_threshold: float = DEFAULT_SPINE_THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


# Fields constrained to [0, 1]
_UNIT_RANGE_FIELDS = ("head_threshold", "spine_threshold")


def _coerce(name: str, kind: type, value: Any) -> Any:
    """Coerce a raw value to the field type, raising ValueError if unusable."""
    if kind is bool:
        if isinstance(value, bool):
            return value
        raise ValueError(f"{name} must be a bool")

    if isinstance(value, bool) or value is None:
        raise ValueError(f"{name} must be a number")

    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{name} must be finite")

    if kind is int:
        coerced = int(value)
        if coerced < 0:
            raise ValueError(f"{name} must be >= 0")
        return coerced

    coerced = float(value)
    if not math.isfinite(coerced):
        raise ValueError(f"{name} must be finite")
    if name in _UNIT_RANGE_FIELDS and not 0.0 <= coerced <= 1.0:
        raise ValueError(f"{name} must be within [0, 1]")
    return coerced


def merge_settings(current: Optional[Settings], updates: Optional[Dict[str, Any]]) -> Settings:
    """
    Merge updates over current settings, which are themselves over defaults.

    Unknown keys are ignored. Values that cannot be coerced to the field type
    keep the current value.

    Args:
        current: Current settings (defaults if None)
        updates: Partial settings dictionary

    Returns:
        New Settings instance
    """
    base = (current or Settings()).to_dict()
    types = {f.name: f.type for f in fields(Settings)}

    for name, value in (updates or {}).items():
        if name not in types:
            continue
        try:
            base[name] = _coerce(name, types[name], value)
        except (TypeError, ValueError, OverflowError):
            print(f"WARNING: Ignoring invalid setting {name}={value!r}")

    return Settings(**base)


def settings_from_dict(data: Optional[Dict[str, Any]]) -> Settings:
    """Load settings from a stored dictionary, merging over defaults."""
    if not isinstance(data, dict):
        return Settings()
    return merge_settings(Settings(), data)


def reset_settings() -> Settings:
    """Default settings."""
    return Settings()
