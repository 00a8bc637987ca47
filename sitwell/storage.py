"""
Local storage for session history, achievements and settings.

Everything lives in one JSON document (storage/history.json). Writes go to a
temp file first and are swapped in with os.replace(), so a crash never leaves
a half-written history behind.

PRIVACY: Only counters and timestamps are stored, never frames.
"""

import json
import os
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime

from .session import Session
from .settings import Settings, settings_from_dict
from .achievements import Achievement


HISTORY_VERSION = "1.0.0"


@dataclass
class HistoryStore:
    """The single persisted aggregate."""
    sessions: List[Session] = field(default_factory=list)
    achievements: List[Achievement] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    version: str = HISTORY_VERSION
    last_save: Optional[str] = None  # ISO timestamp

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sessions": [s.to_dict() for s in self.sessions],
            "achievements": [a.to_dict() for a in self.achievements],
            "settings": self.settings.to_dict(),
            "version": self.version,
            "last_save": self.last_save
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryStore':
        """
        Create from dictionary.

        Settings are merged over defaults; malformed sessions or achievements
        are skipped rather than failing the whole load.
        """
        sessions = []
        for raw in data.get("sessions") or []:
            try:
                sessions.append(Session.from_dict(raw))
            except (TypeError, ValueError, AttributeError, KeyError) as e:
                print(f"WARNING: Skipping malformed session record: {e}")

        achievements = []
        seen = set()
        for raw in data.get("achievements") or []:
            try:
                achievement = Achievement.from_dict(raw)
            except (TypeError, ValueError, AttributeError, KeyError) as e:
                print(f"WARNING: Skipping malformed achievement record: {e}")
                continue
            if achievement.key in seen:
                continue
            seen.add(achievement.key)
            achievements.append(achievement)

        return cls(
            sessions=sessions,
            achievements=achievements,
            settings=settings_from_dict(data.get("settings")),
            version=data.get("version") or HISTORY_VERSION,
            last_save=data.get("last_save")
        )

    def achievement_keys(self) -> set:
        return {a.key for a in self.achievements}

    def sessions_on(self, date: str) -> List[Session]:
        return [s for s in self.sessions if s.date == date]


class HistoryStorage:
    """
    Persistence gateway for the history document.

    Storage location: ./storage/history.json
    All write methods return True on success and print on failure; callers
    decide whether to retry.
    """

    def __init__(self, storage_dir: str = "./storage"):
        """
        Initialize history storage.

        Args:
            storage_dir: Directory for storage files
        """
        self.storage_dir = Path(storage_dir)
        self.history_file = self.storage_dir / "history.json"

        # Ensure storage directory exists
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def get(self) -> Optional[HistoryStore]:
        """
        Read the stored history.

        Returns:
            HistoryStore if present and parseable, None otherwise
        """
        if not self.history_file.exists():
            return None

        try:
            with open(self.history_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("history root is not an object")

            if data.get("version") != HISTORY_VERSION:
                print(f"WARNING: Unknown history file version: {data.get('version')}")

            return HistoryStore.from_dict(data)

        except (OSError, ValueError) as e:
            print(f"ERROR: Failed to load history, using defaults: {e}")
            return None

    def load(self) -> HistoryStore:
        """Stored history, or fresh defaults if missing or corrupt."""
        return self.get() or HistoryStore()

    def set(self, store: HistoryStore) -> bool:
        """
        Write the full history atomically.

        Args:
            store: History to persist

        Returns:
            True if saved successfully
        """
        try:
            store.last_save = datetime.now().isoformat()
            json_str = json.dumps(store.to_dict(), indent=2, ensure_ascii=False)

            temp_file = self.history_file.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(json_str)

            os.replace(temp_file, self.history_file)
            return True

        except (OSError, TypeError, ValueError) as e:
            print(f"ERROR: Failed to save history: {e}")
            return False

    def upsert_session(self, session: Session) -> bool:
        """
        Insert or replace a session by id (last write wins).

        Args:
            session: Session snapshot

        Returns:
            True if saved successfully
        """
        store = self.load()
        for i, existing in enumerate(store.sessions):
            if existing.id == session.id:
                store.sessions[i] = session.copy()
                break
        else:
            store.sessions.append(session.copy())
        return self.set(store)

    def append_achievements(self, achievements: List[Achievement]) -> bool:
        """Append achievements whose key is not stored yet."""
        if not achievements:
            return True
        store = self.load()
        keys = store.achievement_keys()
        for achievement in achievements:
            if achievement.key not in keys:
                store.achievements.append(achievement)
                keys.add(achievement.key)
        return self.set(store)

    def save_settings(self, settings: Settings) -> bool:
        """Replace stored settings."""
        store = self.load()
        store.settings = settings
        return self.set(store)

    def clear(self) -> bool:
        """
        Reset history to defaults (part of purge data).

        Returns:
            True if cleared successfully
        """
        return self.set(HistoryStore())


def history_to_json(store: HistoryStore) -> str:
    """Portable JSON document for the full history."""
    return json.dumps(store.to_dict(), indent=2, ensure_ascii=False)


def export_filename(today: str) -> str:
    return f"posture-data-{today}.json"


def export_history(store: HistoryStore, directory: str, today: str) -> Path:
    """
    Write the full history to posture-data-<today>.json.

    Args:
        store: History to export
        directory: Target directory
        today: Calendar day (YYYY-MM-DD) used in the file name

    Returns:
        Path of the written file
    """
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(today)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(history_to_json(store))
    return path
