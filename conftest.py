"""Shared pytest fixtures: fake clock, recording sink, temp storage."""

from datetime import datetime

import pytest

from sitwell.landmarks import build_snapshot, NOSE, LEFT_SHOULDER, RIGHT_SHOULDER, LEFT_HIP, RIGHT_HIP
from sitwell.notifications import NotificationSink
from sitwell.storage import HistoryStorage


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSink(NotificationSink):
    """Sink that remembers everything it receives."""

    def __init__(self):
        self.issues = []
        self.cleared = 0
        self.alerts = []
        self.achievements = []

    def on_issues(self, labels):
        self.issues.append(list(labels))

    def on_issues_cleared(self):
        self.cleared += 1

    def on_alert(self, event):
        self.alerts.append(event)

    def on_achievement(self, event):
        self.achievements.append(event)


def good_pose():
    """Upright: nose over shoulders, shoulders over hips."""
    return build_snapshot({
        NOSE: (0.50, 0.30),
        LEFT_SHOULDER: (0.40, 0.50),
        RIGHT_SHOULDER: (0.60, 0.50),
        LEFT_HIP: (0.42, 0.90),
        RIGHT_HIP: (0.58, 0.90),
    })


def forward_pose():
    """Head 0.2 ahead of the shoulder midpoint."""
    return build_snapshot({
        NOSE: (0.70, 0.30),
        LEFT_SHOULDER: (0.40, 0.50),
        RIGHT_SHOULDER: (0.60, 0.50),
        LEFT_HIP: (0.42, 0.90),
        RIGHT_HIP: (0.58, 0.90),
    })


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 14, 9, 0, 0).timestamp())


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def storage(tmp_path):
    return HistoryStorage(str(tmp_path / "storage"))
