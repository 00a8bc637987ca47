"""
Landmark snapshots supplied by the pose engine.

A snapshot is the MediaPipe Pose layout (33 points) reduced to plain values.
Any entry may be missing; consumers treat a missing entry as "cannot evaluate".

PRIVACY: Only normalized keypoints are kept, never frames.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, List


# MediaPipe Pose landmark indices
NOSE = 0
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_HIP = 23
RIGHT_HIP = 24

POSE_LANDMARK_COUNT = 33


@dataclass(frozen=True)
class Landmark:
    """Normalized 2D keypoint with optional visibility confidence."""
    x: float  # [0, 1], left to right
    y: float  # [0, 1], y increases downward
    visibility: Optional[float] = None


LandmarkSnapshot = Sequence[Optional[Landmark]]


def get_landmark(snapshot: Optional[LandmarkSnapshot], index: int) -> Optional[Landmark]:
    """
    Fetch a landmark by index, tolerating short or malformed snapshots.

    Returns:
        Landmark with float coordinates if present and well-formed, None otherwise
    """
    if snapshot is None:
        return None
    try:
        lm = snapshot[index]
    except (IndexError, TypeError, KeyError):
        return None
    if lm is None:
        return None
    try:
        return Landmark(x=float(lm.x), y=float(lm.y), visibility=getattr(lm, "visibility", None))
    except (AttributeError, TypeError, ValueError):
        return None


def landmarks_from_mediapipe(pose_landmarks, min_visibility: float = 0.0) -> List[Optional[Landmark]]:
    """
    Convert MediaPipe pose landmarks into a snapshot.

    Args:
        pose_landmarks: results.pose_landmarks from MediaPipe Pose (or None)
        min_visibility: Entries below this visibility are treated as absent

    Returns:
        List of 33 entries (None where absent)
    """
    snapshot: List[Optional[Landmark]] = [None] * POSE_LANDMARK_COUNT
    if pose_landmarks is None:
        return snapshot

    for index, lm in enumerate(pose_landmarks.landmark[:POSE_LANDMARK_COUNT]):
        visibility = getattr(lm, "visibility", None)
        if visibility is not None and visibility < min_visibility:
            continue
        snapshot[index] = Landmark(x=lm.x, y=lm.y, visibility=visibility)

    return snapshot


def build_snapshot(points: dict) -> List[Optional[Landmark]]:
    """Build a snapshot from {index: (x, y)} or {index: Landmark}."""
    snapshot: List[Optional[Landmark]] = [None] * POSE_LANDMARK_COUNT
    for index, point in points.items():
        if isinstance(point, Landmark):
            snapshot[index] = point
        else:
            snapshot[index] = Landmark(*point)
    return snapshot
