"""
Posture classification from a single landmark snapshot.

Checks head position against the shoulders and spine alignment between
shoulders and hips. Each sample is judged on its own; there is no smoothing
or internal state.

Missing landmarks skip the check that needs them, so an empty snapshot is
classified as good. This mirrors long-standing behaviour and is kept on
purpose (see DESIGN.md).
"""

from enum import Enum
from typing import Optional, List
from dataclasses import dataclass, field

from .landmarks import (
    LandmarkSnapshot,
    get_landmark,
    NOSE,
    LEFT_SHOULDER,
    RIGHT_SHOULDER,
    LEFT_HIP,
    RIGHT_HIP,
)
from .settings import Settings, DEFAULT_HEAD_THRESHOLD, DEFAULT_SPINE_THRESHOLD


# Nose below shoulder line by more than this is "head down" (not user-tunable)
HEAD_DOWN_MARGIN = 0.08


class IssueTag(Enum):
    """Posture issues a single sample can raise."""
    FORWARD_LEAN = "forward-lean"
    HEAD_DOWN = "head-down"
    SPINE_LEAN = "spine-lean"


@dataclass
class ClassificationResult:
    """Outcome of classifying one snapshot."""
    is_good: bool
    issues: List[IssueTag] = field(default_factory=list)
    head_forward: Optional[float] = None  # signed; > 0 = head ahead of shoulders
    spine_offset: Optional[float] = None

    def labels(self) -> List[str]:
        """Human-readable issue labels in emission order."""
        return [describe_issue(tag, self.head_forward) for tag in self.issues]


def describe_issue(tag: IssueTag, head_forward: Optional[float] = None) -> str:
    """Label for an issue; forward-lean direction comes from the sign."""
    if tag == IssueTag.FORWARD_LEAN:
        if head_forward is not None and head_forward < 0:
            return "Head tilted back"
        return "Head forward"
    if tag == IssueTag.HEAD_DOWN:
        return "Head down"
    return "Spine leaning sideways"


def classify(
    snapshot: Optional[LandmarkSnapshot],
    head_threshold: float = DEFAULT_HEAD_THRESHOLD,
    spine_threshold: float = DEFAULT_SPINE_THRESHOLD
) -> ClassificationResult:
    """
    Classify a landmark snapshot.

    Args:
        snapshot: Landmark snapshot (may be None, short, or sparse)
        head_threshold: Max |nose.x - shoulder_mid.x| before forward-lean
        spine_threshold: Max |shoulder_mid.x - hip_mid.x| before spine-lean

    Returns:
        ClassificationResult (never raises)
    """
    issues: List[IssueTag] = []
    head_forward = None
    spine_offset = None

    nose = get_landmark(snapshot, NOSE)
    left_shoulder = get_landmark(snapshot, LEFT_SHOULDER)
    right_shoulder = get_landmark(snapshot, RIGHT_SHOULDER)
    left_hip = get_landmark(snapshot, LEFT_HIP)
    right_hip = get_landmark(snapshot, RIGHT_HIP)

    # Head position relative to the shoulders
    if nose and left_shoulder and right_shoulder:
        shoulder_mid_x = (left_shoulder.x + right_shoulder.x) / 2
        shoulder_mid_y = (left_shoulder.y + right_shoulder.y) / 2
        head_forward = nose.x - shoulder_mid_x

        if abs(head_forward) > head_threshold:
            issues.append(IssueTag.FORWARD_LEAN)

        if nose.y > shoulder_mid_y + HEAD_DOWN_MARGIN:
            issues.append(IssueTag.HEAD_DOWN)

    # Spine alignment between shoulders and hips
    if left_shoulder and right_shoulder and left_hip and right_hip:
        shoulder_mid_x = (left_shoulder.x + right_shoulder.x) / 2
        hip_mid_x = (left_hip.x + right_hip.x) / 2
        spine_offset = abs(shoulder_mid_x - hip_mid_x)

        if spine_offset > spine_threshold:
            issues.append(IssueTag.SPINE_LEAN)

    return ClassificationResult(
        is_good=not issues,
        issues=issues,
        head_forward=head_forward,
        spine_offset=spine_offset
    )


class PostureClassifier:
    """Classifier bound to the current settings thresholds."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def update_settings(self, settings: Settings):
        self.settings = settings

    def classify(self, snapshot: Optional[LandmarkSnapshot]) -> ClassificationResult:
        return classify(
            snapshot,
            head_threshold=self.settings.head_threshold,
            spine_threshold=self.settings.spine_threshold
        )
