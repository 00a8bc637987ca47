"""
Capture configuration for the pose loop.

The tracker counts one tick per processed frame and reports treat a tick as
one second, so the default rate is 1 frame per second.
PRIVACY: No frames saved, only timing.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class PerformanceConfig:
    """
    Camera and MediaPipe settings for the pose loop.
    """
    # Tick rate (one tick per processed frame)
    target_fps: float = 1.0

    # Camera settings
    camera_width: int = 424
    camera_height: int = 240

    # MediaPipe settings
    model_complexity: int = 1  # 0=lite, 1=full, 2=heavy
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    # Landmarks below this visibility are treated as absent (0 keeps all)
    min_visibility: float = 0.0

    @classmethod
    def lightweight(cls) -> 'PerformanceConfig':
        """
        Lightweight preset (default).

        - 1 FPS
        - 424×240 resolution
        - MediaPipe full model (complexity=1)
        """
        return cls()

    @classmethod
    def quality(cls) -> 'PerformanceConfig':
        """
        Quality preset (for testing/debugging).

        - 1 FPS
        - 640×480 resolution
        - MediaPipe heavy model (complexity=2)
        """
        return cls(
            camera_width=640,
            camera_height=480,
            model_complexity=2
        )

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.target_fps if self.target_fps > 0 else 1.0

    def get_resolution(self) -> Tuple[int, int]:
        """Get camera resolution as (width, height)."""
        return (self.camera_width, self.camera_height)

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"PerformanceConfig(fps={self.target_fps}, "
            f"res={self.camera_width}×{self.camera_height}, "
            f"model={'lite' if self.model_complexity == 0 else 'full' if self.model_complexity == 1 else 'heavy'})"
        )
