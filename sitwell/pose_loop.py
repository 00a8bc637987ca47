"""
Background pose monitoring loop.
Captures webcam frames, runs MediaPipe Pose, and feeds landmark snapshots to
the session tracker.

PRIVACY: Never writes frames to disk. Only landmarks reach the tracker.
"""

import os
import sys
import time
import threading
from typing import Optional, Dict, Any

import cv2
import mediapipe as mp

from .landmarks import landmarks_from_mediapipe
from .performance_config import PerformanceConfig
from .tracker import SessionTracker


class PoseLoop:
    """
    Background producer of tracker ticks.

    The loop is the only caller of tracker.tick(); pausing is the tracker's
    concern, so the camera keeps running while the session is paused.
    """

    def __init__(
        self,
        tracker: SessionTracker,
        camera_index: int = 0,
        flip_camera: bool = True,
        perf_config: Optional[PerformanceConfig] = None
    ):
        """
        Initialize pose monitoring loop.

        Args:
            tracker: Session tracker receiving one tick per processed frame
            camera_index: Webcam device index (default 0)
            flip_camera: Mirror frames horizontally before pose estimation
            perf_config: Capture configuration (lightweight preset if None)
        """
        self.tracker = tracker
        self.camera_index = camera_index
        self.flip_camera = flip_camera
        self.perf_config = perf_config or PerformanceConfig.lightweight()

        # MediaPipe Pose
        self.mp_pose = mp.solutions.pose
        self.pose = None

        # State
        self.running = False
        self.failed_to_start = False
        self.start_error: Optional[str] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        # Stats
        self.frames_processed = 0
        self.frames_without_pose = 0
        self.start_time: Optional[float] = None

        # Camera
        self.cap: Optional[cv2.VideoCapture] = None

    def start(self) -> bool:
        """
        Open the camera and start the loop in a background thread.

        Returns:
            False if the camera could not be opened (failed-to-start)
        """
        if self.running:
            return True

        if not self._init_camera():
            self.failed_to_start = True
            print(f"ERROR: Failed to start pose loop: {self.start_error}")
            return False

        self.running = True
        self.start_time = time.time()
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """Stop the loop and release resources."""
        self.running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._cleanup()

    def get_stats(self) -> Dict[str, Any]:
        """Get runtime statistics."""
        with self._lock:
            elapsed = time.time() - self.start_time if self.start_time else 0
            return {
                "frames_processed": self.frames_processed,
                "frames_without_pose": self.frames_without_pose,
                "elapsed_seconds": elapsed,
                "actual_fps": self.frames_processed / elapsed if elapsed > 0 else 0,
                "target_fps": self.perf_config.target_fps,
                "failed_to_start": self.failed_to_start
            }

    def _init_camera(self) -> bool:
        """Initialize camera capture."""
        try:
            if sys.platform == "darwin":
                os.environ.setdefault('OPENCV_AVFOUNDATION_SKIP_AUTH', '1')

            self.cap = cv2.VideoCapture(self.camera_index)
            if not self.cap.isOpened():
                self.start_error = (
                    "Camera not accessible. Check that no other application is using it "
                    "and that OS camera permissions are granted."
                )
                return False

            width, height = self.perf_config.get_resolution()
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

            # Test read
            ret, frame = self.cap.read()
            if not ret or frame is None:
                self.start_error = "Camera opened but cannot read frames. Check permissions."
                return False

            return True
        except cv2.error as e:
            self.start_error = f"Camera init error: {e}"
            return False

    def _run_loop(self):
        """Main processing loop (runs in background thread)."""
        self.pose = self.mp_pose.Pose(
            static_image_mode=False,
            model_complexity=self.perf_config.model_complexity,
            smooth_landmarks=True,
            min_detection_confidence=self.perf_config.min_detection_confidence,
            min_tracking_confidence=self.perf_config.min_tracking_confidence
        )

        print(f"Pose loop started (target {self.perf_config.target_fps} FPS)")

        try:
            while self.running:
                loop_start = time.time()

                self._process_frame()

                # Sleep to maintain target FPS
                elapsed = time.time() - loop_start
                sleep_time = max(0, self.perf_config.frame_interval - elapsed)
                if sleep_time > 0:
                    time.sleep(sleep_time)
        finally:
            self._cleanup()

    def _process_frame(self):
        """
        Capture one frame, run pose estimation and tick the tracker.

        PRIVACY: Frame is never saved.
        """
        if not self.cap or not self.cap.isOpened():
            # Try to recover
            if not self._init_camera():
                time.sleep(1.0)
                return

        ret, frame = self.cap.read()
        if not ret or frame is None:
            return

        if self.flip_camera:
            frame = cv2.flip(frame, 1)

        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self.pose.process(frame_rgb)

        # No pose still produces a tick; every check is skipped
        snapshot = landmarks_from_mediapipe(
            results.pose_landmarks,
            min_visibility=self.perf_config.min_visibility
        )

        with self._lock:
            self.frames_processed += 1
            if results.pose_landmarks is None:
                self.frames_without_pose += 1

        self.tracker.tick(snapshot)

    def _cleanup(self):
        """Release camera and MediaPipe resources."""
        if self.cap:
            self.cap.release()
            self.cap = None

        if self.pose:
            self.pose.close()
            self.pose = None
