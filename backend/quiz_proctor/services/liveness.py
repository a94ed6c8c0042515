"""
Blink-based liveness check
"""
import logging
from typing import Optional

import numpy as np

from .face_analyzer import FaceAnalyzer

logger = logging.getLogger(__name__)


class BlinkDetector:
    """
    Counts blinks from per-frame eye aspect ratios.

    The ratio used here is width over lid opening, so it rises above the
    threshold while the eyes are closed. A blink is a closed -> open
    transition with both eyes agreeing; frames where the eyes disagree leave
    the state untouched.
    """

    def __init__(self, threshold: float = 3.7, required_blinks: int = 2):
        self.threshold = threshold
        self.required_blinks = required_blinks
        self.blink_count = 0
        self.is_blinking = False

    @property
    def is_live(self) -> bool:
        return self.blink_count >= self.required_blinks

    def update(self, left_ear: float, right_ear: float) -> int:
        """
        Feed one frame's eye aspect ratios.

        Returns:
            int: Blink count after this frame
        """
        if left_ear > self.threshold and right_ear > self.threshold and not self.is_blinking:
            self.is_blinking = True
        elif left_ear <= self.threshold and right_ear <= self.threshold and self.is_blinking:
            self.blink_count += 1
            self.is_blinking = False
            logger.info(f"Blink detected ({self.blink_count}/{self.required_blinks})")
        return self.blink_count

    def reset(self) -> None:
        self.blink_count = 0
        self.is_blinking = False


class LivenessCheck:
    """Runs frames through the face analyzer into a BlinkDetector"""

    def __init__(self, analyzer: FaceAnalyzer, detector: Optional[BlinkDetector] = None):
        self.analyzer = analyzer
        self.detector = detector or BlinkDetector()
        self.last_face_frame: Optional[np.ndarray] = None

    @property
    def blink_count(self) -> int:
        return self.detector.blink_count

    @property
    def is_live(self) -> bool:
        return self.detector.is_live

    def process_frame(self, frame: np.ndarray) -> int:
        """
        Sample one frame. Frames without exactly one face are ignored; the
        latest single-face frame is kept in last_face_frame for registration.

        Returns:
            int: Blink count so far
        """
        faces = self.analyzer.detect_faces(frame)
        if len(faces) != 1:
            return self.detector.blink_count

        self.last_face_frame = frame
        left_ear, right_ear = self.analyzer.eye_aspect_ratios(faces[0])
        logger.debug(f"EAR left={left_ear:.3f} right={right_ear:.3f}")
        return self.detector.update(left_ear, right_ear)

    def reset(self) -> None:
        self.detector.reset()
        self.last_face_frame = None
