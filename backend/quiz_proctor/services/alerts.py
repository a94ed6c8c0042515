"""
Violation signaling: status messages, audible alerts and preview overlays
"""
import logging
import sys

import cv2
import numpy as np

from ..models.data_models import FeedbackType, ProctorFeedback, SampleMarker

logger = logging.getLogger(__name__)


FACE_DETECTED_MESSAGE = "Face detected."
NO_FACE_MESSAGE = "Face not detected, this incident will be reported."
MULTIPLE_FACES_MESSAGE = "Multiple faces detected, this incident will be reported."

GREEN = (0, 160, 0)
RED = (0, 0, 220)


class ViolationNotifier:
    """Turns a tick's face count into the feedback the user sees and hears"""

    def __init__(self):
        self.violations = 0

    def notify(self, face_count: int) -> ProctorFeedback:
        if face_count == 1:
            return ProctorFeedback(
                type=FeedbackType.FACE_DETECTED,
                message=FACE_DETECTED_MESSAGE,
                face_count=face_count,
                marker=SampleMarker.FACE
            )

        self.violations += 1
        if face_count == 0:
            marker, message = SampleMarker.NO_FACE, NO_FACE_MESSAGE
        else:
            marker, message = SampleMarker.MULTIPLE_FACES, MULTIPLE_FACES_MESSAGE

        logger.warning(f"Proctoring violation: {marker.value} (faces={face_count})")
        return ProctorFeedback(
            type=FeedbackType.VIOLATION,
            message=message,
            face_count=face_count,
            play_alert=True,
            marker=marker
        )


def draw_overlay(frame: np.ndarray, feedback: ProctorFeedback) -> np.ndarray:
    """Status banner, plus a red border on violations. Draws in place."""
    color = RED if feedback.is_violation else GREEN
    height, width = frame.shape[:2]

    cv2.rectangle(frame, (0, 0), (width, 32), color, -1)
    cv2.putText(frame, feedback.message, (8, 22), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (255, 255, 255), 1, cv2.LINE_AA)
    if feedback.is_violation:
        cv2.rectangle(frame, (0, 0), (width - 1, height - 1), RED, 6)
    return frame


def ring_bell(stream=None) -> None:
    """Terminal bell"""
    stream = stream or sys.stdout
    stream.write('\a')
    stream.flush()
