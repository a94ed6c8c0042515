"""
Face descriptor computation using face_recognition (dlib)
"""
import logging
from typing import List, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class FaceEncoder:
    """
    Computes the 128-d face descriptor the backend registers and verifies.

    face_recognition loads its dlib models on import, so the import is
    deferred until the first descriptor is requested.
    """

    DESCRIPTOR_SIZE = 128

    def __init__(self, detection_model: str = "hog"):
        self.detection_model = detection_model
        self._face_recognition = None

    @property
    def face_recognition(self):
        if self._face_recognition is None:
            import face_recognition
            self._face_recognition = face_recognition
        return self._face_recognition

    def encode(self, frame: np.ndarray) -> Optional[List[float]]:
        """
        Descriptor of the first face found in a BGR frame.

        Returns:
            128 floats, or None when no face is found
        """
        if frame is None or frame.size == 0:
            return None

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        try:
            boxes = self.face_recognition.face_locations(rgb_frame, model=self.detection_model)
            if not boxes:
                return None
            encodings = self.face_recognition.face_encodings(rgb_frame, boxes[:1])
        except Exception as e:
            logger.error(f"Failed to compute face descriptor: {e}")
            return None

        if not encodings:
            return None
        return [float(v) for v in encodings[0]]
