"""
Local webcam capture
"""
import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class WebcamCapture:
    """cv2.VideoCapture wrapper usable as a context manager"""

    def __init__(self, index: int = 0, width: int = 640, height: int = 480):
        self.index = index
        self.width = width
        self.height = height
        self._capture = None

    def open(self) -> "WebcamCapture":
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise RuntimeError(f"Error accessing webcam {self.index}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        logger.info(f"Webcam {self.index} opened")
        return self

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def read(self) -> Optional[np.ndarray]:
        """Latest BGR frame, or None if the camera returned nothing"""
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok:
            logger.warning("Webcam returned no frame")
            return None
        return frame

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Webcam {self.index} released")

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.release()
