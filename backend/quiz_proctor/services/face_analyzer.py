"""
Face detection and eye landmark extraction using MediaPipe and OpenCV
"""
import logging
import os
import threading
from typing import List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

logger = logging.getLogger(__name__)


# Six-point eye contours in FaceMesh topology, ordered like the 68-point
# scheme: outer/inner corner, two upper lid points, other corner, two lower
# lid points. "Left" is the eye on the left of the image.
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]


def eye_aspect_ratio(eye: np.ndarray) -> float:
    """
    Width of the eye over its mean lid opening.

    width = |p3 - p0|, height = |p1 - p5| + |p2 - p4|, ratio = width / (height / 2).
    An open eye gives roughly 3; the value grows as the lids close and is
    infinite when they touch.
    """
    width = float(np.hypot(*(eye[3] - eye[0])))
    height = float(np.hypot(*(eye[1] - eye[5])) + np.hypot(*(eye[2] - eye[4])))
    if height == 0:
        return float('inf')
    return width / (height / 2)


class FaceAnalyzer:
    """
    Counts faces in a frame and extracts their landmarks with MediaPipe
    FaceLandmarker.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        model_buffer: Optional[bytes] = None,
        max_faces: int = 2
    ):
        """
        The FaceLandmarker is created lazily on first use, so the analyzer can
        be built (and its geometry helpers tested) without a model file.

        Args:
            model_path: Path to the face_landmarker.task file
            model_buffer: Model bytes, e.g. loaded from the model cache
            max_faces: Faces tracked per frame; must be at least 2 for
                       multiple-face violations to be visible
        """
        self.model_path = model_path
        self.model_buffer = model_buffer
        self.max_faces = max_faces
        self._face_landmarker = None
        self._lock = threading.Lock()

    @property
    def face_landmarker(self):
        """
        Lazy initialization of MediaPipe FaceLandmarker.

        Returns None if no model is available or it fails to load.
        """
        if self._face_landmarker is None:
            if self.model_buffer is not None:
                base_options = mp.tasks.BaseOptions(model_asset_buffer=self.model_buffer)
            elif self.model_path is not None:
                if not os.path.exists(self.model_path):
                    logger.warning(
                        f"MediaPipe model not found at {self.model_path}. "
                        "Download it using: python download_mediapipe_model.py"
                    )
                    return None
                base_options = mp.tasks.BaseOptions(model_asset_path=self.model_path)
            else:
                logger.warning("No face landmarker model configured")
                return None

            try:
                options = mp.tasks.vision.FaceLandmarkerOptions(
                    base_options=base_options,
                    running_mode=mp.tasks.vision.RunningMode.IMAGE,
                    num_faces=self.max_faces,
                    min_face_detection_confidence=0.5,
                    min_face_presence_confidence=0.5,
                    output_face_blendshapes=False,
                    output_facial_transformation_matrixes=False
                )
                self._face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
            except Exception as e:
                logger.error(f"Failed to initialize MediaPipe FaceLandmarker: {e}")
                return None

        return self._face_landmarker

    @property
    def ready(self) -> bool:
        return self.face_landmarker is not None

    def preprocess_frame(self, frame: np.ndarray, target_size: tuple = (640, 480)) -> np.ndarray:
        """
        Resize to target_size (width, height) and convert BGR to RGB.
        """
        resized = cv2.resize(frame, target_size, interpolation=cv2.INTER_LINEAR)
        return cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

    def detect_faces(self, frame: np.ndarray) -> List[np.ndarray]:
        """
        Detect faces in a BGR frame.

        Returns:
            One (N, 2) array of landmark pixel coordinates per face, in the
            input frame's coordinate space. Empty when there is no face, no
            model, or the detector fails.
        """
        if frame is None or frame.size == 0:
            return []

        landmarker = self.face_landmarker
        if landmarker is None:
            return []

        # Landmarks are normalised; scale them by the input size, not the
        # 640x480 working size, to keep the eye geometry of non 4:3 frames
        height, width = frame.shape[:2]
        rgb_frame = self.preprocess_frame(frame)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)

        try:
            with self._lock:
                detection_result = landmarker.detect(mp_image)
        except Exception as e:
            logger.error(f"Face detection failed: {e}")
            return []

        faces = []
        for face in detection_result.face_landmarks or []:
            faces.append(np.array([[lm.x * width, lm.y * height] for lm in face]))
        return faces

    def count_faces(self, frame: np.ndarray) -> int:
        return len(self.detect_faces(frame))

    @staticmethod
    def eye_landmarks(landmarks: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Six-point (left, right) eye contours of one face"""
        return landmarks[LEFT_EYE_INDICES], landmarks[RIGHT_EYE_INDICES]

    def eye_aspect_ratios(self, landmarks: np.ndarray) -> Tuple[float, float]:
        left_eye, right_eye = self.eye_landmarks(landmarks)
        return eye_aspect_ratio(left_eye), eye_aspect_ratio(right_eye)

    def close(self) -> None:
        if self._face_landmarker is not None:
            self._face_landmarker.close()
            self._face_landmarker = None

    def __del__(self):
        """Clean up MediaPipe resources"""
        self.close()
