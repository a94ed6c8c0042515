"""
Unit tests for FaceAnalyzer and the eye aspect ratio
"""
import math
from types import SimpleNamespace

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from quiz_proctor.services.face_analyzer import (
    LEFT_EYE_INDICES,
    RIGHT_EYE_INDICES,
    FaceAnalyzer,
    eye_aspect_ratio,
)


def make_eye(width=30.0, opening=10.0, x=100.0, y=100.0):
    """Six-point eye: corner, two upper lid points, corner, two lower lid points"""
    half = opening / 2
    return np.array([
        [x, y],
        [x + width / 3, y - half],
        [x + 2 * width / 3, y - half],
        [x + width, y],
        [x + 2 * width / 3, y + half],
        [x + width / 3, y + half],
    ])


def make_face_landmarks(left_opening=10.0, right_opening=10.0):
    """478 FaceMesh points with only the eye contours placed meaningfully"""
    landmarks = np.zeros((478, 2))
    landmarks[LEFT_EYE_INDICES] = make_eye(opening=left_opening, x=100)
    landmarks[RIGHT_EYE_INDICES] = make_eye(opening=right_opening, x=200)
    return landmarks


def mock_detection(mocker, faces):
    """Detection result with `faces` faces of normalised landmarks"""
    result = mocker.MagicMock()
    result.face_landmarks = []
    for _ in range(faces):
        points = []
        for _ in range(478):
            lm = mocker.MagicMock()
            lm.x, lm.y, lm.z = 0.5, 0.5, 0.0
            points.append(lm)
        result.face_landmarks.append(points)
    return result


def detection_from_pixels(mocker, landmarks, width, height):
    """Detection result whose normalised landmarks map back to `landmarks` in a width x height frame"""
    result = mocker.MagicMock()
    result.face_landmarks = [[
        SimpleNamespace(x=x / width, y=y / height, z=0.0) for x, y in landmarks
    ]]
    return result


class TestEyeAspectRatio:
    """Test the width over lid opening ratio"""

    def test_open_eye(self):
        """30 wide, 10 open: width / ((10 + 10) / 2) = 3"""
        assert eye_aspect_ratio(make_eye(width=30, opening=10)) == pytest.approx(3.0)

    def test_closing_eye_raises_ratio(self):
        """Ratio grows as the lids close"""
        open_ratio = eye_aspect_ratio(make_eye(opening=10))
        closed_ratio = eye_aspect_ratio(make_eye(opening=4))
        assert closed_ratio > open_ratio
        assert closed_ratio > 3.7

    def test_lids_touching_is_infinite(self):
        """A fully closed eye has no opening"""
        assert math.isinf(eye_aspect_ratio(make_eye(opening=0)))

    @given(
        width=st.floats(min_value=5, max_value=200),
        opening=st.floats(min_value=0.5, max_value=100),
        scale=st.floats(min_value=0.1, max_value=10)
    )
    @settings(max_examples=100, deadline=None)
    def test_ratio_is_scale_invariant(self, width, opening, scale):
        """Scaling the eye does not change the ratio"""
        eye = make_eye(width=width, opening=opening)
        assert eye_aspect_ratio(eye * scale) == pytest.approx(eye_aspect_ratio(eye), rel=1e-6)


class TestFaceAnalyzerInitialization:
    """Test lazy model loading"""

    def test_initialization_without_model(self):
        """Analyzer builds without a model and reports not ready"""
        analyzer = FaceAnalyzer()

        assert analyzer.model_path is None
        assert analyzer._face_landmarker is None
        assert analyzer.face_landmarker is None
        assert not analyzer.ready

    def test_missing_model_file(self, tmp_path):
        """A model path that does not exist gives no landmarker"""
        analyzer = FaceAnalyzer(model_path=str(tmp_path / "missing.task"))
        assert analyzer.face_landmarker is None

    def test_default_tracks_two_faces(self):
        """Two faces must be tracked to see multiple-face violations"""
        assert FaceAnalyzer().max_faces == 2

    def test_close_without_initialization(self):
        analyzer = FaceAnalyzer()
        analyzer.close()
        assert analyzer._face_landmarker is None


class TestFramePreprocessing:
    """Test frame preprocessing"""

    def test_preprocess_frame_resizes_correctly(self):
        analyzer = FaceAnalyzer()
        frame = np.random.randint(0, 255, (720, 1280, 3), dtype=np.uint8)

        assert analyzer.preprocess_frame(frame).shape == (480, 640, 3)

    def test_preprocess_frame_converts_bgr_to_rgb(self):
        analyzer = FaceAnalyzer()
        bgr_frame = np.zeros((480, 640, 3), dtype=np.uint8)
        bgr_frame[:, :, 0] = 255  # Blue channel in BGR

        rgb_frame = analyzer.preprocess_frame(bgr_frame)

        assert rgb_frame[0, 0, 0] == 0
        assert rgb_frame[0, 0, 2] == 255


class TestDetectFaces:
    """Test face detection with a mocked landmarker"""

    @pytest.fixture
    def frame(self):
        return np.random.randint(0, 255, (480, 640, 3), dtype=np.uint8)

    def test_no_model_returns_empty(self, frame):
        assert FaceAnalyzer().detect_faces(frame) == []

    def test_empty_frame_returns_empty(self, mocker):
        analyzer = FaceAnalyzer()
        analyzer._face_landmarker = mocker.MagicMock()

        assert analyzer.detect_faces(np.zeros((0, 0, 3), dtype=np.uint8)) == []
        analyzer._face_landmarker.detect.assert_not_called()

    @pytest.mark.parametrize("faces", [0, 1, 2])
    def test_counts_faces(self, mocker, frame, faces):
        analyzer = FaceAnalyzer()
        analyzer._face_landmarker = mocker.MagicMock()
        analyzer._face_landmarker.detect.return_value = mock_detection(mocker, faces)

        assert analyzer.count_faces(frame) == faces

    def test_landmarks_in_pixel_coordinates(self, mocker, frame):
        """Normalised landmarks are scaled to the input frame"""
        analyzer = FaceAnalyzer()
        analyzer._face_landmarker = mocker.MagicMock()
        analyzer._face_landmarker.detect.return_value = mock_detection(mocker, 1)

        faces = analyzer.detect_faces(frame)

        assert faces[0].shape == (478, 2)
        assert faces[0][0] == pytest.approx([320.0, 240.0])

    def test_detector_error_returns_empty(self, mocker, frame):
        analyzer = FaceAnalyzer()
        analyzer._face_landmarker = mocker.MagicMock()
        analyzer._face_landmarker.detect.side_effect = RuntimeError("boom")

        assert analyzer.detect_faces(frame) == []


class TestWideFrames:
    """Eye geometry must survive the 640x480 working resize"""

    @pytest.mark.parametrize("width,height", [(1280, 720), (640, 480), (480, 640)])
    def test_eye_ratio_matches_input_frame(self, mocker, width, height):
        """A nearly closed eye keeps its ratio whatever the frame shape"""
        landmarks = make_face_landmarks(left_opening=7, right_opening=7)
        analyzer = FaceAnalyzer()
        analyzer._face_landmarker = mocker.MagicMock()
        analyzer._face_landmarker.detect.return_value = detection_from_pixels(mocker, landmarks, width, height)
        frame = np.zeros((height, width, 3), dtype=np.uint8)

        faces = analyzer.detect_faces(frame)
        left, right = analyzer.eye_aspect_ratios(faces[0])

        assert faces[0] == pytest.approx(landmarks)
        assert left == pytest.approx(30 / 7)
        assert right == pytest.approx(30 / 7)
        assert left > 3.7


class TestEyeLandmarks:
    """Test eye extraction from a face"""

    def test_eye_landmarks_shape(self):
        left, right = FaceAnalyzer.eye_landmarks(make_face_landmarks())
        assert left.shape == (6, 2)
        assert right.shape == (6, 2)

    def test_eye_aspect_ratios_per_eye(self):
        analyzer = FaceAnalyzer()
        left, right = analyzer.eye_aspect_ratios(make_face_landmarks(left_opening=10, right_opening=5))

        assert left == pytest.approx(3.0)
        assert right == pytest.approx(6.0)
