"""
Configuration management for the application
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration"""

    # Remote backend (registration, verification, attempts, reports)
    BACKEND_URL = os.getenv('BACKEND_URL', 'http://localhost:5000')
    REQUEST_TIMEOUT_SECONDS = float(os.getenv('REQUEST_TIMEOUT_SECONDS', '30'))

    # Trivia API Configuration
    TRIVIA_API_URL = os.getenv('TRIVIA_API_URL', 'https://opentdb.com/api.php')
    QUESTION_AMOUNT = int(os.getenv('QUESTION_AMOUNT', '10'))
    QUESTION_DIFFICULTY = os.getenv('QUESTION_DIFFICULTY', 'easy')
    QUESTION_TYPE = os.getenv('QUESTION_TYPE', 'multiple')
    COUNTDOWN_SECONDS = int(os.getenv('COUNTDOWN_SECONDS', '600'))

    # Server Configuration
    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = int(os.getenv('PORT', '8000'))
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # ML Model Configuration
    MODEL_CACHE_PATH = os.getenv('MODEL_CACHE_PATH', 'data/model_cache.db')
    MEDIAPIPE_MODEL_URL = os.getenv(
        'MEDIAPIPE_MODEL_URL',
        'https://storage.googleapis.com/mediapipe-models/face_landmarker/'
        'face_landmarker/float16/latest/face_landmarker.task'
    )
    MEDIAPIPE_MODEL_SHA256 = os.getenv('MEDIAPIPE_MODEL_SHA256') or None
    MAX_FACES = int(os.getenv('MAX_FACES', '2'))

    # Proctoring Configuration
    PROCTOR_INTERVAL_SECONDS = float(os.getenv('PROCTOR_INTERVAL_SECONDS', '2.0'))
    LIVENESS_INTERVAL_SECONDS = float(os.getenv('LIVENESS_INTERVAL_SECONDS', '0.2'))
    EAR_THRESHOLD = float(os.getenv('EAR_THRESHOLD', '3.7'))
    REQUIRED_BLINKS = int(os.getenv('REQUIRED_BLINKS', '2'))
    EMBEDDING_BATCH_SIZE = int(os.getenv('EMBEDDING_BATCH_SIZE', '5'))
    COMPLETED_SESSION_TTL_SECONDS = float(os.getenv('COMPLETED_SESSION_TTL_SECONDS', '3600'))
    ENCRYPT_EMBEDDINGS = os.getenv('ENCRYPT_EMBEDDINGS', 'true').lower() == 'true'

    # Local camera
    CAMERA_INDEX = int(os.getenv('CAMERA_INDEX', '0'))

    @classmethod
    def model_sources(cls):
        """Model key -> (download URL, expected SHA-256 or None)"""
        return {
            'face_landmarker': (cls.MEDIAPIPE_MODEL_URL, cls.MEDIAPIPE_MODEL_SHA256),
        }


config = Config()
