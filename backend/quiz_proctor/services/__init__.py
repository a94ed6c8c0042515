from .backend_client import BackendClient
from .embedding_batcher import AttemptSubmitter, BulkVerifySubmitter, EmbeddingBatcher
from .embedding_cipher import EmbeddingCipher
from .face_analyzer import FaceAnalyzer
from .face_encoder import FaceEncoder
from .liveness import BlinkDetector, LivenessCheck
from .model_store import ModelStore
from .proctor import ProctorMonitor
from .quiz_engine import QuizEngine
from .session_manager import SessionManager
from .trivia_client import TriviaClient

__all__ = [
    "AttemptSubmitter",
    "BackendClient",
    "BlinkDetector",
    "BulkVerifySubmitter",
    "EmbeddingBatcher",
    "EmbeddingCipher",
    "FaceAnalyzer",
    "FaceEncoder",
    "LivenessCheck",
    "ModelStore",
    "ProctorMonitor",
    "QuizEngine",
    "SessionManager",
    "TriviaClient",
]
