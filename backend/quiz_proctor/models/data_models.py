"""
Data models for quiz sessions, proctoring samples and reports
"""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SampleMarker(str, Enum):
    """What a proctoring tick saw"""
    FACE = "face"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"


class QuizStatus(str, Enum):
    """Lifecycle of a quiz attempt"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class FeedbackType(str, Enum):
    """Types of messages sent to the client over WebSocket"""
    SESSION_READY = "session_ready"
    BLINK_UPDATE = "blink_update"
    LIVENESS_CONFIRMED = "liveness_confirmed"
    REGISTERED = "registered"
    FACE_DETECTED = "face_detected"
    VIOLATION = "violation"
    ERROR = "error"


class AttemptStatus(str, Enum):
    """Per-attempt status reported by /getreport"""
    PASS = "Pass"
    FAIL = "Fail"
    NOT_ATTEMPTED = "Not Attempted"


@dataclass
class FaceSample:
    """One proctoring tick: a descriptor, or a marker for zero/multiple faces"""
    marker: SampleMarker
    descriptor: Optional[List[float]] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def iso_timestamp(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()

    def payload(self) -> Any:
        """Wire form inside an embeddings array"""
        if self.marker == SampleMarker.FACE:
            return self.descriptor
        return self.marker.value


@dataclass
class ProctorFeedback:
    """Outcome of a proctoring tick, as shown to the user"""
    type: FeedbackType
    message: str
    face_count: int
    play_alert: bool = False
    marker: Optional[SampleMarker] = None

    @property
    def is_violation(self) -> bool:
        return self.type == FeedbackType.VIOLATION


@dataclass
class VerificationFeedback:
    """Envelope for WebSocket feedback messages"""
    type: FeedbackType
    message: str
    data: Optional[Dict[str, Any]] = None


@dataclass
class Question:
    """A multiple choice trivia question"""
    category: str
    difficulty: str
    question: str
    correct_answer: str
    incorrect_answers: List[str]
    options: List[str] = field(default_factory=list)

    def public_view(self) -> Dict[str, Any]:
        """Question as sent to the client, without the answer"""
        return {
            "category": self.category,
            "difficulty": self.difficulty,
            "question": self.question,
            "options": list(self.options),
        }


@dataclass
class QuizSession:
    """A single quiz attempt"""
    session_id: str
    username: str
    category: Optional[int]
    questions: List[Question]
    countdown_seconds: int
    test_id: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    answers: Dict[int, str] = field(default_factory=dict)
    status: QuizStatus = QuizStatus.IN_PROGRESS
    finished_at: Optional[float] = None


@dataclass
class QuestionOutcome:
    question: str
    user_answer: Optional[str]
    correct_answer: str
    point: int


@dataclass
class QuizResult:
    """Result of a finished quiz"""
    total_questions: int
    correct_answers: int
    time_taken: int
    question_and_answer: List[QuestionOutcome]

    @property
    def score_percentage(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return round(self.correct_answers * 100 / self.total_questions, 2)
