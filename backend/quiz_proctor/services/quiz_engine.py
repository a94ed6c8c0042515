"""
Quiz lifecycle: start, answer, end, replay
"""
import logging
import random
import time
import uuid
from typing import List, Optional

from ..exceptions import QuizStateError
from ..models.data_models import (
    Question,
    QuestionOutcome,
    QuizResult,
    QuizSession,
    QuizStatus,
)
from .trivia_client import shuffle

logger = logging.getLogger(__name__)


class QuizEngine:
    """Pure quiz state transitions; no I/O"""

    def __init__(self, rng: Optional[random.Random] = None, clock=time.time):
        self.rng = rng
        self.clock = clock

    def start_quiz(
        self,
        username: str,
        questions: List[Question],
        countdown_seconds: int,
        category: Optional[int] = None,
        test_id: Optional[str] = None
    ) -> QuizSession:
        if not questions:
            raise QuizStateError("Cannot start a quiz without questions")

        session = QuizSession(
            session_id=str(uuid.uuid4()),
            username=username,
            category=category,
            questions=questions,
            countdown_seconds=countdown_seconds,
            test_id=test_id,
            start_time=self.clock()
        )
        logger.info(f"Quiz {session.session_id} started for {username} ({len(questions)} questions)")
        return session

    def elapsed_seconds(self, session: QuizSession) -> float:
        return max(0.0, self.clock() - session.start_time)

    def remaining_seconds(self, session: QuizSession) -> int:
        return max(0, int(session.countdown_seconds - self.elapsed_seconds(session)))

    def is_expired(self, session: QuizSession) -> bool:
        return self.elapsed_seconds(session) >= session.countdown_seconds

    def answer(self, session: QuizSession, index: int, option: str) -> None:
        """
        Record the answer to question `index`. Re-answering overwrites.

        Raises:
            QuizStateError: quiz finished or timed out, unknown question or option
        """
        if session.status != QuizStatus.IN_PROGRESS:
            raise QuizStateError("Quiz is not in progress")
        if self.is_expired(session):
            raise QuizStateError("Time is up")
        if not 0 <= index < len(session.questions):
            raise QuizStateError(f"No question at index {index}")
        if option not in session.questions[index].options:
            raise QuizStateError(f"'{option}' is not an option for question {index}")

        session.answers[index] = option

    def end_quiz(self, session: QuizSession) -> QuizResult:
        """Finish the quiz and score it. Time taken never exceeds the countdown."""
        if session.status != QuizStatus.IN_PROGRESS:
            raise QuizStateError("Quiz is not in progress")

        outcomes = []
        correct = 0
        for index, question in enumerate(session.questions):
            user_answer = session.answers.get(index)
            point = 1 if user_answer == question.correct_answer else 0
            correct += point
            outcomes.append(QuestionOutcome(
                question=question.question,
                user_answer=user_answer,
                correct_answer=question.correct_answer,
                point=point
            ))

        time_taken = min(int(self.elapsed_seconds(session)), session.countdown_seconds)
        session.status = QuizStatus.COMPLETED
        session.finished_at = self.clock()
        logger.info(f"Quiz {session.session_id} completed: {correct}/{len(session.questions)}")

        return QuizResult(
            total_questions=len(session.questions),
            correct_answers=correct,
            time_taken=time_taken,
            question_and_answer=outcomes
        )

    def replay(self, session: QuizSession) -> QuizSession:
        """Shuffle questions and options and restart the clock"""
        questions = shuffle(session.questions, self.rng)
        for question in questions:
            question.options = shuffle(question.options, self.rng)

        session.questions = questions
        session.answers = {}
        session.start_time = self.clock()
        session.status = QuizStatus.IN_PROGRESS
        session.finished_at = None
        logger.info(f"Quiz {session.session_id} replayed")
        return session
