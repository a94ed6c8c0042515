"""
Exception types shared by the services and the HTTP layer
"""
from typing import Optional


class QuizProctorError(Exception):
    """Base class for application errors"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackendError(QuizProctorError):
    """
    The remote backend answered with an HTTP error status.

    Known statuses carry the alert text shown to the user; anything else
    gets a generic message.
    """

    code = "BACKEND_ERROR"

    ALERTS = {
        400: "The request was rejected by the server.",
        401: "Face verification failed.",
        404: "User not found. Please register first.",
        409: "This username is already registered.",
        500: "The server ran into a problem. Please try again later.",
    }

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        self.alert = self.ALERTS.get(status_code, f"Unexpected server response ({status_code}).")
        super().__init__(self.alert)


class TriviaError(QuizProctorError):
    """The trivia API returned something we cannot use"""

    code = "TRIVIA_ERROR"
    status_code = 502


class NotEnoughQuestionsError(TriviaError):
    """Open Trivia DB response_code 1"""

    code = "NOT_ENOUGH_QUESTIONS"
    status_code = 422

    def __init__(self, message: str = (
        "The API doesn't have enough questions for this category. "
        "Please select a different category."
    )):
        super().__init__(message)


class OfflineError(QuizProctorError):
    """A remote service could not be reached"""

    code = "OFFLINE"
    status_code = 503


class ModelIntegrityError(QuizProctorError):
    """A cached or downloaded model does not match its recorded hash"""

    code = "MODEL_INTEGRITY"


class QuizStateError(QuizProctorError):
    """Operation not valid for the quiz session in its current state"""

    code = "INVALID_QUIZ_STATE"
    status_code = 409
